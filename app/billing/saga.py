"""
Minimal saga runner for operations that span the gateway and our database.

A saga is an ordered list of steps. Each step may declare a compensation
that undoes it. When a step raises, the compensations of the steps that
already completed run in reverse order, then the original exception is
re-raised. A failing compensation is logged and recorded on the saga; it
never hides the original error.

Usage:
    saga = Saga("provision_subscription")
    saga.add_step("remote_subscription", create_remote, compensation=cancel_remote)
    saga.add_step("local_subscription", persist_local)

    try:
        results = saga.run()
    except DatabaseError:
        if saga.compensation_failures:
            ...  # orphan left at the gateway
        raise
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


@dataclass
class SagaStep:
    """
    One step of a saga.

    Attributes:
        name: Step name; its result is stored under this key
        action: Called with the results of previous steps
        compensation: Called with this step's result to undo it
    """

    name: str
    action: Callable[[dict[str, Any]], Any]
    compensation: Callable[[Any], None] | None = None


@dataclass
class CompensationFailure:
    """A compensation that raised while unwinding."""

    step: str
    error: Exception


class Saga:
    """
    Runs steps in order and unwinds completed steps on failure.

    Attributes:
        results: Step name -> action result, for completed steps
        failed_step: Name of the step that raised, if any
        compensated: Names of steps whose compensation succeeded
        compensation_failures: Compensations that raised
    """

    def __init__(self, name: str):
        self.name = name
        self.steps: list[SagaStep] = []
        self.results: dict[str, Any] = {}
        self.completed: list[SagaStep] = []
        self.failed_step: str | None = None
        self.compensated: list[str] = []
        self.compensation_failures: list[CompensationFailure] = []

    def add_step(
        self,
        name: str,
        action: Callable[[dict[str, Any]], Any],
        compensation: Callable[[Any], None] | None = None,
    ) -> Saga:
        self.steps.append(SagaStep(name=name, action=action, compensation=compensation))
        return self

    def run(self) -> dict[str, Any]:
        """
        Execute all steps.

        Returns:
            Mapping of step name to action result

        Raises:
            Whatever the failing step raised, after compensation
        """
        for step in self.steps:
            try:
                self.results[step.name] = step.action(self.results)
            except Exception:
                self.failed_step = step.name
                logger.warning(
                    f"Saga {self.name} failed at step {step.name}; compensating",
                    extra={
                        "saga": self.name,
                        "failed_step": step.name,
                        "completed_steps": [s.name for s in self.completed],
                    },
                )
                self._compensate()
                raise
            self.completed.append(step)
        return self.results

    def _compensate(self) -> None:
        for step in reversed(self.completed):
            if step.compensation is None:
                continue
            try:
                step.compensation(self.results[step.name])
            except Exception as e:
                logger.error(
                    f"Saga {self.name}: compensation for {step.name} failed",
                    extra={"saga": self.name, "step": step.name, "error": str(e)},
                    exc_info=True,
                )
                self.compensation_failures.append(CompensationFailure(step=step.name, error=e))
            else:
                self.compensated.append(step.name)
