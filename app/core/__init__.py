"""
Core Application - Infrastructure & Base Classes

Generic building blocks shared by the domain apps (clients, billing):

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - UUIDPrimaryKeyMixin: UUID as primary key
    - AppendOnlyMixin: Rows can be inserted but never updated or deleted

Services (import from core.services):
    - ServiceResult: Success/failure wrapper for expected outcomes
    - BaseService: Logger and transaction helpers

Exceptions (import from core.exceptions):
    - BaseApplicationError and its subclasses
"""
