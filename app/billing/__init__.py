"""
Billing app for the Asaas payment gateway.

This app handles:
- Subscription provisioning at the gateway, with compensation on failure
- Cancellation (gateway first, then local state)
- Webhook ingestion and reconciliation into payments and the ledger
- Audit trail of every subscription event
- Daily processing of due payments (overdue marking, retries, pausing)

Related apps:
    - clients: The billed client and its gateway customer mapping

Usage:
    from billing.services import SubscriptionProvisioner, ProvisionRequest

    result = SubscriptionProvisioner().provision(request, actor=user)
"""
