"""
Asaas webhook ingestion and reconciliation.

- views.asaas_webhook: HTTP endpoint
- ingestion.WebhookIngestionService: store, then reconcile
- reconciler.reconcile_webhook_event: one recorded reconciliation attempt
- handlers: per-event-type handlers and the dispatch registry
"""
