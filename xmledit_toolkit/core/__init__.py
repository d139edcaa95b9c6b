"""Schema-aware XML editing core: schema queries, document model and services."""
