"""HTTP middleware and observability integrations."""
