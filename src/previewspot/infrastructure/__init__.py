"""Infrastructure layer: HTTP integrations, throttling and observability."""
