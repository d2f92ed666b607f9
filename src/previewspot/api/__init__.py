"""HTTP API layer (FastAPI routers, dependencies, exception handlers)."""
