"""HTTP layer: FastAPI routes, dependencies and the multipart receiver."""
