"""HTTP boundary: FastAPI app, routes and SSE."""
