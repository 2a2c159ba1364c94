"""Pet dialog service (FastAPI surface over dialogcore)."""
