"""Admin HTTP surface (FastAPI)."""
