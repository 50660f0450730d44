"""Personal notes API: cookie sessions and owner-scoped notes over FastAPI."""

__version__ = "1.0.0"
