"""HTTP service for collection fallback sessions."""
