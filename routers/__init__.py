"""HTTP routers of the stream worker."""

__all__ = ["health", "streams"]
