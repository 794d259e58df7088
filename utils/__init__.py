"""Utility package initialization and public exports."""

from .url import hls_url, mask_credentials, normalize_stream_url

__all__ = ["hls_url", "mask_credentials", "normalize_stream_url"]
