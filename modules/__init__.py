"""Stream processing modules; the HLS pipeline lives in :mod:`modules.hls`."""

__all__: list[str] = ["hls"]
