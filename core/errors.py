"""Error taxonomy for the streaming orchestrator."""


class StreamError(Exception):
    """Base class for orchestrator errors."""

    def __init__(self, message: str = "stream_error") -> None:
        super().__init__(message)


class ConfigurationError(StreamError):
    """Raised for caller mistakes that must never be retried automatically."""

    def __init__(self, message: str = "bad_request") -> None:
        super().__init__(message)


class InvalidStreamUrl(ConfigurationError):
    """Raised when a camera URL is missing or not ``rtsp://``/``rtmp://``."""


class InvalidQuality(ConfigurationError):
    """Raised when a quality tier name is unknown."""


class NotFound(StreamError):
    """Raised when no active session exists for a camera."""

    def __init__(self, message: str = "not_found") -> None:
        super().__init__(message)


class LaunchError(StreamError):
    """Raised when the transcoder cannot be spawned or dies before output."""


def to_response(exc: Exception) -> tuple[int, dict]:
    """Convert known exceptions to an HTTP response tuple.

    Parameters
    ----------
    exc: Exception
        The exception to convert.

    Returns
    -------
    tuple[int, dict]
        A status code and JSON-serializable payload.
    """
    msg = str(exc)
    if isinstance(exc, ConfigurationError):
        return 400, {"success": False, "error": msg}
    if isinstance(exc, NotFound):
        return 404, {"success": False, "error": msg}
    if isinstance(exc, LaunchError):
        return 502, {"success": False, "error": msg}
    return 500, {"success": False, "error": "internal_error"}
