from core.errors import (
    ConfigurationError,
    InvalidQuality,
    InvalidStreamUrl,
    LaunchError,
    NotFound,
    to_response,
)


def test_configuration_errors_are_bad_requests():
    assert to_response(InvalidStreamUrl("URL must start with rtsp:// or rtmp://")) == (
        400,
        {"success": False, "error": "URL must start with rtsp:// or rtmp://"},
    )
    assert to_response(InvalidQuality("unknown quality: 8k"))[0] == 400
    assert isinstance(InvalidQuality(), ConfigurationError)


def test_not_found_and_launch_errors():
    assert to_response(NotFound())[0] == 404
    assert to_response(LaunchError("failed to launch ffmpeg"))[0] == 502


def test_unknown_errors_hide_details():
    status, payload = to_response(RuntimeError("secret detail"))
    assert status == 500
    assert payload == {"success": False, "error": "internal_error"}
