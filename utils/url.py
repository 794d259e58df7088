"""URL helpers for camera sources and HLS outputs."""

from __future__ import annotations

import re
from urllib.parse import quote, unquote, urlsplit, urlunsplit


def normalize_stream_url(url: str) -> str:
    """Return URL with credentials decoded then re-encoded once.

    Parameters
    ----------
    url: str
        Input URL possibly containing percent-encoded username/password.

    Returns
    -------
    str
        URL with username/password decoded and re-encoded exactly once.
    """
    url = url.strip()
    parts = urlsplit(url)
    if not parts.username and not parts.password:
        return url

    username = unquote(parts.username or "")
    password = unquote(parts.password or "")

    host = parts.hostname or ""
    if parts.port:
        host += f":{parts.port}"

    if username:
        creds = quote(username, safe="")
        if password:
            creds += ":" + quote(password, safe="")
        netloc = f"{creds}@{host}"
    else:
        netloc = host

    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


_CRED_RE = re.compile(r"(?<=://)([^:@\s]+):([^@/\s]+)@")


def mask_credentials(text: str) -> str:
    """Redact credentials in *text* for safe logging."""

    return _CRED_RE.sub("***:***@", text)


def hls_url(base_path: str, camera_id: str) -> str:
    """Return the externally addressable playlist URL for ``camera_id``."""
    return f"{base_path.rstrip('/')}/{quote(str(camera_id), safe='')}/stream.m3u8"
