"""Minimal HLS playlist reading and writing.

Only what freshness checks and the snapshot fallback need: listing the
segment URIs of a media playlist and rendering a small rolling playlist.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Iterable, List


def parse_segments(text: str) -> List[str]:
    """Return segment URIs referenced by a media playlist, in order."""
    return [
        line.strip()
        for line in text.splitlines()
        if line.strip() and not line.lstrip().startswith("#")
    ]


def render_playlist(
    segments: Iterable[str], *, media_sequence: int = 0, target_duration: int = 3
) -> str:
    lines = [
        "#EXTM3U",
        "#EXT-X-VERSION:3",
        f"#EXT-X-TARGETDURATION:{target_duration}",
        f"#EXT-X-MEDIA-SEQUENCE:{media_sequence}",
        "#EXT-X-PLAYLIST-TYPE:EVENT",
    ]
    for name in segments:
        lines.append(f"#EXTINF:{float(target_duration):.1f},")
        lines.append(name)
    return "\n".join(lines) + "\n"


def write_atomic(path: Path, content: str) -> None:
    """Replace ``path`` with ``content`` so readers never see a partial file."""
    fd, tmp = tempfile.mkstemp(dir=str(path.parent), prefix=".stream", suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as f:
            f.write(content)
        os.replace(tmp, path)
    except BaseException:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise
