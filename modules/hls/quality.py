"""Static quality tier table for the HLS transcoder."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, List

DEFAULT_QUALITY = "medium"


@dataclass(frozen=True)
class QualityProfile:
    """Encode parameters for one quality tier."""

    name: str
    resolution: str
    framerate: int
    maxrate: str
    bufsize: str
    preset: str
    crf: int
    audio_bitrate: str
    description: str


QUALITY_PROFILES: Dict[str, QualityProfile] = {
    "mobile": QualityProfile(
        "mobile", "480x360", 8, "400k", "800k", "ultrafast", 35, "32k", "Mobile (480x360, 8fps)"
    ),
    "low": QualityProfile(
        "low", "480x360", 8, "500k", "1000k", "ultrafast", 35, "32k", "Low (480x360, 8fps)"
    ),
    "medium": QualityProfile(
        "medium", "640x480", 12, "800k", "1600k", "ultrafast", 32, "48k", "Medium (640x480, 12fps)"
    ),
    "high": QualityProfile(
        "high", "1280x720", 15, "1500k", "3000k", "superfast", 28, "64k", "High (720p, 15fps)"
    ),
    "ultra": QualityProfile(
        "ultra", "1920x1080", 20, "2500k", "5000k", "fast", 25, "96k", "Ultra (1080p, 20fps)"
    ),
}


def is_known_quality(name: str | None) -> bool:
    return bool(name) and name in QUALITY_PROFILES


def get_profile(name: str | None) -> QualityProfile:
    """Return the profile for ``name``, falling back to the medium tier."""
    return QUALITY_PROFILES.get(name or DEFAULT_QUALITY, QUALITY_PROFILES[DEFAULT_QUALITY])


def available_qualities() -> List[dict]:
    """Return every tier as a JSON-friendly dict, lowest first."""
    return [{"id": name, **asdict(profile)} for name, profile in QUALITY_PROFILES.items()]
