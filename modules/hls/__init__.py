"""HLS ingest orchestration: launcher, readiness, fallback, health and recovery."""

from .auto_monitor import AutoMonitor, config_camera_source
from .health import HealthMonitor, HealthReport, check_session
from .launcher import ProcessLauncher
from .quality import QUALITY_PROFILES, QualityProfile, available_qualities, get_profile
from .reconnect import ReconnectionController
from .reporting import RedisStatusReporter
from .snapshot import SnapshotStream

__all__ = [
    "AutoMonitor",
    "config_camera_source",
    "HealthMonitor",
    "HealthReport",
    "check_session",
    "ProcessLauncher",
    "QUALITY_PROFILES",
    "QualityProfile",
    "available_qualities",
    "get_profile",
    "ReconnectionController",
    "RedisStatusReporter",
    "SnapshotStream",
]
