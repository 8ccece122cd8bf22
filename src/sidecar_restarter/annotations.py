"""Pod-template annotation mutation that triggers a rollout restart.

The rollout controller redeploys a workload whenever its pod template
changes, so stamping a timestamp annotation on the template is enough to
force a rolling restart.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Mapping

from sidecar_restarter import RESTARTED_AT_ANNOTATION

RFC3339_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def format_timestamp(now: datetime) -> str:
    """Render a datetime as a fixed-width RFC 3339 UTC timestamp.

    Naive datetimes are taken to be UTC.
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc).strftime(RFC3339_FORMAT)


def with_restart_marker(annotations: Mapping[str, str] | None, now: datetime) -> dict[str, str]:
    """Return a copy of the annotations with the restart marker set to now.

    Args:
        annotations: Existing pod-template annotations, or None when the
            template has none yet.
        now: Time of the restart.

    Returns:
        A new dict holding every existing entry plus the restart marker.
    """
    result = dict(annotations or {})
    result[RESTARTED_AT_ANNOTATION] = format_timestamp(now)
    return result
