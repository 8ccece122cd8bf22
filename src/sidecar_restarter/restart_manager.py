"""Restart manager: triggers workload restarts via pod-template annotations.

Reads the workload, stamps the restart marker on its pod template and
replaces the object. The replace carries the resourceVersion that was read,
so a concurrent writer makes it fail with a conflict; conflicts are retried
against a freshly read copy a bounded number of times.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from kubernetes import client

from .annotations import format_timestamp, with_restart_marker
from .errors import API_ERRORS, ApiError

Clock = Callable[[], datetime]

# Workload kind -> suffix of the matching AppsV1Api read/replace methods.
_API_SUFFIX = {
    "Deployment": "deployment",
    "DaemonSet": "daemon_set",
    "StatefulSet": "stateful_set",
}

RESTARTABLE_KINDS = tuple(_API_SUFFIX)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RestartedWorkload:
    """A workload whose pod template was stamped with the restart marker."""

    kind: str
    namespace: str
    name: str
    restarted_at: str
    attempts: int = 1


class RestartManager:
    """Triggers rollout restarts of Deployments, DaemonSets and StatefulSets."""

    MAX_CONFLICT_RETRIES = 3

    def __init__(
        self,
        apps_api: client.AppsV1Api | None = None,
        clock: Clock | None = None,
        request_timeout: float | None = None,
    ) -> None:
        self._logger = logging.getLogger(type(self).__name__)
        self._apps_api = apps_api or client.AppsV1Api()
        self._clock = clock or utc_now
        self._call_opts = {} if request_timeout is None else {"_request_timeout": request_timeout}

    def restart(self, kind: str, namespace: str, name: str) -> RestartedWorkload:
        """Trigger a rollout restart for a workload.

        Each attempt is a full read-modify-write: the workload is read, the
        restart marker is merged into its pod-template annotations and the
        object is replaced. Other annotations are left untouched.

        Args:
            kind: One of RESTARTABLE_KINDS.
            namespace: Namespace of the workload.
            name: Name of the workload.

        Returns:
            The restarted workload identity and the timestamp written.

        Raises:
            ApiError: The read failed, the replace failed, or conflicts
                persisted past MAX_CONFLICT_RETRIES.
            ValueError: kind is not restartable.
        """
        suffix = _API_SUFFIX.get(kind)
        if suffix is None:
            raise ValueError(f"unsupported workload kind: {kind}")
        read = getattr(self._apps_api, f"read_namespaced_{suffix}")
        replace = getattr(self._apps_api, f"replace_namespaced_{suffix}")

        attempts = 0
        while True:
            attempts += 1
            try:
                workload = read(name, namespace, **self._call_opts)
            except API_ERRORS as e:
                raise ApiError.from_exception(e, "get", kind, namespace, name) from e

            restarted_at = self._stamp(workload)
            try:
                replace(name, namespace, workload, **self._call_opts)
            except API_ERRORS as e:
                error = ApiError.from_exception(e, "update", kind, namespace, name)
                if error.conflict and attempts <= self.MAX_CONFLICT_RETRIES:
                    self._logger.warning(
                        "Conflict updating %s %s/%s, retrying on a fresh copy (attempt %d)",
                        kind,
                        namespace,
                        name,
                        attempts,
                    )
                    continue
                raise error from e

            self._logger.info("Restarted %s %s/%s (restartedAt=%s)", kind, namespace, name, restarted_at)
            return RestartedWorkload(kind, namespace, name, restarted_at, attempts)

    def _stamp(self, workload: object) -> str:
        """Merge the restart marker into the workload's pod-template annotations."""
        now = self._clock()
        template = workload.spec.template
        if template.metadata is None:
            template.metadata = client.V1ObjectMeta()
        template.metadata.annotations = with_restart_marker(template.metadata.annotations, now)
        return format_timestamp(now)
