"""Ownership resolution from a pod's owner reference to a restartable workload.

Owner references are followed one level at a time, always taking the first
reference. ReplicaSets are only read to find their own owner; the first
Deployment, DaemonSet or StatefulSet reached is restarted.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

from kubernetes import client

from .errors import API_ERRORS, ApiError, CycleError
from .restart_manager import RESTARTABLE_KINDS, RestartedWorkload, RestartManager


class Outcome(enum.Enum):
    RESTARTED = "restarted"
    NO_OWNER = "no-owner"
    UNSUPPORTED_KIND = "unsupported-kind"


@dataclass(frozen=True)
class Resolution:
    """Where an owner chain ended and what was done there."""

    outcome: Outcome
    kind: str
    namespace: str
    name: str
    depth: int = 0
    workload: RestartedWorkload | None = None

    @property
    def restarted(self) -> bool:
        return self.outcome is Outcome.RESTARTED


class OwnerResolver:
    """Walks owner references up to a workload and triggers its restart."""

    DEFAULT_MAX_DEPTH = 10
    INTERMEDIATE_KINDS = ("ReplicaSet",)

    def __init__(
        self,
        apps_api: client.AppsV1Api,
        restart_manager: RestartManager,
        max_depth: int = DEFAULT_MAX_DEPTH,
        request_timeout: float | None = None,
    ) -> None:
        self._logger = logging.getLogger(type(self).__name__)
        self._apps_api = apps_api
        self._restart_mgr = restart_manager
        self._max_depth = max_depth
        self._call_opts = {} if request_timeout is None else {"_request_timeout": request_timeout}

    def resolve(self, namespace: str, owner_ref: object) -> Resolution:
        """Resolve an owner reference and restart the workload it leads to.

        Args:
            namespace: Namespace of the pod; owners are namespace-local.
            owner_ref: The pod's first owner reference.

        Returns:
            A Resolution. Unowned ReplicaSets and unsupported kinds end the
            chain without any update and are not errors.

        Raises:
            ApiError: A read or update failed.
            CycleError: The chain needs more than max_depth hops beyond the
                pod's direct owner (depth 0).
        """
        return self._resolve(namespace, owner_ref, [])

    def _resolve(self, namespace: str, owner_ref: object, chain: list[str]) -> Resolution:
        kind = owner_ref.kind
        name = owner_ref.name
        chain = chain + [f"{kind}/{name}"]
        depth = len(chain) - 1
        if depth > self._max_depth:
            raise CycleError(namespace, chain)

        if kind in self.INTERMEDIATE_KINDS:
            try:
                rs = self._apps_api.read_namespaced_replica_set(name, namespace, **self._call_opts)
            except API_ERRORS as e:
                raise ApiError.from_exception(e, "get", kind, namespace, name) from e

            owners = rs.metadata.owner_references or []
            if not owners:
                self._logger.info("%s %s/%s has no owner, nothing to restart", kind, namespace, name)
                return Resolution(Outcome.NO_OWNER, kind, namespace, name, depth)
            return self._resolve(namespace, owners[0], chain)

        if kind in RESTARTABLE_KINDS:
            workload = self._restart_mgr.restart(kind, namespace, name)
            return Resolution(Outcome.RESTARTED, kind, namespace, name, depth, workload)

        self._logger.info("Unsupported owner kind %s for %s/%s, skipping", kind, namespace, name)
        return Resolution(Outcome.UNSUPPORTED_KIND, kind, namespace, name, depth)
