"""Errors raised while resolving owners and restarting workloads."""

from __future__ import annotations

import urllib3
from kubernetes import client

# Failures of a single API call: HTTP error responses from the API server, and
# transport failures (timeouts, refused connections) raised by urllib3.
API_ERRORS = (client.ApiException, urllib3.exceptions.HTTPError)


class RestarterError(Exception):
    """Base class for sidecar restarter errors."""


class ConfigError(RestarterError):
    """Invalid or missing run configuration. Fatal before any cluster call."""


class ApiError(RestarterError):
    """A fetch, update or list call against the cluster failed."""

    def __init__(
        self,
        action: str,
        kind: str,
        namespace: str,
        name: str | None = None,
        status: int | None = None,
        reason: str | None = None,
    ) -> None:
        self.action = action
        self.kind = kind
        self.namespace = namespace
        self.name = name
        self.status = status
        self.reason = reason
        if name:
            target = f"{kind} {namespace}/{name}"
        else:
            target = f"{kind} in {namespace}" if namespace else kind
        super().__init__(f"failed to {action} {target}: ({status}) {reason}")

    @classmethod
    def from_exception(
        cls, exc: Exception, action: str, kind: str, namespace: str, name: str | None = None
    ) -> ApiError:
        """Wrap an ApiException, or a urllib3 transport error (status None)."""
        if isinstance(exc, client.ApiException):
            return cls(action, kind, namespace, name, status=exc.status, reason=exc.reason)
        return cls(action, kind, namespace, name, reason=f"{type(exc).__name__}: {exc}")

    @property
    def not_found(self) -> bool:
        return self.status == 404

    @property
    def conflict(self) -> bool:
        return self.status == 409


class CycleError(RestarterError):
    """Owner-reference chain exceeded the depth bound."""

    def __init__(self, namespace: str, chain: list[str]) -> None:
        self.namespace = namespace
        self.chain = chain
        super().__init__(f"owner chain in {namespace} exceeds the depth bound: {' -> '.join(chain)}")
