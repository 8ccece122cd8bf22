"""Detection of pods with an injected Istio sidecar."""

from __future__ import annotations

# istio-init is injected when the CNI plugin is off, istio-validation when it is on.
SIDECAR_INIT_CONTAINERS = frozenset({"istio-init", "istio-validation"})


def has_sidecar_marker(pod: object) -> bool:
    """Check whether a pod carries one of the sidecar injector's init containers."""
    spec = getattr(pod, "spec", None)
    if spec is None:
        return False
    return any(container.name in SIDECAR_INIT_CONTAINERS for container in spec.init_containers or [])
