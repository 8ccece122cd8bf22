"""Restart workloads whose pods carry an Istio sidecar-injection marker."""

RESTARTED_AT_ANNOTATION = "kubectl.kubernetes.io/restartedAt"

__version__ = "0.1.0"
