"""Entry point and batch driver for the sidecar restarter.

Parses the namespace mode, loads kubeconfig, optionally restarts the Istio
control plane, then walks every pod with an injected sidecar up to its
workload and triggers a rollout restart.
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from dataclasses import dataclass, field
from typing import Sequence

from kubernetes import client, config

from .errors import API_ERRORS, ApiError, ConfigError, RestarterError
from .logging_config import setup_logging
from .owner_resolver import OwnerResolver, Resolution
from .restart_manager import Clock, RestartManager
from .sidecar import has_sidecar_marker

# Platform-reserved namespaces left alone in all-namespaces mode.
SKIPPED_NAMESPACES = ("kube-system", "kube-public", "kube-node-lease", "istio-system")

ISTIO_NAMESPACE = "istio-system"
ISTIO_WORKLOADS = (
    ("Deployment", "istiod"),
    ("Deployment", "istio-ingressgateway"),
    ("DaemonSet", "istio-cni-node"),
)

EXIT_CONFIG_ERROR = 2
EXIT_CLUSTER_ERROR = 1


@dataclass
class NamespaceSummary:
    namespace: str
    pods_matched: int = 0
    pods_restarted: int = 0
    pods_skipped: int = 0
    failures: int = 0
    list_failed: bool = False


@dataclass
class RunSummary:
    namespaces: list[NamespaceSummary] = field(default_factory=list)
    cancelled: bool = False

    @property
    def namespaces_processed(self) -> int:
        return sum(1 for ns in self.namespaces if not ns.list_failed)

    @property
    def pods_restarted(self) -> int:
        return sum(ns.pods_restarted for ns in self.namespaces)

    @property
    def failures(self) -> int:
        return sum(ns.failures + int(ns.list_failed) for ns in self.namespaces)


class Restarter:
    """Finds sidecar-injected pods and restarts the workloads that own them."""

    def __init__(
        self,
        core_api: client.CoreV1Api,
        apps_api: client.AppsV1Api,
        clock: Clock | None = None,
        request_timeout: float | None = None,
        max_depth: int = OwnerResolver.DEFAULT_MAX_DEPTH,
    ) -> None:
        self._logger = logging.getLogger(type(self).__name__)
        self._core_api = core_api
        self._call_opts = {} if request_timeout is None else {"_request_timeout": request_timeout}
        self._restart_mgr = RestartManager(apps_api, clock=clock, request_timeout=request_timeout)
        self._resolver = OwnerResolver(apps_api, self._restart_mgr, max_depth=max_depth, request_timeout=request_timeout)

    def list_namespaces(self, namespace: str | None, all_namespaces: bool) -> list[str]:
        """Return the namespaces to process for the selected mode.

        Raises:
            ApiError: Listing cluster namespaces failed.
        """
        if not all_namespaces:
            return [namespace]
        try:
            namespace_list = self._core_api.list_namespace(**self._call_opts)
        except API_ERRORS as e:
            raise ApiError.from_exception(e, "list", "Namespace", "") from e
        return [ns.metadata.name for ns in namespace_list.items if ns.metadata.name not in SKIPPED_NAMESPACES]

    def restart_platform_workloads(
        self,
        workloads: Sequence[tuple[str, str]] = ISTIO_WORKLOADS,
        namespace: str = ISTIO_NAMESPACE,
        stop: threading.Event | None = None,
    ) -> int:
        """Restart a fixed list of platform workloads regardless of their pods.

        The stop event is checked between workloads.

        Returns:
            Number of workloads restarted.
        """
        restarted = 0
        for kind, name in workloads:
            if stop is not None and stop.is_set():
                self._logger.info("Stop requested, skipping remaining platform workloads")
                break
            try:
                self._restart_mgr.restart(kind, namespace, name)
                restarted += 1
            except RestarterError as e:
                self._logger.error("Failed to restart %s %s/%s: %s", kind, namespace, name, e)
        return restarted

    def process_pod(self, pod: object) -> Resolution | None:
        """Restart the workload owning a pod if the pod has a sidecar.

        Returns:
            None when the pod has no sidecar, otherwise the Resolution.

        Raises:
            RestarterError: The pod has no owner, or resolution failed.
        """
        if not has_sidecar_marker(pod):
            return None

        namespace = pod.metadata.namespace
        self._logger.info("Found pod %s/%s with istio sidecar injection enabled", namespace, pod.metadata.name)

        owners = pod.metadata.owner_references or []
        if not owners:
            raise RestarterError(f"pod {namespace}/{pod.metadata.name} has no owner references")
        return self._resolver.resolve(namespace, owners[0])

    def process_namespace(self, namespace: str, stop: threading.Event | None = None) -> NamespaceSummary:
        """Process every pod in a namespace in listing order."""
        summary = NamespaceSummary(namespace)
        try:
            pods = self._core_api.list_namespaced_pod(namespace, **self._call_opts)
        except API_ERRORS as e:
            self._logger.error("Error listing pods in namespace %s: %s", namespace, e)
            summary.list_failed = True
            return summary

        for pod in pods.items:
            if stop is not None and stop.is_set():
                self._logger.info("Stop requested, leaving namespace %s", namespace)
                break
            try:
                resolution = self.process_pod(pod)
            except RestarterError as e:
                summary.pods_matched += 1
                summary.failures += 1
                self._logger.error("Error processing pod %s/%s: %s", namespace, pod.metadata.name, e)
                continue

            if resolution is None:
                continue
            summary.pods_matched += 1
            if resolution.restarted:
                summary.pods_restarted += 1
            else:
                summary.pods_skipped += 1

        self._logger.info(
            "Namespace %s: %d sidecar pods, %d restarts triggered, %d failures",
            namespace,
            summary.pods_matched,
            summary.pods_restarted,
            summary.failures,
        )
        return summary

    def run(self, namespaces: Sequence[str], stop: threading.Event | None = None) -> RunSummary:
        """Process namespaces in order and log a final summary."""
        summary = RunSummary()
        self._logger.info("Processing namespaces: %s", list(namespaces))
        for namespace in namespaces:
            if stop is not None and stop.is_set():
                summary.cancelled = True
                break
            summary.namespaces.append(self.process_namespace(namespace, stop))
        if stop is not None and stop.is_set():
            summary.cancelled = True

        self._logger.info(
            "Done: %d namespaces processed, %d pods triggered a restart, %d failures%s",
            summary.namespaces_processed,
            summary.pods_restarted,
            summary.failures,
            " (cancelled)" if summary.cancelled else "",
        )
        return summary


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sidecar-restarter",
        description="Restart workloads whose pods carry an injected Istio sidecar.",
    )
    parser.add_argument("--namespace", help="namespace to search pods in")
    parser.add_argument("--all-namespaces", action="store_true", help="search pods in all namespaces")
    parser.add_argument("--kubeconfig", help="path to the kubeconfig file (default: in-cluster, then ~/.kube/config)")
    parser.add_argument(
        "--restart-platform", action="store_true", help="also restart the Istio control-plane workloads"
    )
    parser.add_argument("--platform-namespace", default=ISTIO_NAMESPACE, help="namespace of the Istio control plane")
    parser.add_argument(
        "--max-depth",
        type=int,
        default=OwnerResolver.DEFAULT_MAX_DEPTH,
        help="maximum owner hops beyond the pod's direct owner (ReplicaSet -> Deployment is 1)",
    )
    parser.add_argument("--request-timeout", type=float, help="timeout in seconds for each API call")
    parser.add_argument("--log-file", help="also log at DEBUG level to this rotating file")
    parser.add_argument("-v", "--verbose", action="store_true", help="log DEBUG messages to stderr")
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments and validate the namespace mode.

    Raises:
        ConfigError: Neither or both of --namespace and --all-namespaces given,
            or a non-positive --max-depth.
    """
    args = build_parser().parse_args(argv)
    if args.all_namespaces and args.namespace:
        raise ConfigError("--namespace and --all-namespaces are mutually exclusive")
    if not args.all_namespaces and not args.namespace:
        raise ConfigError("either --namespace or --all-namespaces is required")
    if args.max_depth < 1:
        raise ConfigError("--max-depth must be at least 1")
    return args


def load_kube_config(kubeconfig: str | None) -> None:
    if kubeconfig:
        config.load_kube_config(config_file=kubeconfig)
        return
    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()


def main(argv: Sequence[str] | None = None) -> int:
    logger = logging.getLogger(__name__)
    try:
        args = parse_args(argv)
    except ConfigError as e:
        setup_logging()
        logger.critical("Invalid configuration: %s", e)
        return EXIT_CONFIG_ERROR

    setup_logging(args.log_file, verbose=args.verbose)

    try:
        load_kube_config(args.kubeconfig)
    except (config.ConfigException, OSError) as e:
        logger.critical("Failed to load kubernetes config: %s", e)
        return EXIT_CLUSTER_ERROR

    restarter = Restarter(
        client.CoreV1Api(),
        client.AppsV1Api(),
        request_timeout=args.request_timeout,
        max_depth=args.max_depth,
    )

    stop = threading.Event()

    def shutdown(signum: int, frame: object) -> None:
        logger.info("Received signal %d, stopping after the current pod", signum)
        stop.set()

    signal.signal(signal.SIGTERM, shutdown)
    signal.signal(signal.SIGINT, shutdown)

    if args.restart_platform:
        restarter.restart_platform_workloads(namespace=args.platform_namespace, stop=stop)

    try:
        namespaces = restarter.list_namespaces(args.namespace, args.all_namespaces)
    except ApiError as e:
        logger.critical("Failed to get namespaces: %s", e)
        return EXIT_CLUSTER_ERROR

    restarter.run(namespaces, stop)
    return 0


if __name__ == "__main__":
    sys.exit(main())
