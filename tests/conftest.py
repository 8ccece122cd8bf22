"""Shared test doubles for the kubernetes API."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from kubernetes import client

NAMESPACE = "ns1"


class FakeClock:
    """Clock that advances by one second on every call."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 10, 18, 9, 30, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        current = self.now
        self.now += timedelta(seconds=1)
        return current


class FakeAppsApi:
    """In-memory AppsV1Api that enforces resourceVersion on replace.

    Objects are stored as plain records and a fresh model is built on every
    read, so callers never share state with the store.
    """

    def __init__(self) -> None:
        self._records: dict[tuple[str, str, str], dict] = {}
        self.read_calls: list[tuple[str, str, str]] = []
        self.replace_calls: list[tuple[str, str, str, dict[str, str]]] = []
        self.before_replace = None

    def add_workload(self, kind: str, name: str, annotations: dict[str, str] | None = None, namespace: str = NAMESPACE):
        self._records[(kind, namespace, name)] = {"annotations": annotations, "version": 1, "owner": None}

    def add_replica_set(self, name: str, owner: tuple[str, str] | None = None, namespace: str = NAMESPACE):
        self._records[("ReplicaSet", namespace, name)] = {"annotations": None, "version": 1, "owner": owner}

    def annotations(self, kind: str, name: str, namespace: str = NAMESPACE) -> dict[str, str] | None:
        return self._records[(kind, namespace, name)]["annotations"]

    def annotate_concurrently(self, kind: str, name: str, key: str, value: str, namespace: str = NAMESPACE):
        """Simulate another writer updating the stored template annotations."""
        record = self._records[(kind, namespace, name)]
        record["annotations"] = {**(record["annotations"] or {}), key: value}
        record["version"] += 1

    def _read(self, kind: str, name: str, namespace: str):
        self.read_calls.append((kind, namespace, name))
        record = self._records.get((kind, namespace, name))
        if record is None:
            raise client.ApiException(status=404, reason="Not Found")
        return self._build(kind, name, namespace, record)

    def _replace(self, kind: str, name: str, namespace: str, body):
        if self.before_replace is not None:
            hook, self.before_replace = self.before_replace, None
            hook(kind, name, namespace)
        record = self._records[(kind, namespace, name)]
        if body.metadata.resource_version != str(record["version"]):
            raise client.ApiException(status=409, reason="Conflict")
        annotations = body.spec.template.metadata.annotations
        record["annotations"] = dict(annotations) if annotations is not None else None
        record["version"] += 1
        self.replace_calls.append((kind, namespace, name, dict(annotations or {})))
        return self._build(kind, name, namespace, record)

    @staticmethod
    def _build(kind: str, name: str, namespace: str, record: dict):
        owner_references = None
        if record["owner"] is not None:
            owner_kind, owner_name = record["owner"]
            owner_references = [
                client.V1OwnerReference(api_version="apps/v1", kind=owner_kind, name=owner_name, uid=f"uid-{owner_name}")
            ]
        metadata = client.V1ObjectMeta(
            name=name,
            namespace=namespace,
            resource_version=str(record["version"]),
            owner_references=owner_references,
        )
        if kind == "ReplicaSet":
            return client.V1ReplicaSet(metadata=metadata)

        annotations = record["annotations"]
        selector = client.V1LabelSelector(match_labels={"app": name})
        template = client.V1PodTemplateSpec(
            metadata=client.V1ObjectMeta(labels={"app": name}, annotations=dict(annotations) if annotations else None)
        )
        if kind == "Deployment":
            return client.V1Deployment(metadata=metadata, spec=client.V1DeploymentSpec(selector=selector, template=template))
        if kind == "DaemonSet":
            return client.V1DaemonSet(metadata=metadata, spec=client.V1DaemonSetSpec(selector=selector, template=template))
        return client.V1StatefulSet(
            metadata=metadata,
            spec=client.V1StatefulSetSpec(selector=selector, service_name=name, template=template),
        )

    def read_namespaced_replica_set(self, name, namespace, **kwargs):
        return self._read("ReplicaSet", name, namespace)

    def read_namespaced_deployment(self, name, namespace, **kwargs):
        return self._read("Deployment", name, namespace)

    def read_namespaced_daemon_set(self, name, namespace, **kwargs):
        return self._read("DaemonSet", name, namespace)

    def read_namespaced_stateful_set(self, name, namespace, **kwargs):
        return self._read("StatefulSet", name, namespace)

    def replace_namespaced_deployment(self, name, namespace, body, **kwargs):
        return self._replace("Deployment", name, namespace, body)

    def replace_namespaced_daemon_set(self, name, namespace, body, **kwargs):
        return self._replace("DaemonSet", name, namespace, body)

    def replace_namespaced_stateful_set(self, name, namespace, body, **kwargs):
        return self._replace("StatefulSet", name, namespace, body)


def make_owner_ref(kind: str, name: str):
    return client.V1OwnerReference(api_version="apps/v1", kind=kind, name=name, uid=f"uid-{name}")


@pytest.fixture
def apps_api() -> FakeAppsApi:
    return FakeAppsApi()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
