# /*
# Copyright 2026 The CAPI Manager Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Shared fixtures: in-memory management cluster and clusterctl fakes."""

from __future__ import annotations

import base64
import copy
from collections.abc import Callable
from typing import Any

import pytest

from capi_manager.config import ManagerSettings, VariableStore
from capi_manager.constants import CLUSTER_NAME_LABEL, LABEL_CONTROL_PLANE
from capi_manager.errors import NotFoundError, RemoteAccessError
from capi_manager.manager import Manager
from capi_manager.resources import DynamicObject, GroupVersionKind

CAPI_V1BETA1 = "cluster.x-k8s.io/v1beta1"
TALOS_CP_API = "controlplane.cluster.x-k8s.io/v1alpha3"
CLUSTERCTL_V1ALPHA3 = "clusterctl.cluster.x-k8s.io/v1alpha3"


# ============================================================================
# Object builders
# ============================================================================

def deployment_obj(ready: int | None, replicas: int | None) -> dict[str, Any]:
    status: dict[str, Any] = {}
    if ready is not None:
        status["readyReplicas"] = ready
    if replicas is not None:
        status["replicas"] = replicas
    return {"apiVersion": "apps/v1", "kind": "Deployment", "status": status}


def cluster_obj(name: str = "demo", namespace: str = "default", ready: bool | None = True) -> dict[str, Any]:
    obj: dict[str, Any] = {
        "apiVersion": CAPI_V1BETA1,
        "kind": "Cluster",
        "metadata": {"name": name, "namespace": namespace},
        "spec": {
            "controlPlaneRef": {
                "apiVersion": TALOS_CP_API,
                "kind": "TalosControlPlane",
                "name": f"{name}-cp",
            },
        },
    }
    if ready is not None:
        obj["status"] = {"conditions": [{"type": "Ready", "status": "True" if ready else "False"}]}
    return obj


def control_plane_obj(
    name: str = "demo-cp",
    namespace: str = "default",
    *,
    ready: bool = True,
    initialized: bool = True,
    ready_replicas: int = 1,
    replicas: int = 1,
    spec_replicas: int | None = None,
) -> dict[str, Any]:
    return {
        "apiVersion": TALOS_CP_API,
        "kind": "TalosControlPlane",
        "metadata": {"name": name, "namespace": namespace},
        "spec": {"replicas": replicas if spec_replicas is None else spec_replicas},
        "status": {
            "ready": ready,
            "initialized": initialized,
            "readyReplicas": ready_replicas,
            "replicas": replicas,
        },
    }


def machine_deployment_obj(
    name: str = "demo-workers",
    cluster: str = "demo",
    namespace: str = "default",
    *,
    phase: str | None = "Running",
    ready_replicas: int = 1,
    replicas: int = 1,
    spec_replicas: int | None = None,
) -> dict[str, Any]:
    status: dict[str, Any] = {"readyReplicas": ready_replicas, "replicas": replicas}
    if phase is not None:
        status["phase"] = phase
    return {
        "apiVersion": CAPI_V1BETA1,
        "kind": "MachineDeployment",
        "metadata": {"name": name, "namespace": namespace, "labels": {CLUSTER_NAME_LABEL: cluster}},
        "spec": {"replicas": replicas if spec_replicas is None else spec_replicas},
        "status": status,
    }


def provider_record(name: str, provider_type: str, version: str, namespace: str) -> dict[str, Any]:
    return {
        "apiVersion": CLUSTERCTL_V1ALPHA3,
        "kind": "Provider",
        "metadata": {"name": f"{provider_type.lower()}-{name}", "namespace": namespace},
        "providerName": name,
        "type": provider_type,
        "version": version,
    }


def node_obj(name: str, address: str | None, *, control_plane: bool = False, ready: bool = True) -> dict[str, Any]:
    labels = {LABEL_CONTROL_PLANE: ""} if control_plane else {}
    addresses = [{"type": "InternalIP", "address": address}] if address else []
    return {
        "apiVersion": "v1",
        "kind": "Node",
        "metadata": {"name": name, "labels": labels},
        "status": {
            "addresses": addresses,
            "conditions": [{"type": "Ready", "status": "True" if ready else "False"}],
        },
    }


# ============================================================================
# Fakes
# ============================================================================

class FakeResources:
    """In-memory stand-in for :class:`capi_manager.resources.ResourceClient`.

    Dynamic objects are keyed by ``(kind, namespace, name)``. ``errors`` maps a
    method name to an exception raised on every call of that method.
    """

    def __init__(self) -> None:
        self.namespaces: set[str] = set()
        self.deployments: dict[tuple[str, str], dict[str, Any]] = {}
        self.secrets: dict[tuple[str, str], dict[str, Any]] = {}
        self.nodes: list[dict[str, Any]] = []
        self.objects: dict[tuple[str, str, str], dict[str, Any]] = {}
        self.groups: list[tuple[str, list[str]]] = []
        self.errors: dict[str, Exception] = {}
        self.calls: list[tuple[str, ...]] = []
        self.created: list[DynamicObject] = []
        self.updated: list[DynamicObject] = []
        self.before_get: Callable[[str, str, str], None] | None = None
        self.on_update: Callable[[FakeResources, DynamicObject], None] | None = None

    def _call(self, method: str, *args: str) -> None:
        self.calls.append((method, *args))
        if method in self.errors:
            raise self.errors[method]

    # -- helpers --

    def add_deployment(self, namespace: str, name: str, ready: int | None = 1, replicas: int | None = 1) -> None:
        self.namespaces.add(namespace)
        self.deployments[(namespace, name)] = deployment_obj(ready, replicas)

    def put(self, obj: dict[str, Any]) -> None:
        meta = obj["metadata"]
        self.objects[(obj["kind"], meta.get("namespace", ""), meta["name"])] = copy.deepcopy(obj)

    def remove(self, kind: str, namespace: str, name: str) -> None:
        self.objects.pop((kind, namespace, name), None)

    def add_kubeconfig_secret(self, cluster: str, namespace: str = "default", data: bytes = b"kubeconfig") -> None:
        self.secrets[(namespace, f"{cluster}-kubeconfig")] = {
            "data": {"value": base64.b64encode(data).decode()},
        }

    # -- ResourceClient surface --

    def get_namespace(self, name: str) -> DynamicObject:
        self._call("get_namespace", name)
        if name not in self.namespaces:
            raise NotFoundError("Namespace", name)
        return DynamicObject({"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": name}})

    def get_deployment(self, namespace: str, name: str) -> DynamicObject:
        self._call("get_deployment", namespace, name)
        if (namespace, name) not in self.deployments:
            raise NotFoundError("Deployment", name, namespace)
        return DynamicObject(copy.deepcopy(self.deployments[(namespace, name)]))

    def get_secret(self, namespace: str, name: str) -> DynamicObject:
        self._call("get_secret", namespace, name)
        if (namespace, name) not in self.secrets:
            raise NotFoundError("Secret", name, namespace)
        return DynamicObject(copy.deepcopy(self.secrets[(namespace, name)]))

    def list_nodes(self) -> list[DynamicObject]:
        self._call("list_nodes")
        return [DynamicObject(copy.deepcopy(node)) for node in self.nodes]

    def preferred_resources(self) -> list[tuple[str, list[str]]]:
        self._call("preferred_resources")
        return list(self.groups)

    def get(self, gvk: GroupVersionKind, name: str, namespace: str) -> DynamicObject:
        if self.before_get is not None:
            self.before_get(gvk.kind, namespace, name)
        self._call("get", gvk.kind, namespace, name)
        key = (gvk.kind, namespace, name)
        if key not in self.objects:
            raise NotFoundError(gvk.kind, name, namespace)
        return DynamicObject(copy.deepcopy(self.objects[key]))

    def list(
        self,
        gvk: GroupVersionKind,
        namespace: str | None = None,
        label_selector: str | None = None,
    ) -> list[DynamicObject]:
        self._call("list", gvk.kind, namespace or "")
        selector: dict[str, str] = {}
        if label_selector:
            key, _, value = label_selector.partition("=")
            selector[key] = value
        result = []
        for (kind, obj_namespace, _), obj in sorted(self.objects.items()):
            if kind != gvk.kind or (namespace and obj_namespace != namespace):
                continue
            labels = obj.get("metadata", {}).get("labels") or {}
            if any(labels.get(k) != v for k, v in selector.items()):
                continue
            result.append(DynamicObject(copy.deepcopy(obj)))
        return result

    def create(self, obj: DynamicObject) -> DynamicObject:
        self._call("create", obj.kind, obj.namespace, obj.name)
        key = (obj.kind, obj.namespace, obj.name)
        if key in self.objects:
            raise RemoteAccessError(409, "AlreadyExists", f"create {obj.kind}")
        self.objects[key] = obj.to_dict()
        self.created.append(obj)
        return DynamicObject(obj.to_dict())

    def update(self, obj: DynamicObject) -> DynamicObject:
        self._call("update", obj.kind, obj.namespace, obj.name)
        self.objects[(obj.kind, obj.namespace, obj.name)] = obj.to_dict()
        self.updated.append(obj)
        if self.on_update is not None:
            self.on_update(self, obj)
        return DynamicObject(obj.to_dict())


class FakeClusterctl:
    """Records init/generate calls instead of running the clusterctl binary.

    ``on_init`` runs after every recorded init call, e.g. to make the
    installed controller deployment appear in :class:`FakeResources`.
    """

    def __init__(self, template: list[dict[str, Any]] | None = None) -> None:
        self.template = template or []
        self.init_calls: list[tuple[Any, dict[str, str]]] = []
        self.generate_calls: list[tuple[Any, dict[str, str]]] = []
        self.on_init: Callable[[Any], None] | None = None

    def init(self, options, variables: VariableStore) -> None:
        self.init_calls.append((options, variables.environ()))
        if self.on_init is not None:
            self.on_init(options)

    def generate_cluster(self, options, variables: VariableStore) -> list[DynamicObject]:
        self.generate_calls.append((options, variables.environ()))
        return [DynamicObject(copy.deepcopy(obj)) for obj in self.template]


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def settings() -> ManagerSettings:
    return ManagerSettings(
        poll_interval=0,
        scale_grace_period=0,
        provider_ready_timeout=1,
        cluster_ready_timeout=2,
        health_timeout=1,
    )


@pytest.fixture
def resources() -> FakeResources:
    return FakeResources()


@pytest.fixture
def clusterctl() -> FakeClusterctl:
    return FakeClusterctl()


@pytest.fixture
def variables() -> VariableStore:
    return VariableStore(env={})


@pytest.fixture
def manager(settings, resources, clusterctl, variables) -> Manager:
    return Manager(settings, [], resources, clusterctl, variables, kubeconfig="/tmp/kubeconfig")


@pytest.fixture
def ready_cluster(resources: FakeResources) -> FakeResources:
    """A fully converged cluster ``default/demo`` with one worker group."""
    resources.put(cluster_obj())
    resources.put(control_plane_obj())
    resources.put(machine_deployment_obj())
    return resources
