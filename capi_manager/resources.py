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

"""Remote API access: typed core objects and loosely-typed Cluster API resources.

Every object crossing this boundary is a :class:`DynamicObject`, a thin wrapper
over the JSON representation that offers typed nested lookups. Lookups return
``None`` for a missing field and raise :class:`FieldTypeError` for a field of the
wrong type, so callers can tell the two apart.
"""

from __future__ import annotations

import copy
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

import yaml
from kubernetes import client, config
from kubernetes.client.exceptions import ApiException
from kubernetes.dynamic import DynamicClient
from kubernetes.dynamic.exceptions import ResourceNotFoundError

from capi_manager import logger
from capi_manager.errors import FieldNotFoundError, FieldTypeError, NotFoundError, RemoteAccessError

_MISSING = object()


# ============================================================================
# Dynamic objects
# ============================================================================

@dataclass(frozen=True)
class GroupVersionKind:
    """API group, version and kind of a resource."""

    group: str
    version: str
    kind: str

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version

    @classmethod
    def from_api_version(cls, api_version: str, kind: str) -> GroupVersionKind:
        group, _, version = api_version.rpartition("/")
        return cls(group=group, version=version, kind=kind)


@dataclass(frozen=True)
class ObjectRef:
    """Reference to a namespaced object of a given kind."""

    gvk: GroupVersionKind
    name: str
    namespace: str


class DynamicObject:
    """Schema-less view of a remote object with typed nested field access."""

    def __init__(self, obj: dict[str, Any]) -> None:
        self.object = obj

    def __repr__(self) -> str:
        return f"DynamicObject({self.kind} {self.namespace}/{self.name})"

    @property
    def api_version(self) -> str:
        return self.object.get("apiVersion", "")

    @property
    def kind(self) -> str:
        return self.object.get("kind", "")

    @property
    def gvk(self) -> GroupVersionKind:
        return GroupVersionKind.from_api_version(self.api_version, self.kind)

    @property
    def name(self) -> str:
        return (self.object.get("metadata") or {}).get("name") or ""

    @property
    def namespace(self) -> str:
        return (self.object.get("metadata") or {}).get("namespace") or ""

    @property
    def labels(self) -> dict[str, str]:
        return (self.object.get("metadata") or {}).get("labels") or {}

    def to_dict(self) -> dict[str, Any]:
        return copy.deepcopy(self.object)

    def _lookup(self, path: tuple[str, ...]) -> Any:
        node: Any = self.object
        for depth, key in enumerate(path):
            if not isinstance(node, dict):
                raise FieldTypeError(path[:depth], "map", node)
            node = node.get(key, _MISSING)
            if node is _MISSING or node is None:
                return _MISSING
        return node

    def _typed(self, path: tuple[str, ...], expected: type, label: str) -> Any:
        value = self._lookup(path)
        if value is _MISSING:
            return None
        # bool is an int subclass; never accept it as a number
        if not isinstance(value, expected) or (isinstance(value, bool) and expected is not bool):
            raise FieldTypeError(path, label, value)
        return value

    def nested_string(self, *path: str) -> str | None:
        return self._typed(path, str, "string")

    def nested_int(self, *path: str) -> int | None:
        return self._typed(path, int, "int")

    def nested_bool(self, *path: str) -> bool | None:
        return self._typed(path, bool, "bool")

    def nested_map(self, *path: str) -> dict[str, Any] | None:
        return self._typed(path, dict, "map")

    def nested_slice(self, *path: str) -> list[Any] | None:
        return self._typed(path, list, "slice")

    def required_string(self, *path: str) -> str:
        value = self.nested_string(*path)
        if value is None:
            raise FieldNotFoundError(*path)
        return value

    def set_nested(self, value: Any, *path: str) -> None:
        """Set a field, creating intermediate maps as needed."""
        node = self.object
        for depth, key in enumerate(path[:-1]):
            child = node.setdefault(key, {})
            if not isinstance(child, dict):
                raise FieldTypeError(path[:depth + 1], "map", child)
            node = child
        node[path[-1]] = value

    def ref(self, *path: str) -> ObjectRef:
        """Resolve an object reference stored at *path* (e.g. ``spec.controlPlaneRef``).

        Raises:
            FieldNotFoundError: If the reference or one of its fields is missing.
            FieldTypeError: If a reference field has the wrong type.
        """
        if self.nested_map(*path) is None:
            raise FieldNotFoundError(*path)
        name = self.required_string(*path, "name")
        namespace = self.nested_string(*path, "namespace") or self.namespace
        if not namespace:
            raise FieldNotFoundError(*path, "namespace")
        api_version = self.required_string(*path, "apiVersion")
        kind = self.required_string(*path, "kind")
        return ObjectRef(GroupVersionKind.from_api_version(api_version, kind), name, namespace)


# ============================================================================
# Resource client
# ============================================================================

@contextmanager
def _translate(kind: str, name: str = "", namespace: str | None = None, operation: str = "") -> Iterator[None]:
    """Map kubernetes client errors onto :class:`NotFoundError` / :class:`RemoteAccessError`."""
    try:
        yield
    except ResourceNotFoundError as err:
        raise NotFoundError(kind, name or "<kind>", namespace) from err
    except ApiException as err:
        if err.status == 404:
            raise NotFoundError(kind, name, namespace) from err
        raise RemoteAccessError(err.status, err.reason or str(err), operation) from err


class ResourceClient:
    """Access to the management (or workload) cluster API server.

    Args:
        api_client: Configured kubernetes ``ApiClient``.
    """

    def __init__(self, api_client: client.ApiClient) -> None:
        self._api_client = api_client
        self._core = client.CoreV1Api(api_client)
        self._apps = client.AppsV1Api(api_client)
        self._dynamic: DynamicClient | None = None

    @classmethod
    def from_kubeconfig(cls, path: str, context: str | None = None) -> ResourceClient:
        return cls(config.new_client_from_config(config_file=path, context=context or None))

    @classmethod
    def from_kubeconfig_bytes(cls, data: bytes | str) -> ResourceClient:
        return cls(config.new_client_from_config_dict(yaml.safe_load(data)))

    @property
    def dynamic(self) -> DynamicClient:
        if self._dynamic is None:
            with _translate("APIResourceList", operation="discovery"):
                self._dynamic = DynamicClient(self._api_client)
        return self._dynamic

    def _wrap(self, obj: Any) -> DynamicObject:
        return DynamicObject(self._api_client.sanitize_for_serialization(obj))

    # -- typed core objects --

    def get_namespace(self, name: str) -> DynamicObject:
        with _translate("Namespace", name, operation="get namespace"):
            return self._wrap(self._core.read_namespace(name))

    def get_deployment(self, namespace: str, name: str) -> DynamicObject:
        with _translate("Deployment", name, namespace, operation="get deployment"):
            return self._wrap(self._apps.read_namespaced_deployment(name, namespace))

    def get_secret(self, namespace: str, name: str) -> DynamicObject:
        with _translate("Secret", name, namespace, operation="get secret"):
            return self._wrap(self._core.read_namespaced_secret(name, namespace))

    def list_nodes(self) -> list[DynamicObject]:
        with _translate("Node", operation="list nodes"):
            return [self._wrap(node) for node in self._core.list_node().items]

    # -- discovery --

    def preferred_resources(self) -> list[tuple[str, list[str]]]:
        """Return ``(groupVersion, kinds)`` for the preferred version of every API group."""
        result: list[tuple[str, list[str]]] = []
        with _translate("APIGroupList", operation="discovery"):
            groups = client.ApisApi(self._api_client).get_api_versions().groups or []
            for group in groups:
                group_version = group.preferred_version.group_version
                data = self._api_client.call_api(
                    f"/apis/{group_version}", "GET",
                    auth_settings=["BearerToken"],
                    response_type="object",
                    _return_http_data_only=True,
                )
                kinds = sorted({
                    resource["kind"] for resource in (data or {}).get("resources", [])
                    if "/" not in resource.get("name", "")
                })
                result.append((group_version, kinds))
        logger.debug("Discovered %d preferred API group versions", len(result))
        return result

    # -- dynamic objects --

    def _resource(self, gvk: GroupVersionKind):
        with _translate(gvk.kind, operation="resolve resource"):
            return self.dynamic.resources.get(api_version=gvk.api_version, kind=gvk.kind)

    def get(self, gvk: GroupVersionKind, name: str, namespace: str) -> DynamicObject:
        resource = self._resource(gvk)
        with _translate(gvk.kind, name, namespace, operation=f"get {gvk.kind}"):
            return DynamicObject(resource.get(name=name, namespace=namespace).to_dict())

    def list(
        self,
        gvk: GroupVersionKind,
        namespace: str | None = None,
        label_selector: str | None = None,
    ) -> list[DynamicObject]:
        resource = self._resource(gvk)
        with _translate(gvk.kind, namespace=namespace, operation=f"list {gvk.kind}"):
            result = resource.get(namespace=namespace, label_selector=label_selector).to_dict()
        return [DynamicObject(item) for item in result.get("items", [])]

    def create(self, obj: DynamicObject) -> DynamicObject:
        resource = self._resource(obj.gvk)
        namespace = obj.namespace if resource.namespaced else None
        with _translate(obj.kind, obj.name, namespace, operation=f"create {obj.kind}"):
            return DynamicObject(resource.create(body=obj.to_dict(), namespace=namespace).to_dict())

    def update(self, obj: DynamicObject) -> DynamicObject:
        resource = self._resource(obj.gvk)
        namespace = obj.namespace if resource.namespaced else None
        with _translate(obj.kind, obj.name, namespace, operation=f"update {obj.kind}"):
            return DynamicObject(resource.replace(body=obj.to_dict(), namespace=namespace).to_dict())
