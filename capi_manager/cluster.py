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

"""Workload cluster reference: snapshot sync, machine groups, nodes and health."""

from __future__ import annotations

import base64
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING

from capi_manager import logger
from capi_manager.constants import (
    ADDRESS_EXTERNAL_IP,
    ADDRESS_INTERNAL_IP,
    CAPI_GROUP,
    CLUSTER_NAME_LABEL,
    CONDITION_READY,
    CONDITION_TRUE,
    KIND_CLUSTER,
    KIND_MACHINE_DEPLOYMENT,
    KUBECONFIG_SECRET_KEY,
    KUBECONFIG_SECRET_SUFFIX,
    LABEL_CONTROL_PLANE,
)
from capi_manager.errors import CapiError, ExpectedError, FieldNotFoundError
from capi_manager.polling import poll
from capi_manager.resources import DynamicObject, GroupVersionKind, ResourceClient

if TYPE_CHECKING:
    from capi_manager.config import ManagerSettings
    from capi_manager.manager import Manager

WorkloadClientFactory = Callable[[bytes], ResourceClient]


def condition_status(obj: DynamicObject, condition_type: str) -> str | None:
    """Return the status string of a named condition in ``status.conditions``."""
    for condition in obj.nested_slice("status", "conditions") or []:
        if isinstance(condition, dict) and condition.get("type") == condition_type:
            return condition.get("status")
    return None


def node_address(node: DynamicObject) -> str | None:
    """Prefer the internal address of a node, fall back to the external one."""
    addresses = node.nested_slice("status", "addresses") or []
    for address_type in (ADDRESS_INTERNAL_IP, ADDRESS_EXTERNAL_IP):
        for address in addresses:
            if isinstance(address, dict) and address.get("type") == address_type:
                return address.get("address")
    return None


class Cluster:
    """Reference to a workload cluster managed by Cluster API.

    The declarative snapshot is never assumed fresh: :meth:`sync` re-reads it
    and every status read goes through a fresh sync.

    Args:
        manager: Owning orchestration session.
        name: Cluster name.
        namespace: Cluster namespace.
        version: Cluster API version (e.g. ``v1beta1``), defaults to the manager's.
    """

    def __init__(self, manager: Manager, name: str, namespace: str, version: str = "") -> None:
        self.manager = manager
        self.name = name
        self.namespace = namespace
        self.version = version or manager.version
        self.control_plane_nodes: list[str] = []
        self.worker_nodes: list[str] = []
        self._snapshot: DynamicObject | None = None
        self._workload: ResourceClient | None = None

    def __repr__(self) -> str:
        return f"Cluster({self.namespace}/{self.name})"

    @property
    def resources(self) -> ResourceClient:
        return self.manager.resources

    @property
    def settings(self) -> ManagerSettings:
        return self.manager.settings

    @property
    def snapshot(self) -> DynamicObject | None:
        """Last synced declarative object, None before the first sync."""
        return self._snapshot

    def gvk(self, kind: str) -> GroupVersionKind:
        return GroupVersionKind(CAPI_GROUP, self.version, kind)

    def sync(self) -> DynamicObject:
        """Re-read the Cluster object.

        Raises:
            NotFoundError: If the Cluster object does not exist (yet).
        """
        self._snapshot = self.resources.get(self.gvk(KIND_CLUSTER), self.name, self.namespace)
        return self._snapshot

    def control_plane(self, snapshot: DynamicObject | None = None) -> DynamicObject:
        """Fetch the object referenced by ``spec.controlPlaneRef``.

        Args:
            snapshot: Freshly synced Cluster object; synced here when omitted.
        """
        obj = snapshot if snapshot is not None else self.sync()
        ref = obj.ref("spec", "controlPlaneRef")
        return self.resources.get(ref.gvk, ref.name, ref.namespace)

    def workers(self) -> list[DynamicObject]:
        """MachineDeployments labelled with this cluster's name."""
        return self.resources.list(
            self.gvk(KIND_MACHINE_DEPLOYMENT),
            namespace=self.namespace,
            label_selector=f"{CLUSTER_NAME_LABEL}={self.name}",
        )

    # -- workload cluster access --

    def kubeconfig(self) -> bytes:
        """Workload cluster kubeconfig from the ``<name>-kubeconfig`` secret."""
        secret = self.resources.get_secret(self.namespace, f"{self.name}{KUBECONFIG_SECRET_SUFFIX}")
        encoded = secret.nested_string("data", KUBECONFIG_SECRET_KEY)
        if encoded is None:
            raise FieldNotFoundError("data", KUBECONFIG_SECRET_KEY)
        return base64.b64decode(encoded)

    @property
    def workload(self) -> ResourceClient:
        if self._workload is None:
            factory: WorkloadClientFactory = self.manager.workload_client_factory
            self._workload = factory(self.kubeconfig())
        return self._workload

    def sync_nodes(self) -> None:
        """Refresh the cached control-plane and worker node addresses.

        Raises:
            CapiError: If no control-plane node address is found.
        """
        control_planes: list[str] = []
        workers: list[str] = []
        for node in self.workload.list_nodes():
            address = node_address(node)
            if address is None:
                logger.debug("Node %s has no address yet", node.name)
                continue
            if LABEL_CONTROL_PLANE in node.labels:
                control_planes.append(address)
            else:
                workers.append(address)
        if not control_planes:
            raise CapiError(f"failed to find control plane nodes of cluster {self.name}")
        self.control_plane_nodes = control_planes
        self.worker_nodes = workers
        logger.info(
            "Cluster %s: %d control plane node(s), %d worker node(s)",
            self.name, len(control_planes), len(workers),
        )

    def check_nodes_ready(self) -> None:
        nodes = self.workload.list_nodes()
        if not nodes:
            raise ExpectedError(f"cluster {self.name} has no nodes yet")
        for node in nodes:
            if condition_status(node, CONDITION_READY) != CONDITION_TRUE:
                raise ExpectedError(f"node {node.name} is not ready")

    def health(self, cancel: threading.Event | None = None) -> None:
        """Wait until every workload node reports ``Ready=True``.

        A freshly booted workload cluster is unreliable: its kubeconfig secret
        may not be published yet and its API server may refuse requests. Any
        error while reaching it is retried until the health timeout.
        """

        def _check() -> None:
            try:
                self.check_nodes_ready()
            except ExpectedError:
                raise
            except CapiError as err:
                raise ExpectedError(f"cluster {self.name} is not reachable yet: {err}") from err

        poll(
            _check,
            interval=self.settings.poll_interval,
            timeout=self.settings.health_timeout,
            description=f"cluster {self.name} nodes",
            cancel=cancel,
        )
