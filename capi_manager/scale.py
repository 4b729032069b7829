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

"""Scale a cluster's control plane or worker group and wait for convergence."""

from __future__ import annotations

import threading
import time
from enum import Enum

from capi_manager import console, logger
from capi_manager.cluster import Cluster
from capi_manager.errors import (
    AmbiguousMachineGroup,
    ExpectedError,
    InvalidReplicaCount,
    MachineDeploymentNotFound,
    NoMachineDeployments,
    OperationCancelled,
)
from capi_manager.polling import poll
from capi_manager.readiness import check_cluster_ready
from capi_manager.resources import DynamicObject, ObjectRef


class NodeGroup(str, Enum):
    CONTROL_PLANES = "control-planes"
    WORKERS = "workers"


def select_target(cluster: Cluster, nodes: NodeGroup, machine_deployment: str | None = None) -> DynamicObject:
    """Resolve the object whose ``spec.replicas`` is scaled.

    Raises:
        NoMachineDeployments: If the cluster has no worker groups.
        AmbiguousMachineGroup: If several worker groups exist and none is named.
        MachineDeploymentNotFound: If the named worker group does not exist.
    """
    if nodes == NodeGroup.CONTROL_PLANES:
        return cluster.control_plane()

    deployments = cluster.workers()
    if machine_deployment:
        for deployment in deployments:
            if deployment.name == machine_deployment:
                return deployment
        raise MachineDeploymentNotFound(cluster.name, machine_deployment)
    if not deployments:
        raise NoMachineDeployments(cluster.name)
    if len(deployments) > 1:
        raise AmbiguousMachineGroup(cluster.name, sorted(d.name for d in deployments))
    return deployments[0]


def _grace_sleep(seconds: float, cancel: threading.Event | None, description: str) -> None:
    if cancel is None:
        time.sleep(seconds)
    elif cancel.wait(seconds):
        raise OperationCancelled(description)


def _check_scaled(cluster: Cluster, ref: ObjectRef, replicas: int) -> None:
    current = cluster.resources.get(ref.gvk, ref.name, ref.namespace).nested_int("status", "replicas")
    if current != replicas:
        raise ExpectedError(f"{ref.gvk.kind} {ref.name} has {current or 0} replicas, want {replicas}")
    check_cluster_ready(cluster)


def scale(
    cluster: Cluster,
    replicas: int,
    nodes: NodeGroup,
    *,
    machine_deployment: str | None = None,
    cancel: threading.Event | None = None,
) -> bool:
    """Set the desired replica count of a node group and wait for convergence.

    Args:
        cluster: Target cluster.
        replicas: Desired replica count.
        nodes: Control planes or workers.
        machine_deployment: Worker group name, required with several groups.
        cancel: Optional event aborting the wait.

    Returns:
        False if the group already had the requested count, True otherwise.

    Raises:
        InvalidReplicaCount: If *replicas* is negative, before any remote call.
        ConvergenceTimeout: If the cluster does not converge in time.
    """
    if replicas < 0:
        raise InvalidReplicaCount(replicas)

    target = select_target(cluster, nodes, machine_deployment)
    if target.nested_int("spec", "replicas") == replicas:
        console.print(f"[green]\u2705 {target.kind} {target.name} already has {replicas} replicas[/green]")
        return False

    ref = ObjectRef(target.gvk, target.name, target.namespace)
    logger.info("Scaling %s %s to %d replicas", target.kind, target.name, replicas)
    target.set_nested(replicas, "spec", "replicas")
    cluster.resources.update(target)

    settings = cluster.settings
    description = f"{target.kind} {target.name} to scale to {replicas}"
    _grace_sleep(settings.scale_grace_period, cancel, description)
    poll(
        lambda: _check_scaled(cluster, ref, replicas),
        interval=settings.poll_interval,
        timeout=settings.cluster_ready_timeout,
        description=description,
        cancel=cancel,
    )
    cluster.sync_nodes()
    console.print(f"[green]\u2705 {target.kind} {target.name} scaled to {replicas} replicas[/green]")
    return True
