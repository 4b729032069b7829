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

"""Cluster readiness predicate.

Each evaluation re-reads remote state. Transient states raise
:class:`~capi_manager.errors.ExpectedError` so the polling driver retries them;
any other error aborts the wait.
"""

from __future__ import annotations

import threading

from capi_manager.cluster import Cluster, condition_status
from capi_manager.constants import CONDITION_READY, CONDITION_TRUE, PHASE_RUNNING
from capi_manager.errors import ExpectedError, NotFoundError
from capi_manager.polling import poll
from capi_manager.resources import DynamicObject


def check_replicas(obj: DynamicObject, what: str) -> None:
    """Require ``status.readyReplicas == status.replicas``.

    Equality is strict: more ready replicas than desired is not converged either.
    """
    replicas = obj.nested_int("status", "replicas")
    if replicas is None:
        raise ExpectedError(f"{what}: replicas are not reported yet")
    ready = obj.nested_int("status", "readyReplicas") or 0
    if ready != replicas:
        raise ExpectedError(f"{what}: {ready}/{replicas} replicas ready, {replicas - ready} pending")


def check_cluster_ready(cluster: Cluster) -> None:
    """Evaluate cluster readiness once.

    Raises:
        ExpectedError: If any part of the cluster has not converged yet.
        FieldNotFoundError: If the cluster has no control plane reference.
        RemoteAccessError: On any remote failure other than "not found".
    """
    try:
        obj = cluster.sync()
    except NotFoundError as err:
        raise ExpectedError(f"cluster {cluster.name} does not exist yet") from err

    if obj.nested_slice("status", "conditions") is None:
        raise ExpectedError(f"cluster {cluster.name} status is unknown")
    if condition_status(obj, CONDITION_READY) != CONDITION_TRUE:
        raise ExpectedError(f"cluster {cluster.name} is not ready")

    try:
        control_plane = cluster.control_plane(obj)
    except NotFoundError as err:
        raise ExpectedError(f"control plane of cluster {cluster.name} does not exist yet") from err
    if not control_plane.nested_bool("status", "ready"):
        raise ExpectedError(f"control plane {control_plane.name} is not ready")
    if not control_plane.nested_bool("status", "initialized"):
        raise ExpectedError(f"control plane {control_plane.name} is not initialized")
    check_replicas(control_plane, f"control plane {control_plane.name}")

    for deployment in cluster.workers():
        phase = deployment.nested_string("status", "phase")
        if phase != PHASE_RUNNING:
            raise ExpectedError(f"machine deployment {deployment.name} is in phase {phase or 'unknown'}")
        check_replicas(deployment, f"machine deployment {deployment.name}")


def wait_cluster_ready(
    cluster: Cluster,
    *,
    timeout: float,
    interval: float,
    cancel: threading.Event | None = None,
) -> None:
    poll(
        lambda: check_cluster_ready(cluster),
        interval=interval,
        timeout=timeout,
        description=f"cluster {cluster.namespace}/{cluster.name} to be ready",
        cancel=cancel,
    )
