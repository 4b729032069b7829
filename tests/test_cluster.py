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

"""Tests for the workload cluster reference."""

from __future__ import annotations

import pytest

from capi_manager.errors import (
    CapiError,
    ClusterAPINotInstalled,
    ConvergenceTimeout,
    NotFoundError,
    RemoteAccessError,
)
from conftest import FakeResources, node_obj


@pytest.fixture
def workload() -> FakeResources:
    return FakeResources()


@pytest.fixture
def kubeconfigs(manager, resources, workload):
    seen: list[bytes] = []

    def factory(data: bytes) -> FakeResources:
        seen.append(data)
        return workload

    resources.add_kubeconfig_secret("demo", data=b"apiVersion: v1\nkind: Config\n")
    manager.workload_client_factory = factory
    return seen


@pytest.fixture
def cluster(manager, kubeconfigs):
    return manager.new_cluster("demo", "default", "v1beta1")


def test_sync_refreshes_snapshot(ready_cluster, cluster):
    assert cluster.snapshot is None
    assert cluster.sync().name == "demo"
    assert cluster.snapshot.kind == "Cluster"


def test_sync_not_found(resources, cluster):
    with pytest.raises(NotFoundError):
        cluster.sync()


def test_control_plane_and_workers(ready_cluster, cluster):
    assert cluster.control_plane().name == "demo-cp"
    assert [md.name for md in cluster.workers()] == ["demo-workers"]


def test_version_defaults_to_manager(manager):
    manager._version = "v1beta1"
    assert manager.new_cluster("demo", "default").version == "v1beta1"


def test_new_cluster_without_cluster_api(manager):
    assert manager.version == ""
    with pytest.raises(ClusterAPINotInstalled, match="not installed"):
        manager.new_cluster("demo", "default")


def test_workload_client_built_once_from_secret(cluster, kubeconfigs, workload):
    workload.nodes = [node_obj("cp-1", "10.5.0.2", control_plane=True)]
    cluster.sync_nodes()
    cluster.sync_nodes()
    assert kubeconfigs == [b"apiVersion: v1\nkind: Config\n"]


def test_sync_nodes(cluster, workload):
    workload.nodes = [
        node_obj("cp-1", "10.5.0.2", control_plane=True),
        node_obj("cp-2", "10.5.0.3", control_plane=True),
        node_obj("worker-1", "10.5.0.4"),
        node_obj("worker-2", None),
    ]
    cluster.sync_nodes()
    assert cluster.control_plane_nodes == ["10.5.0.2", "10.5.0.3"]
    assert cluster.worker_nodes == ["10.5.0.4"]


def test_external_address_fallback(cluster, workload):
    node = node_obj("cp-1", None, control_plane=True)
    node["status"]["addresses"] = [{"type": "ExternalIP", "address": "203.0.113.7"}]
    workload.nodes = [node]
    cluster.sync_nodes()
    assert cluster.control_plane_nodes == ["203.0.113.7"]


def test_sync_nodes_without_control_plane(cluster, workload):
    workload.nodes = [node_obj("worker-1", "10.5.0.4")]
    with pytest.raises(CapiError, match="control plane"):
        cluster.sync_nodes()


def test_missing_kubeconfig_secret(manager):
    with pytest.raises(NotFoundError):
        manager.new_cluster("other", "default", "v1beta1").sync_nodes()


def test_health(cluster, workload):
    workload.nodes = [node_obj("cp-1", "10.5.0.2", control_plane=True), node_obj("worker-1", "10.5.0.4")]
    cluster.health()


def test_health_retries_unreachable_workload(cluster, workload):
    workload.nodes = [node_obj("cp-1", "10.5.0.2", control_plane=True)]
    failures = [RemoteAccessError(503, "ServiceUnavailable", "list nodes")]
    list_nodes = workload.list_nodes

    def flaky_list_nodes():
        if failures:
            raise failures.pop()
        return list_nodes()

    workload.list_nodes = flaky_list_nodes
    cluster.health()
    assert failures == []


def test_health_waits_for_kubeconfig_secret(manager, resources, workload):
    manager.workload_client_factory = lambda data: workload
    workload.nodes = [node_obj("cp-1", "10.5.0.2", control_plane=True)]
    attempts = []
    get_secret = resources.get_secret

    def delayed_get_secret(namespace, name):
        attempts.append(name)
        if len(attempts) == 1:
            raise NotFoundError("Secret", name, namespace)
        return get_secret(namespace, name)

    resources.add_kubeconfig_secret("late")
    resources.get_secret = delayed_get_secret
    manager.new_cluster("late", "default", "v1beta1").health()
    assert attempts == ["late-kubeconfig", "late-kubeconfig"]


def test_health_times_out_on_unreachable_workload(cluster, workload, settings):
    workload.errors["list_nodes"] = RemoteAccessError(503, "ServiceUnavailable", "list nodes")
    cluster.manager.settings = settings.model_copy(update={"health_timeout": 0.05})
    with pytest.raises(ConvergenceTimeout) as exc_info:
        cluster.health()
    assert isinstance(exc_info.value.last_error.__cause__, RemoteAccessError)


@pytest.mark.parametrize("nodes", [[], [node_obj("worker-1", "10.5.0.4", ready=False)]])
def test_health_times_out(cluster, workload, settings, nodes):
    workload.nodes = nodes
    cluster.manager.settings = settings.model_copy(update={"health_timeout": 0.05})
    with pytest.raises(ConvergenceTimeout):
        cluster.health()
