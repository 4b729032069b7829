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

"""Deploy options, option setters, provider resolution and template variables."""

from __future__ import annotations

import tempfile
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from capi_manager.constants import (
    DEFAULT_CLUSTER_NAMESPACE,
    DEFAULT_CONTROL_PLANE_NODES,
    DEFAULT_KUBERNETES_VERSION,
    DEFAULT_TALOS_VERSION,
    DEFAULT_WORKER_NODES,
    VAR_CLUSTER_NAME,
    VAR_CONTROL_PLANE_MACHINE_COUNT,
    VAR_KUBERNETES_VERSION,
    VAR_TALOS_VERSION,
    VAR_WORKER_MACHINE_COUNT,
)
from capi_manager.errors import InvalidDeployOptions, NoProviderInstalled, ProviderNotFound
from capi_manager.providers import Provider, Variables


@dataclass(frozen=True)
class DeployOptions:
    """Desired shape of a new workload cluster.

    Attributes:
        provider: Infrastructure provider name, empty for the first installed one.
        provider_version: Provider version to match, empty for any.
        cluster_namespace: Namespace the cluster objects are created in.
        talos_version: Talos version template variable.
        kubernetes_version: Kubernetes version template variable.
        control_plane_nodes: Desired control-plane replicas.
        worker_nodes: Desired worker replicas.
        template: In-memory cluster template, takes precedence over *template_file*.
        template_file: Cluster template path or URL.
        provider_options: Provider-specific deploy options, None for defaults.
    """

    provider: str = ""
    provider_version: str = ""
    cluster_namespace: str = DEFAULT_CLUSTER_NAMESPACE
    talos_version: str = DEFAULT_TALOS_VERSION
    kubernetes_version: str = DEFAULT_KUBERNETES_VERSION
    control_plane_nodes: int = DEFAULT_CONTROL_PLANE_NODES
    worker_nodes: int = DEFAULT_WORKER_NODES
    template: bytes | None = None
    template_file: str = ""
    provider_options: Any = None


DeployOption = Callable[[DeployOptions], DeployOptions]


# ============================================================================
# Option setters
# ============================================================================

def with_control_plane_nodes(count: int) -> DeployOption:
    return lambda options: replace(options, control_plane_nodes=count)


def with_worker_nodes(count: int) -> DeployOption:
    return lambda options: replace(options, worker_nodes=count)


def with_provider(name: str) -> DeployOption:
    return lambda options: replace(options, provider=name)


def with_provider_version(version: str) -> DeployOption:
    return lambda options: replace(options, provider_version=version)


def with_talos_version(version: str) -> DeployOption:
    return lambda options: replace(options, talos_version=version)


def with_kubernetes_version(version: str) -> DeployOption:
    return lambda options: replace(options, kubernetes_version=version)


def with_template_file(path: str) -> DeployOption:
    return lambda options: replace(options, template_file=path)


def with_template(data: bytes | str) -> DeployOption:
    """Use an in-memory template instead of a file or the provider default."""
    raw = data.encode() if isinstance(data, str) else data
    return lambda options: replace(options, template=raw)


def with_provider_options(provider_options: Any) -> DeployOption:
    return lambda options: replace(options, provider_options=provider_options)


def with_cluster_namespace(namespace: str) -> DeployOption:
    return lambda options: replace(options, cluster_namespace=namespace)


def with_deploy_options(deploy_options: DeployOptions) -> DeployOption:
    """Replace the whole options value."""
    return lambda _: deploy_options


def build_deploy_options(*setters: DeployOption) -> DeployOptions:
    """Apply *setters* in order over the default baseline and validate the result.

    Raises:
        InvalidDeployOptions: If a node count is negative or the namespace is empty.
    """
    options = DeployOptions()
    for setter in setters:
        options = setter(options)
    if options.control_plane_nodes < 0:
        raise InvalidDeployOptions(f"control plane nodes must be >= 0, got {options.control_plane_nodes}")
    if options.worker_nodes < 0:
        raise InvalidDeployOptions(f"worker nodes must be >= 0, got {options.worker_nodes}")
    if not options.cluster_namespace:
        raise InvalidDeployOptions("cluster namespace must not be empty")
    return options


# ============================================================================
# Pipeline helpers
# ============================================================================

def resolve_provider(providers: Sequence[Provider], options: DeployOptions) -> Provider:
    """Pick the deployment target among installed providers.

    Args:
        providers: Installed providers, in discovery order.
        options: Deploy options carrying an optional name and version.

    Returns:
        The first installed provider when no name is set, else the exact match.

    Raises:
        NoProviderInstalled: If *providers* is empty.
        ProviderNotFound: If no installed provider matches name and version.
    """
    if not providers:
        raise NoProviderInstalled()
    if not options.provider:
        return providers[0]
    for provider in providers:
        if provider.name != options.provider:
            continue
        if options.provider_version and provider.version != options.provider_version:
            continue
        return provider
    raise ProviderNotFound(options.provider, options.provider_version)


def common_vars(cluster_name: str, options: DeployOptions) -> Variables:
    return {
        VAR_TALOS_VERSION: options.talos_version,
        VAR_KUBERNETES_VERSION: options.kubernetes_version,
        VAR_CLUSTER_NAME: cluster_name,
        VAR_CONTROL_PLANE_MACHINE_COUNT: str(options.control_plane_nodes),
        VAR_WORKER_MACHINE_COUNT: str(options.worker_nodes),
    }


@contextmanager
def template_source(options: DeployOptions) -> Iterator[str | None]:
    """Yield the URL-style template source for clusterctl.

    In-memory templates are written to a temporary file that is removed on exit.
    None means the provider's default template.
    """
    if options.template is None:
        yield options.template_file or None
        return

    tmp = tempfile.NamedTemporaryFile(delete=False, prefix="cluster-template-", suffix=".yaml")
    try:
        tmp.write(options.template)
        tmp.flush()
        tmp.close()
        yield tmp.name
    finally:
        Path(tmp.name).unlink(missing_ok=True)
