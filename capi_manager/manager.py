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

"""Orchestration session: provider installation, state discovery and cluster deployment."""

from __future__ import annotations

import threading
from collections.abc import Sequence

from rich.panel import Panel

from capi_manager import console, logger
from capi_manager.cluster import Cluster, WorkloadClientFactory
from capi_manager.clusterctl import Clusterctl, InitOptions, TemplateOptions
from capi_manager.config import ManagerSettings, VariableStore, resolve_kubeconfig
from capi_manager.constants import (
    CAPI_GROUP,
    CLUSTERCTL_GROUP,
    CORE_CAPI_DEPLOYMENT,
    CORE_CAPI_NAMESPACE,
    INFRASTRUCTURE_PROVIDER_TYPE,
    KIND_CLUSTER,
    KIND_PROVIDER,
)
from capi_manager.deploy import (
    DeployOption,
    build_deploy_options,
    common_vars,
    resolve_provider,
    template_source,
)
from capi_manager.errors import ClusterAPINotInstalled, TemplateError, UnknownProviderType
from capi_manager.providers import Provider, new_provider
from capi_manager.providers.base import namespace_and_deployment_exist, wait_deployment_ready
from capi_manager.readiness import check_cluster_ready, wait_cluster_ready
from capi_manager.resources import DynamicObject, GroupVersionKind, ResourceClient
from capi_manager.utils import provider_token


def _template_version(objects: Sequence[DynamicObject]) -> str:
    for obj in objects:
        gvk = obj.gvk
        if gvk.kind == KIND_CLUSTER and gvk.group == CAPI_GROUP:
            return gvk.version
    return ""


class Manager:
    """One orchestration session against a management cluster.

    The installed provider set and the Cluster API version are re-derived from
    the management cluster after every install and deploy.

    Args:
        settings: Session settings.
        providers: Providers to install, already configured with setup options.
        resources: Management cluster client.
        clusterctl: Installer and templating wrapper.
        variables: Configuration reader shared with clusterctl.
        kubeconfig: Management cluster kubeconfig path passed to clusterctl.
    """

    def __init__(
        self,
        settings: ManagerSettings,
        providers: Sequence[Provider],
        resources: ResourceClient,
        clusterctl: Clusterctl,
        variables: VariableStore,
        kubeconfig: str,
    ) -> None:
        self.settings = settings
        self.resources = resources
        self.clusterctl = clusterctl
        self.variables = variables
        self.kubeconfig = kubeconfig
        self.workload_client_factory: WorkloadClientFactory = ResourceClient.from_kubeconfig_bytes
        self._configured = list(providers)
        self._installed: list[Provider] = []
        self._version = ""

    @classmethod
    def create(cls, settings: ManagerSettings, providers: Sequence[Provider] = ()) -> Manager:
        """Connect to the management cluster and fetch its current state.

        Raises:
            InvalidConfiguration: If the clusterctl config cannot be loaded.
            RemoteAccessError: If discovery fails.
        """
        kubeconfig = resolve_kubeconfig(settings)
        resources = ResourceClient.from_kubeconfig(kubeconfig, settings.context)
        variables = VariableStore.load(settings.clusterctl_config)
        manager = cls(settings, providers, resources, Clusterctl(), variables, kubeconfig)
        manager.fetch_state()
        return manager

    @property
    def version(self) -> str:
        """Cluster API version served by the management cluster, empty if not installed."""
        return self._version

    @property
    def providers(self) -> list[Provider]:
        """Infrastructure providers installed in the management cluster."""
        return list(self._installed)

    # ========================================================================
    # Installation
    # ========================================================================

    def install(self, cancel: threading.Event | None = None) -> None:
        """Install core (if configured) then every configured provider, then refresh state."""
        if self.settings.core_provider:
            self.install_core(cancel)
        for provider in self._configured:
            self.install_provider(provider, cancel)
        self.fetch_state()

    def _init_options(self, **kwargs) -> InitOptions:
        return InitOptions(
            kubeconfig=self.kubeconfig,
            context=self.settings.context,
            wait_providers=self.settings.wait_providers,
            wait_provider_timeout=self.settings.wait_provider_timeout,
            **kwargs,
        )

    def install_core(self, cancel: threading.Event | None = None) -> None:
        if namespace_and_deployment_exist(self.resources, CORE_CAPI_NAMESPACE, CORE_CAPI_DEPLOYMENT):
            logger.info("Cluster API core is already installed, skipping")
            return

        console.print(Panel.fit("Installing Cluster API core providers", style="bold blue"))
        self.clusterctl.init(
            self._init_options(
                core_provider=self.settings.core_provider,
                bootstrap_providers=tuple(self.settings.bootstrap_providers),
                control_plane_providers=tuple(self.settings.control_plane_providers),
            ),
            self.variables,
        )
        wait_deployment_ready(
            self.resources, CORE_CAPI_NAMESPACE, CORE_CAPI_DEPLOYMENT,
            timeout=self.settings.provider_ready_timeout,
            interval=self.settings.poll_interval,
            cancel=cancel,
        )
        console.print("[green]\u2705 Cluster API core providers are ready[/green]")

    def install_provider(self, provider: Provider, cancel: threading.Event | None = None) -> None:
        if provider.is_installed(self.resources):
            logger.info("Provider %s is already installed in %s, skipping", provider.name, provider.namespace)
            return

        console.print(Panel.fit(f"Installing infrastructure provider {provider.token}", style="bold blue"))
        self.variables.apply(provider.provider_vars())
        self.clusterctl.init(
            self._init_options(
                infrastructure_providers=(provider.token,),
                target_namespace=provider.namespace,
            ),
            self.variables,
        )
        provider.wait_ready(
            self.resources,
            timeout=self.settings.provider_ready_timeout,
            interval=self.settings.poll_interval,
            cancel=cancel,
        )
        console.print(f"[green]\u2705 Provider {provider.token} is ready[/green]")

    def fetch_state(self) -> None:
        """Re-derive the installed providers and the Cluster API version.

        Raises:
            FieldNotFoundError: If a provider record lacks type, name or version.
            RemoteAccessError: If discovery or listing fails.
        """
        version = ""
        provider_gvk: GroupVersionKind | None = None
        for group_version, kinds in self.resources.preferred_resources():
            group, _, gv_version = group_version.rpartition("/")
            if group == CAPI_GROUP and KIND_CLUSTER in kinds:
                version = gv_version
            elif group == CLUSTERCTL_GROUP and KIND_PROVIDER in kinds:
                provider_gvk = GroupVersionKind(group, gv_version, KIND_PROVIDER)

        installed: list[Provider] = []
        if provider_gvk is not None:
            for record in self.resources.list(provider_gvk):
                if record.required_string("type") != INFRASTRUCTURE_PROVIDER_TYPE:
                    continue
                name = record.required_string("providerName")
                provider_version = record.required_string("version")
                try:
                    provider = new_provider(
                        provider_token(name, provider_version),
                        namespace=record.namespace,
                        watching_namespace=record.nested_string("watchedNamespace") or "",
                    )
                except UnknownProviderType:
                    logger.debug("Skipping unsupported infrastructure provider %s", name)
                    continue
                installed.append(provider)

        self._version = version
        self._installed = installed
        logger.debug(
            "Cluster API version %r, installed providers: %s",
            version, ", ".join(p.token for p in installed) or "none",
        )

    # ========================================================================
    # Clusters
    # ========================================================================

    def new_cluster(self, name: str, namespace: str, version: str = "") -> Cluster:
        """Reference a cluster, using the discovered Cluster API version by default.

        Raises:
            ClusterAPINotInstalled: If no version is given and none was discovered.
        """
        if not (version or self._version):
            raise ClusterAPINotInstalled()
        return Cluster(self, name, namespace, version)

    def check_cluster_ready(self, cluster: Cluster) -> None:
        check_cluster_ready(cluster)

    def deploy_cluster(
        self,
        name: str,
        *setters: DeployOption,
        cancel: threading.Event | None = None,
    ) -> Cluster:
        """Render, apply and converge a new workload cluster.

        Args:
            name: Cluster name.
            *setters: Deploy option setters applied over the defaults.
            cancel: Optional event aborting the readiness wait.

        Returns:
            The synced cluster once it is ready.

        Raises:
            InvalidDeployOptions: If the options are invalid, before any remote call.
            NoProviderInstalled: If no infrastructure provider is installed.
            ProviderNotFound: If the requested provider is not installed.
            TemplateError: If the template cannot be rendered.
            ConvergenceTimeout: If the cluster is not ready in time.
        """
        options = build_deploy_options(*setters)
        provider = resolve_provider(self._installed, options)

        self.variables.apply(common_vars(name, options))
        self.variables.apply(provider.cluster_vars(options.provider_options))

        console.print(Panel.fit(
            f"Deploying cluster {options.cluster_namespace}/{name} on {provider.token}", style="bold blue"))
        with template_source(options) as source:
            objects = provider.get_cluster_template(
                self.clusterctl,
                TemplateOptions(
                    kubeconfig=self.kubeconfig,
                    context=self.settings.context,
                    cluster_name=name,
                    target_namespace=options.cluster_namespace,
                    kubernetes_version=options.kubernetes_version,
                    control_plane_machine_count=options.control_plane_nodes,
                    worker_machine_count=options.worker_nodes,
                    url_source=source,
                ),
                self.variables,
            )

        version = self._version or _template_version(objects)
        if not version:
            raise TemplateError(f"cluster template for {name} contains no {KIND_CLUSTER} object")

        for obj in objects:
            logger.info("Creating %s %s", obj.kind, obj.name)
            self.resources.create(obj)

        cluster = self.new_cluster(name, options.cluster_namespace, version)
        wait_cluster_ready(
            cluster,
            timeout=self.settings.cluster_ready_timeout,
            interval=self.settings.poll_interval,
            cancel=cancel,
        )
        self.fetch_state()
        cluster.sync()
        console.print(f"[green]\u2705 Cluster {name} is ready[/green]")
        return cluster
