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

"""Infrastructure provider contract and shared installed/ready checks."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any, ClassVar

from capi_manager.clusterctl import Clusterctl, TemplateOptions
from capi_manager.config import VariableStore
from capi_manager.errors import ExpectedError, NotFoundError
from capi_manager.polling import poll
from capi_manager.resources import DynamicObject, ResourceClient
from capi_manager.utils import provider_token

Variables = dict[str, str]


def check_deployment_ready(resources: ResourceClient, namespace: str, name: str) -> DynamicObject:
    """Single readiness evaluation of a controller deployment.

    Args:
        resources: Management cluster client.
        namespace: Deployment namespace.
        name: Deployment name.

    Returns:
        The deployment once ``readyReplicas == replicas`` and at least one replica is ready.

    Raises:
        ExpectedError: If the deployment is missing or not fully ready yet.
    """
    try:
        deployment = resources.get_deployment(namespace, name)
    except NotFoundError as err:
        raise ExpectedError(str(err)) from err
    ready = deployment.nested_int("status", "readyReplicas") or 0
    replicas = deployment.nested_int("status", "replicas") or 0
    if ready == 0 or ready != replicas:
        raise ExpectedError(f"deployment {namespace}/{name}: {ready}/{replicas} replicas ready")
    return deployment


def wait_deployment_ready(
    resources: ResourceClient,
    namespace: str,
    name: str,
    *,
    timeout: float,
    interval: float,
    cancel: threading.Event | None = None,
) -> None:
    """Block until :func:`check_deployment_ready` passes or the timeout elapses."""
    poll(
        lambda: check_deployment_ready(resources, namespace, name),
        interval=interval,
        timeout=timeout,
        description=f"deployment {namespace}/{name}",
        cancel=cancel,
    )


def namespace_and_deployment_exist(resources: ResourceClient, namespace: str, deployment: str) -> bool:
    """Installed check; "not found" means not installed, any other error propagates."""
    try:
        resources.get_namespace(namespace)
        resources.get_deployment(namespace, deployment)
    except NotFoundError:
        return False
    return True


class Provider(ABC):
    """Infrastructure provider descriptor.

    Args:
        version: Pinned provider version, empty for the latest release.
        namespace: Target namespace override, empty for the provider default.
        watching_namespace: Namespace the controller reconciles, empty for all.
    """

    provider_name: ClassVar[str]
    default_namespace: ClassVar[str]
    controller_deployment: ClassVar[str]

    def __init__(self, version: str = "", namespace: str = "", watching_namespace: str = "") -> None:
        self._version = version
        self._namespace = namespace or self.default_namespace
        self._watching_namespace = watching_namespace

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.token!r}, namespace={self._namespace!r})"

    @property
    def name(self) -> str:
        return self.provider_name

    @property
    def version(self) -> str:
        return self._version

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def watching_namespace(self) -> str:
        return self._watching_namespace

    @property
    def token(self) -> str:
        return provider_token(self.name, self.version)

    @abstractmethod
    def configure(self, options: Any) -> None:
        """Validate and store provider setup options.

        Raises:
            InvalidConfiguration: If *options* is not this provider's setup options type.
        """

    @abstractmethod
    def provider_vars(self) -> Variables:
        """Variables required at install time."""

    @abstractmethod
    def cluster_vars(self, options: Any) -> Variables:
        """Variables required to render a cluster template.

        Raises:
            InvalidProviderOptions: If *options* is not this provider's deploy options type.
        """

    def is_installed(self, resources: ResourceClient) -> bool:
        return namespace_and_deployment_exist(resources, self.namespace, self.controller_deployment)

    def wait_ready(
        self,
        resources: ResourceClient,
        *,
        timeout: float,
        interval: float,
        cancel: threading.Event | None = None,
    ) -> None:
        wait_deployment_ready(
            resources, self.namespace, self.controller_deployment,
            timeout=timeout, interval=interval, cancel=cancel,
        )

    def get_cluster_template(
        self,
        clusterctl: Clusterctl,
        options: TemplateOptions,
        variables: VariableStore,
    ) -> list[DynamicObject]:
        """Render a cluster template, defaulting to this provider's own template."""
        if not options.url_source:
            options = replace(options, infrastructure_provider=self.token)
        return clusterctl.generate_cluster(options, variables)
