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

"""Sidero (bare metal) infrastructure provider."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from capi_manager.constants import SIDERO_CAPS_DEPLOYMENT, SIDERO_NAMESPACE, SIDERO_PROVIDER_NAME
from capi_manager.errors import InvalidConfiguration, InvalidProviderOptions
from capi_manager.providers.base import Provider, Variables


@dataclass(frozen=True)
class SideroSetupOptions:
    """Sidero controller manager install-time options.

    Attributes:
        host_network: Run the controller manager in the host network namespace.
        deployment_strategy: Deployment strategy of the controller manager.
        api_endpoint: Endpoint advertised by the Sidero API.
        siderolink_endpoint: Endpoint advertised for SideroLink.
    """

    host_network: bool = False
    deployment_strategy: str = ""
    api_endpoint: str = ""
    siderolink_endpoint: str = ""


@dataclass(frozen=True)
class SideroDeployOptions:
    """Sidero cluster template options."""

    control_plane_endpoint: str = ""
    control_plane_port: int = 6443
    control_plane_server_class: str = "any"
    worker_server_class: str = "any"


class SideroProvider(Provider):
    provider_name = SIDERO_PROVIDER_NAME
    default_namespace = SIDERO_NAMESPACE
    controller_deployment = SIDERO_CAPS_DEPLOYMENT

    def __init__(self, version: str = "", namespace: str = "", watching_namespace: str = "") -> None:
        super().__init__(version, namespace, watching_namespace)
        self._setup = SideroSetupOptions()

    def configure(self, options: Any) -> None:
        if not isinstance(options, SideroSetupOptions):
            raise InvalidConfiguration(
                f"sidero provider expects SideroSetupOptions, got {type(options).__name__}"
            )
        self._setup = options

    def provider_vars(self) -> Variables:
        return {
            "SIDERO_CONTROLLER_MANAGER_HOST_NETWORK": "true" if self._setup.host_network else "",
            "SIDERO_CONTROLLER_MANAGER_DEPLOYMENT_STRATEGY": self._setup.deployment_strategy,
            "SIDERO_CONTROLLER_MANAGER_API_ENDPOINT": self._setup.api_endpoint,
            "SIDERO_CONTROLLER_MANAGER_SIDEROLINK_ENDPOINT": self._setup.siderolink_endpoint,
        }

    def cluster_vars(self, options: Any) -> Variables:
        if options is None:
            options = SideroDeployOptions()
        if not isinstance(options, SideroDeployOptions):
            raise InvalidProviderOptions(
                f"sidero provider expects SideroDeployOptions, got {type(options).__name__}"
            )
        return {
            "CONTROL_PLANE_ENDPOINT": options.control_plane_endpoint,
            "CONTROL_PLANE_PORT": str(options.control_plane_port) if options.control_plane_port > 0 else "",
            "CONTROL_PLANE_SERVERCLASS": options.control_plane_server_class,
            "WORKER_SERVERCLASS": options.worker_server_class,
        }
