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

"""AWS (CAPA) infrastructure provider."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from capi_manager.constants import AWS_CAPA_DEPLOYMENT, AWS_CAPA_NAMESPACE, AWS_PROVIDER_NAME
from capi_manager.errors import InvalidConfiguration, InvalidProviderOptions
from capi_manager.providers.base import Provider, Variables


@dataclass(frozen=True)
class AWSSetupOptions:
    """AWS install-time options.

    Attributes:
        credentials: Base64 encoded AWS credentials profile.
    """

    credentials: str = ""


@dataclass(frozen=True)
class AWSDeployOptions:
    """AWS cluster template options. Empty values leave template defaults untouched."""

    cloud_provider_version: str = "v1.20.0-alpha.0"
    control_plane_ami_id: str = ""
    control_plane_addl_sec_groups: str = ""
    control_plane_iam_profile: str = ""
    control_plane_machine_type: str = "t3.large"
    control_plane_vol_size: int = 50
    node_ami_id: str = ""
    node_addl_sec_groups: str = ""
    node_iam_profile: str = ""
    node_machine_type: str = "t3.large"
    node_vol_size: int = 50
    region: str = ""
    subnet: str = ""
    ssh_key_name: str = ""
    vpc_id: str = ""


def _size(value: int) -> str:
    return str(value) if value > 0 else ""


class AWSProvider(Provider):
    provider_name = AWS_PROVIDER_NAME
    default_namespace = AWS_CAPA_NAMESPACE
    controller_deployment = AWS_CAPA_DEPLOYMENT

    def __init__(self, version: str = "", namespace: str = "", watching_namespace: str = "") -> None:
        super().__init__(version, namespace, watching_namespace)
        self._setup = AWSSetupOptions()

    def configure(self, options: Any) -> None:
        if not isinstance(options, AWSSetupOptions):
            raise InvalidConfiguration(
                f"aws provider expects AWSSetupOptions, got {type(options).__name__}"
            )
        self._setup = options

    def provider_vars(self) -> Variables:
        return {"AWS_B64ENCODED_CREDENTIALS": self._setup.credentials}

    def cluster_vars(self, options: Any) -> Variables:
        if options is None:
            options = AWSDeployOptions()
        if not isinstance(options, AWSDeployOptions):
            raise InvalidProviderOptions(
                f"aws provider expects AWSDeployOptions, got {type(options).__name__}"
            )
        return {
            "AWS_CLOUD_PROVIDER_VERSION": options.cloud_provider_version,
            "AWS_CONTROL_PLANE_AMI_ID": options.control_plane_ami_id,
            "AWS_CONTROL_PLANE_ADDL_SEC_GROUPS": options.control_plane_addl_sec_groups,
            "AWS_CONTROL_PLANE_IAM_PROFILE": options.control_plane_iam_profile,
            "AWS_CONTROL_PLANE_MACHINE_TYPE": options.control_plane_machine_type,
            "AWS_CONTROL_PLANE_VOL_SIZE": _size(options.control_plane_vol_size),
            "AWS_NODE_AMI_ID": options.node_ami_id,
            "AWS_NODE_ADDL_SEC_GROUPS": options.node_addl_sec_groups,
            "AWS_NODE_IAM_PROFILE": options.node_iam_profile,
            "AWS_NODE_MACHINE_TYPE": options.node_machine_type,
            "AWS_NODE_VOL_SIZE": _size(options.node_vol_size),
            "AWS_REGION": options.region,
            "AWS_SUBNET": options.subnet,
            "AWS_SSH_KEY_NAME": options.ssh_key_name,
            "AWS_VPC_ID": options.vpc_id,
        }
