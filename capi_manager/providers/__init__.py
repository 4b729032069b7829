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

"""Infrastructure providers and the ``name[:version]`` factory."""

from __future__ import annotations

from capi_manager.constants import AWS_PROVIDER_NAME, SIDERO_PROVIDER_NAME
from capi_manager.errors import UnknownProviderType
from capi_manager.providers.aws import AWSDeployOptions, AWSProvider, AWSSetupOptions
from capi_manager.providers.base import Provider, Variables
from capi_manager.providers.sidero import SideroDeployOptions, SideroProvider, SideroSetupOptions
from capi_manager.utils import parse_provider_token

PROVIDERS: dict[str, type[Provider]] = {
    AWS_PROVIDER_NAME: AWSProvider,
    SIDERO_PROVIDER_NAME: SideroProvider,
}


def new_provider(token: str, *, namespace: str = "", watching_namespace: str = "") -> Provider:
    """Construct the provider variant named by a ``name[:version]`` token.

    Args:
        token: Provider token, e.g. ``aws`` or ``aws:v2.5.0``.
        namespace: Target namespace override.
        watching_namespace: Watching namespace override.

    Raises:
        MalformedProviderString: If the token cannot be parsed.
        UnknownProviderType: If the name is not a supported provider.
    """
    name, version = parse_provider_token(token)
    try:
        provider_cls = PROVIDERS[name]
    except KeyError:
        raise UnknownProviderType(name) from None
    return provider_cls(version=version, namespace=namespace, watching_namespace=watching_namespace)


__all__ = [
    "AWSDeployOptions",
    "AWSProvider",
    "AWSSetupOptions",
    "PROVIDERS",
    "Provider",
    "SideroDeployOptions",
    "SideroProvider",
    "SideroSetupOptions",
    "Variables",
    "new_provider",
]
