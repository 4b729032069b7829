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

"""clusterctl wrapper: provider installation and cluster template rendering."""

from __future__ import annotations

from dataclasses import dataclass

import sh
import yaml

from capi_manager import logger
from capi_manager.config import VariableStore
from capi_manager.constants import WAIT_PROVIDER_TIMEOUT_SECONDS
from capi_manager.errors import InstallError, TemplateError
from capi_manager.resources import DynamicObject
from capi_manager.utils import require_command


@dataclass(frozen=True)
class InitOptions:
    """Scoped options for a single ``clusterctl init`` call.

    Attributes:
        kubeconfig: Management cluster kubeconfig path.
        context: Kubeconfig context, or None for the current one.
        core_provider: Core provider token, empty to skip.
        bootstrap_providers: Bootstrap provider tokens.
        control_plane_providers: Control-plane provider tokens.
        infrastructure_providers: Infrastructure provider tokens.
        target_namespace: Namespace to install providers into, empty for defaults.
        wait_providers: Whether clusterctl should wait for providers to be ready.
        wait_provider_timeout: Seconds clusterctl waits when *wait_providers* is set.
    """

    kubeconfig: str
    context: str | None = None
    core_provider: str = ""
    bootstrap_providers: tuple[str, ...] = ()
    control_plane_providers: tuple[str, ...] = ()
    infrastructure_providers: tuple[str, ...] = ()
    target_namespace: str = ""
    wait_providers: bool = False
    wait_provider_timeout: int = WAIT_PROVIDER_TIMEOUT_SECONDS


@dataclass(frozen=True)
class TemplateOptions:
    """Options for ``clusterctl generate cluster``.

    Attributes:
        kubeconfig: Management cluster kubeconfig path.
        context: Kubeconfig context, or None for the current one.
        cluster_name: Name of the cluster to render.
        target_namespace: Namespace the rendered objects are placed in.
        kubernetes_version: Kubernetes version for the cluster.
        control_plane_machine_count: Desired control-plane replicas.
        worker_machine_count: Desired worker replicas.
        infrastructure_provider: Provider token whose default template is used.
        url_source: Template path or URL; overrides the provider default.
    """

    kubeconfig: str
    cluster_name: str
    target_namespace: str
    kubernetes_version: str
    control_plane_machine_count: int
    worker_machine_count: int
    context: str | None = None
    infrastructure_provider: str = ""
    url_source: str | None = None


def _kubeconfig_args(kubeconfig: str, context: str | None) -> list[str]:
    args = ["--kubeconfig", kubeconfig]
    if context:
        args += ["--kubeconfig-context", context]
    return args


def init_args(options: InitOptions, config_path: str | None = None) -> list[str]:
    """Build ``clusterctl init`` arguments.

    Args:
        options: Scoped init options.
        config_path: Optional clusterctl config file path.

    Returns:
        Argument list without the binary name.
    """
    args = ["init", *_kubeconfig_args(options.kubeconfig, options.context)]
    if config_path:
        args += ["--config", config_path]
    if options.core_provider:
        args += ["--core", options.core_provider]
    if options.bootstrap_providers:
        args += ["--bootstrap", ",".join(options.bootstrap_providers)]
    if options.control_plane_providers:
        args += ["--control-plane", ",".join(options.control_plane_providers)]
    if options.infrastructure_providers:
        args += ["--infrastructure", ",".join(options.infrastructure_providers)]
    if options.target_namespace:
        args += ["--target-namespace", options.target_namespace]
    if options.wait_providers:
        args += ["--wait-providers", "--wait-provider-timeout", str(options.wait_provider_timeout)]
    return args


def generate_args(options: TemplateOptions, config_path: str | None = None) -> list[str]:
    """Build ``clusterctl generate cluster`` arguments.

    Args:
        options: Template options.
        config_path: Optional clusterctl config file path.

    Returns:
        Argument list without the binary name.
    """
    args = [
        "generate", "cluster", options.cluster_name,
        *_kubeconfig_args(options.kubeconfig, options.context),
        "--target-namespace", options.target_namespace,
        "--kubernetes-version", options.kubernetes_version,
        "--control-plane-machine-count", str(options.control_plane_machine_count),
        "--worker-machine-count", str(options.worker_machine_count),
    ]
    if config_path:
        args += ["--config", config_path]
    if options.url_source:
        args += ["--from", options.url_source]
    elif options.infrastructure_provider:
        args += ["--infrastructure", options.infrastructure_provider]
    return args


def parse_template(raw: str) -> list[DynamicObject]:
    """Parse a multi-document YAML stream into objects, skipping empty documents."""
    try:
        docs = list(yaml.safe_load_all(raw))
    except yaml.YAMLError as err:
        raise TemplateError(f"failed to parse cluster template: {err}") from err
    objects = []
    for doc in docs:
        if not doc:
            continue
        if not isinstance(doc, dict) or not doc.get("kind") or not doc.get("apiVersion"):
            raise TemplateError(f"cluster template contains an invalid object: {doc!r}")
        objects.append(DynamicObject(doc))
    return objects


class Clusterctl:
    """Runs the clusterctl binary with a :class:`VariableStore` as its environment.

    Args:
        binary: clusterctl executable name or path.
    """

    def __init__(self, binary: str = "clusterctl") -> None:
        self.binary = binary

    def _run(self, args: list[str], variables: VariableStore) -> str:
        require_command(self.binary)
        logger.debug("Running %s %s", self.binary, " ".join(args))
        return str(sh.Command(self.binary)(*args, _env=variables.environ()))

    def init(self, options: InitOptions, variables: VariableStore) -> None:
        """Install providers into the management cluster.

        Raises:
            InstallError: If clusterctl exits with an error.
        """
        try:
            self._run(init_args(options, variables.config_path), variables)
        except sh.ErrorReturnCode as err:
            raise InstallError(f"clusterctl init failed: {err.stderr.decode(errors='replace').strip()}") from err

    def generate_cluster(self, options: TemplateOptions, variables: VariableStore) -> list[DynamicObject]:
        """Render a cluster template into the objects to apply.

        Raises:
            TemplateError: If clusterctl fails or the output is not a valid object stream.
        """
        try:
            raw = self._run(generate_args(options, variables.config_path), variables)
        except sh.ErrorReturnCode as err:
            raise TemplateError(
                f"clusterctl generate cluster failed: {err.stderr.decode(errors='replace').strip()}"
            ) from err
        return parse_template(raw)
