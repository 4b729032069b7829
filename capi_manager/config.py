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

"""Manager settings and the clusterctl configuration reader."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import requests
import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from capi_manager import logger
from capi_manager.constants import (
    CLUSTER_READY_TIMEOUT_SECONDS,
    CLUSTERCTL_CONFIG_EXTENSIONS,
    CLUSTERCTL_CONFIG_FOLDER,
    CLUSTERCTL_CONFIG_NAME,
    CONFIG_DOWNLOAD_TIMEOUT_SECONDS,
    CORE_PROVIDER_NAME,
    HEALTH_TIMEOUT_SECONDS,
    POLL_INTERVAL_SECONDS,
    PROVIDER_READY_TIMEOUT_SECONDS,
    SCALE_GRACE_PERIOD_SECONDS,
    WAIT_PROVIDER_TIMEOUT_SECONDS,
)
from capi_manager.errors import InvalidConfiguration


# ============================================================================
# Settings
# ============================================================================

class ManagerSettings(BaseSettings):
    """Orchestration session settings, auto-loaded from CAPI_* env vars.

    Attributes:
        kubeconfig: Path to the management cluster kubeconfig, or None to resolve.
        context: Kubeconfig context name, or None for the current context.
        clusterctl_config: Path or http(s) URL of the clusterctl config file.
        core_provider: Core provider token, empty to skip core installation.
        bootstrap_providers: Bootstrap provider tokens installed with core.
        control_plane_providers: Control-plane provider tokens installed with core.
        wait_providers: Whether clusterctl init should wait for providers.
        wait_provider_timeout: Seconds clusterctl init waits for providers.
        provider_ready_timeout: Seconds to wait for a provider controller to be ready.
        cluster_ready_timeout: Seconds to wait for a new cluster to converge.
        health_timeout: Seconds to wait for workload nodes to be ready.
        poll_interval: Fixed delay between readiness polls.
        scale_grace_period: Seconds to sleep after a replica change before polling.
    """

    model_config = SettingsConfigDict(env_prefix="CAPI_", extra="ignore")

    kubeconfig: str | None = None
    context: str | None = None
    clusterctl_config: str | None = None
    core_provider: str = CORE_PROVIDER_NAME
    bootstrap_providers: list[str] = Field(default_factory=lambda: ["talos"])
    control_plane_providers: list[str] = Field(default_factory=lambda: ["talos"])
    wait_providers: bool = True
    wait_provider_timeout: int = Field(default=WAIT_PROVIDER_TIMEOUT_SECONDS, ge=1)
    provider_ready_timeout: float = Field(default=PROVIDER_READY_TIMEOUT_SECONDS, ge=0)
    cluster_ready_timeout: float = Field(default=CLUSTER_READY_TIMEOUT_SECONDS, ge=0)
    health_timeout: float = Field(default=HEALTH_TIMEOUT_SECONDS, ge=0)
    poll_interval: float = Field(default=POLL_INTERVAL_SECONDS, ge=0)
    scale_grace_period: float = Field(default=SCALE_GRACE_PERIOD_SECONDS, ge=0)


def resolve_kubeconfig(settings: ManagerSettings) -> str:
    """Resolve the kubeconfig path: explicit setting, ``$KUBECONFIG``, then ``~/.kube/config``.

    Args:
        settings: Manager settings with an optional explicit kubeconfig.

    Returns:
        Path of the kubeconfig file to use.
    """
    if settings.kubeconfig:
        return settings.kubeconfig
    if os.environ.get("KUBECONFIG"):
        return os.environ["KUBECONFIG"]
    return str(Path.home() / ".kube" / "config")


# ============================================================================
# Configuration reader
# ============================================================================

def _default_config_file() -> Path | None:
    folder = Path.home() / CLUSTERCTL_CONFIG_FOLDER
    for ext in CLUSTERCTL_CONFIG_EXTENSIONS:
        candidate = folder / f"{CLUSTERCTL_CONFIG_NAME}.{ext}"
        if candidate.exists():
            return candidate
    return None


def _read_config_source(source: str) -> Any:
    if source.startswith(("http://", "https://")):
        try:
            resp = requests.get(source, timeout=CONFIG_DOWNLOAD_TIMEOUT_SECONDS)
        except requests.RequestException as err:
            raise InvalidConfiguration(f"failed to download the clusterctl config file from {source}: {err}") from err
        if resp.status_code != 200:
            raise InvalidConfiguration(
                f"failed to download the clusterctl config file from {source} got {resp.status_code}"
            )
        return yaml.safe_load(resp.text)

    path = Path(source)
    if not path.exists():
        raise InvalidConfiguration(f"clusterctl config file {source} does not exist")
    with open(path) as f:
        return yaml.safe_load(f)


def _scalar_text(value: Any) -> str:
    """Render a YAML scalar the way it is spelled in the config file."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class VariableStore:
    """Key to string store read by clusterctl when it renders templates.

    Lookup order is programmatic overrides, then environment variables, then
    scalar values from the clusterctl config file. The store never writes to
    the process environment; :meth:`environ` hands the merged view to
    subprocesses instead.

    Args:
        file_values: Variables loaded from the clusterctl config file.
        config_path: Local path of that file, passed to clusterctl as ``--config``.
        env: Environment to fall back on, defaults to ``os.environ``.
    """

    def __init__(
        self,
        file_values: Mapping[str, Any] | None = None,
        config_path: str | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._overrides: dict[str, str] = {}
        self._file_values = {
            key: _scalar_text(value) for key, value in (file_values or {}).items()
            if isinstance(value, (str, int, float, bool))
        }
        self._env = os.environ if env is None else env
        self.config_path = config_path

    @classmethod
    def load(cls, source: str | None = None) -> VariableStore:
        """Build a store from a clusterctl config path or URL.

        Args:
            source: Local path or http(s) URL; when None the default
                ``~/.cluster-api/clusterctl.{yaml,yml,json}`` is used if present.

        Raises:
            InvalidConfiguration: If the source cannot be read or is not a mapping.
        """
        config_path: str | None = None
        if source is None:
            default = _default_config_file()
            if default is None:
                return cls()
            source = str(default)
        if not source.startswith(("http://", "https://")):
            config_path = source

        data = _read_config_source(source) or {}
        if not isinstance(data, dict):
            raise InvalidConfiguration(f"clusterctl config {source} must be a mapping")
        logger.debug("Loaded clusterctl config from %s", source)
        return cls(file_values=data, config_path=config_path)

    def _env_lookup(self, key: str) -> str | None:
        env_key = key.replace("-", "_")
        for candidate in (env_key, env_key.upper()):
            if candidate in self._env:
                return self._env[candidate]
        return None

    def get(self, key: str) -> str:
        """Return the value for *key*.

        Raises:
            InvalidConfiguration: If the key is not set anywhere.
        """
        if key in self._overrides:
            return self._overrides[key]
        value = self._env_lookup(key)
        if value is not None:
            return value
        if key in self._file_values:
            return self._file_values[key]
        raise InvalidConfiguration(
            f"failed to get value for variable {key!r}. Please set the variable value "
            "using os env variables or using the clusterctl config file"
        )

    def set(self, key: str, value: str) -> None:
        self._overrides[key] = value

    def apply(self, variables: Mapping[str, str]) -> None:
        """Set every non-empty value; empty values keep the ambient default."""
        for key, value in variables.items():
            if value:
                self.set(key, value)

    def environ(self) -> dict[str, str]:
        """Merged view for a clusterctl subprocess environment."""
        merged = dict(self._file_values)
        merged.update(self._env)
        merged.update(self._overrides)
        return merged
