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

"""Error taxonomy for provider configuration, remote access, and convergence."""

from __future__ import annotations


class CapiError(Exception):
    """Base class for all capi_manager errors."""


# ============================================================================
# Configuration errors (fail fast, never retried)
# ============================================================================

class ConfigurationError(CapiError):
    """Invalid user-supplied configuration."""


class UnknownProviderType(ConfigurationError):
    def __init__(self, name: str) -> None:
        super().__init__(f"unknown infrastructure provider type {name}")
        self.name = name


class MalformedProviderString(ConfigurationError):
    def __init__(self, token: str) -> None:
        super().__init__(f"malformed provider string {token!r}, expected name[:version]")
        self.token = token


class InvalidConfiguration(ConfigurationError):
    """Setup options or configuration values do not match what is expected."""


class InvalidProviderOptions(ConfigurationError):
    """Deploy options passed to a provider are of the wrong variant."""


class InvalidDeployOptions(ConfigurationError):
    """Deploy options fail validation (e.g. negative node counts)."""


# ============================================================================
# Precondition errors
# ============================================================================

class PreconditionError(CapiError):
    """An operation cannot start because its inputs are ambiguous or missing."""


class NoProviderInstalled(PreconditionError):
    def __init__(self) -> None:
        super().__init__("no infrastructure providers are installed")


class ClusterAPINotInstalled(PreconditionError):
    def __init__(self) -> None:
        super().__init__("Cluster API is not installed: no cluster.x-k8s.io version was discovered")


class ProviderNotFound(PreconditionError):
    def __init__(self, name: str, version: str = "") -> None:
        suffix = f" (version {version})" if version else ""
        super().__init__(f"no provider with name {name}{suffix} is installed")
        self.name = name
        self.version = version


class InvalidReplicaCount(PreconditionError):
    def __init__(self, replicas: int) -> None:
        super().__init__(f"replica count must be >= 0, got {replicas}")
        self.replicas = replicas


class NoMachineDeployments(PreconditionError):
    def __init__(self, cluster: str) -> None:
        super().__init__(f"cluster {cluster} has no machine deployments")


class AmbiguousMachineGroup(PreconditionError):
    def __init__(self, cluster: str, names: list[str]) -> None:
        super().__init__(
            f"cluster {cluster} has several machine deployments ({', '.join(names)}), "
            "please provide a machine deployment name"
        )
        self.names = names


class MachineDeploymentNotFound(PreconditionError):
    def __init__(self, cluster: str, name: str) -> None:
        super().__init__(f"cluster {cluster} has no machine deployment named {name}")


# ============================================================================
# Dynamic object field errors
# ============================================================================

class FieldNotFoundError(CapiError):
    def __init__(self, *path: str) -> None:
        super().__init__(f"failed to find field {'.'.join(path)}")
        self.path = path


class FieldTypeError(CapiError):
    def __init__(self, path: tuple[str, ...], expected: str, actual: object) -> None:
        super().__init__(
            f"field {'.'.join(path)} has type {type(actual).__name__}, expected {expected}"
        )
        self.path = path


# ============================================================================
# Remote access errors
# ============================================================================

class NotFoundError(CapiError):
    """The requested object does not exist on the remote API server."""

    def __init__(self, kind: str, name: str, namespace: str | None = None) -> None:
        where = f"{namespace}/{name}" if namespace else name
        super().__init__(f"{kind} {where} not found")
        self.kind = kind
        self.name = name
        self.namespace = namespace


class RemoteAccessError(CapiError):
    """Any remote API failure other than "not found"."""

    def __init__(self, status: int | None, reason: str, operation: str = "") -> None:
        prefix = f"{operation}: " if operation else ""
        super().__init__(f"{prefix}remote API error ({status}): {reason}")
        self.status = status
        self.reason = reason


class InstallError(CapiError):
    """clusterctl init failed."""


class TemplateError(CapiError):
    """Cluster template could not be materialized."""


# ============================================================================
# Convergence
# ============================================================================

class ExpectedError(CapiError):
    """Transient convergence state; consumed by the polling driver and retried."""


class ConvergenceTimeout(CapiError):
    """Retry budget exhausted while the last attempt still reported an expected error."""

    def __init__(self, description: str, timeout: float, last_error: BaseException | None) -> None:
        detail = f": {last_error}" if last_error is not None else ""
        super().__init__(f"timed out after {timeout:g}s waiting for {description}{detail}")
        self.description = description
        self.timeout = timeout
        self.last_error = last_error


class OperationCancelled(CapiError):
    def __init__(self, description: str) -> None:
        super().__init__(f"cancelled while waiting for {description}")
