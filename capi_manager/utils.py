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

"""Utility functions for provider tokens and command checks."""

from __future__ import annotations

import sh

from capi_manager.errors import MalformedProviderString


def parse_provider_token(token: str) -> tuple[str, str]:
    """Split a ``name[:version]`` provider token.

    Args:
        token: Provider token such as ``aws`` or ``aws:v2.5.0``.

    Returns:
        Tuple of (name, version); version is empty when not pinned.

    Raises:
        MalformedProviderString: If the name is empty or the token has extra parts.
    """
    parts = token.strip().split(":")
    if not parts[0] or len(parts) > 2 or (len(parts) == 2 and not parts[1]):
        raise MalformedProviderString(token)
    return parts[0], parts[1] if len(parts) == 2 else ""


def provider_token(name: str, version: str = "") -> str:
    """Inverse of :func:`parse_provider_token`."""
    return f"{name}:{version}" if version else name


def require_command(cmd: str) -> None:
    """Check if a command exists on the system PATH.

    Args:
        cmd: Name of the CLI command to check.

    Raises:
        RuntimeError: If the command is not found.
    """
    try:
        sh.which(cmd)
    except sh.ErrorReturnCode as err:
        raise RuntimeError(f"Required command '{cmd}' not found. Please install it first.") from err
