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

"""
cli.py - Cluster API lifecycle management.

Subcommands:
    bootstrap  Install Cluster API core and infrastructure providers
    cluster    Create, scale and health-check workload clusters

Examples:
    # Install core providers and the AWS infrastructure provider
    capi-manager bootstrap all --providers aws --aws-base64-encoded-credentials "$AWS_B64"

    # Create a cluster with 3 control planes and 2 workers, then wait for its nodes
    capi-manager cluster create --name demo --control-plane-nodes 3 --worker-nodes 2

    # Scale the workers of a cluster
    capi-manager cluster scale --name demo --nodes workers --replicas 4

Environment Variables:
    All session settings can be overridden via CAPI_* environment variables,
    e.g. CAPI_KUBECONFIG, CAPI_CLUSTER_READY_TIMEOUT, CAPI_POLL_INTERVAL.
"""

from __future__ import annotations

import logging
import sys

import typer

from capi_manager import console
from capi_manager.commands import bootstrap_cmd, cluster_cmd
from capi_manager.config import ManagerSettings

app = typer.Typer(
    help="Cluster API lifecycle management.",
    no_args_is_help=True,
)


@app.callback()
def _main_callback(
    ctx: typer.Context,
    kubeconfig: str | None = typer.Option(
        None, "--kubeconfig", help="Management cluster kubeconfig (default: $KUBECONFIG or ~/.kube/config)"),
    context: str | None = typer.Option(
        None, "--context", help="Kubeconfig context to use"),
    clusterctl_config: str | None = typer.Option(
        None, "--clusterctl-config", help="clusterctl config file path or URL"),
    debug: bool = typer.Option(
        False, "--debug", help="Enable debug logging"),
) -> None:
    """Initialize logging and session settings for all subcommands."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )

    overrides: dict = {}
    if kubeconfig is not None:
        overrides["kubeconfig"] = kubeconfig
    if context is not None:
        overrides["context"] = context
    if clusterctl_config is not None:
        overrides["clusterctl_config"] = clusterctl_config
    settings = ManagerSettings()
    if overrides:
        settings = settings.model_copy(update=overrides)
    ctx.obj = settings


app.add_typer(bootstrap_cmd.app, name="bootstrap")
app.add_typer(cluster_cmd.app, name="cluster")


def main() -> None:
    try:
        app()
    except Exception as e:
        console.print(f"[red]\u274c {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
