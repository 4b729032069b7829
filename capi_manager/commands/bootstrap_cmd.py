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

"""Bootstrap subcommands (core, infra, all)."""

from __future__ import annotations

import typer

from capi_manager.config import ManagerSettings
from capi_manager.manager import Manager
from capi_manager.providers import (
    AWSProvider,
    AWSSetupOptions,
    Provider,
    SideroProvider,
    SideroSetupOptions,
    new_provider,
)

app = typer.Typer(help="Install Cluster API providers into the management cluster.")

PROVIDERS_OPTION = typer.Option(
    "aws", "--providers", help="Comma separated infrastructure providers, name[:version]")
TARGET_NS_OPTION = typer.Option(
    "", "--target-ns", help="Namespace to install the providers into (default: provider namespace)")
WATCHING_NS_OPTION = typer.Option(
    "", "--watching-ns", help="Namespace the providers reconcile (default: all)")
AWS_CREDENTIALS_OPTION = typer.Option(
    "", "--aws-base64-encoded-credentials", envvar="AWS_B64ENCODED_CREDENTIALS",
    help="Base64 encoded AWS credentials")
SIDERO_HOST_NETWORK_OPTION = typer.Option(
    False, "--sidero-host-network", help="Run the Sidero controller manager in the host network")
SIDERO_STRATEGY_OPTION = typer.Option(
    "", "--sidero-deployment-strategy", help="Sidero controller manager deployment strategy")
SIDERO_API_ENDPOINT_OPTION = typer.Option(
    "", "--sidero-api-endpoint", help="Endpoint advertised by the Sidero API")
SIDERO_LINK_ENDPOINT_OPTION = typer.Option(
    "", "--sidero-siderolink-endpoint", help="Endpoint advertised for SideroLink")


def build_providers(
    tokens: str,
    *,
    target_ns: str = "",
    watching_ns: str = "",
    aws_credentials: str = "",
    sidero_setup: SideroSetupOptions | None = None,
) -> list[Provider]:
    """Construct and configure providers from a comma separated token list.

    Raises:
        MalformedProviderString: If a token cannot be parsed.
        UnknownProviderType: If a token names an unsupported provider.
    """
    providers: list[Provider] = []
    for token in (t.strip() for t in tokens.split(",")):
        if not token:
            continue
        provider = new_provider(token, namespace=target_ns, watching_namespace=watching_ns)
        if isinstance(provider, AWSProvider):
            provider.configure(AWSSetupOptions(credentials=aws_credentials))
        elif isinstance(provider, SideroProvider):
            provider.configure(sidero_setup or SideroSetupOptions())
        providers.append(provider)
    return providers


def _install(
    settings: ManagerSettings,
    providers: str,
    target_ns: str,
    watching_ns: str,
    aws_credentials: str,
    sidero_setup: SideroSetupOptions,
) -> None:
    manager = Manager.create(
        settings,
        build_providers(
            providers,
            target_ns=target_ns,
            watching_ns=watching_ns,
            aws_credentials=aws_credentials,
            sidero_setup=sidero_setup,
        ),
    )
    manager.install()


@app.command()
def core(ctx: typer.Context) -> None:
    """Install the Cluster API core, bootstrap and control-plane providers."""
    manager = Manager.create(ctx.obj)
    manager.install_core()
    manager.fetch_state()


@app.command()
def infra(
    ctx: typer.Context,
    providers: str = PROVIDERS_OPTION,
    target_ns: str = TARGET_NS_OPTION,
    watching_ns: str = WATCHING_NS_OPTION,
    aws_credentials: str = AWS_CREDENTIALS_OPTION,
    sidero_host_network: bool = SIDERO_HOST_NETWORK_OPTION,
    sidero_deployment_strategy: str = SIDERO_STRATEGY_OPTION,
    sidero_api_endpoint: str = SIDERO_API_ENDPOINT_OPTION,
    sidero_siderolink_endpoint: str = SIDERO_LINK_ENDPOINT_OPTION,
) -> None:
    """Install infrastructure providers only."""
    settings: ManagerSettings = ctx.obj
    _install(
        settings.model_copy(update={"core_provider": ""}),
        providers, target_ns, watching_ns, aws_credentials,
        SideroSetupOptions(
            host_network=sidero_host_network,
            deployment_strategy=sidero_deployment_strategy,
            api_endpoint=sidero_api_endpoint,
            siderolink_endpoint=sidero_siderolink_endpoint,
        ),
    )


@app.command("all")
def all_(
    ctx: typer.Context,
    providers: str = PROVIDERS_OPTION,
    target_ns: str = TARGET_NS_OPTION,
    watching_ns: str = WATCHING_NS_OPTION,
    aws_credentials: str = AWS_CREDENTIALS_OPTION,
    sidero_host_network: bool = SIDERO_HOST_NETWORK_OPTION,
    sidero_deployment_strategy: str = SIDERO_STRATEGY_OPTION,
    sidero_api_endpoint: str = SIDERO_API_ENDPOINT_OPTION,
    sidero_siderolink_endpoint: str = SIDERO_LINK_ENDPOINT_OPTION,
) -> None:
    """Install core providers, then infrastructure providers."""
    _install(
        ctx.obj,
        providers, target_ns, watching_ns, aws_credentials,
        SideroSetupOptions(
            host_network=sidero_host_network,
            deployment_strategy=sidero_deployment_strategy,
            api_endpoint=sidero_api_endpoint,
            siderolink_endpoint=sidero_siderolink_endpoint,
        ),
    )
