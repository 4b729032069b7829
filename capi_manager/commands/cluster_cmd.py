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

"""Cluster subcommands (create, scale, health)."""

from __future__ import annotations

from typing import Any

import typer

from capi_manager import console
from capi_manager.config import ManagerSettings
from capi_manager.constants import (
    AWS_PROVIDER_NAME,
    DEFAULT_CLUSTER_NAME,
    DEFAULT_CLUSTER_NAMESPACE,
    DEFAULT_CONTROL_PLANE_NODES,
    DEFAULT_KUBERNETES_VERSION,
    DEFAULT_TALOS_VERSION,
    DEFAULT_WORKER_NODES,
    SIDERO_PROVIDER_NAME,
)
from capi_manager.deploy import (
    with_cluster_namespace,
    with_control_plane_nodes,
    with_kubernetes_version,
    with_provider,
    with_provider_options,
    with_provider_version,
    with_talos_version,
    with_template_file,
    with_worker_nodes,
)
from capi_manager.manager import Manager
from capi_manager.providers import AWSDeployOptions, SideroDeployOptions
from capi_manager.scale import NodeGroup, scale as scale_cluster

app = typer.Typer(help="Create and operate workload clusters.")

NAME_OPTION = typer.Option(DEFAULT_CLUSTER_NAME, "--name", "-n", help="Cluster name")
NAMESPACE_OPTION = typer.Option(DEFAULT_CLUSTER_NAMESPACE, "--namespace", "-N", help="Cluster namespace")


def _provider_options(provider: str, aws: AWSDeployOptions, sidero: SideroDeployOptions) -> Any:
    if provider == AWS_PROVIDER_NAME:
        return aws
    if provider == SIDERO_PROVIDER_NAME:
        return sidero
    return None


@app.command()
def create(
    ctx: typer.Context,
    name: str = NAME_OPTION,
    namespace: str = NAMESPACE_OPTION,
    template: str = typer.Option(
        "", "--from", help="Cluster template path or URL (default: provider template)"),
    control_plane_nodes: int = typer.Option(
        DEFAULT_CONTROL_PLANE_NODES, "--control-plane-nodes", help="Number of control plane nodes"),
    worker_nodes: int = typer.Option(
        DEFAULT_WORKER_NODES, "--worker-nodes", help="Number of worker nodes"),
    provider: str = typer.Option(
        "", "--provider", help="Infrastructure provider (default: first installed)"),
    provider_version: str = typer.Option(
        "", "--provider-version", help="Infrastructure provider version"),
    kubernetes_version: str = typer.Option(
        DEFAULT_KUBERNETES_VERSION, "--kubernetes-version", help="Kubernetes version"),
    talos_version: str = typer.Option(
        DEFAULT_TALOS_VERSION, "--talos-version", help="Talos version"),
    # AWS
    aws_cloud_provider_version: str = typer.Option(
        AWSDeployOptions.cloud_provider_version, "--aws-cloud-provider-version", help="AWS cloud provider version"),
    aws_control_plane_ami_id: str = typer.Option(
        "", "--aws-control-plane-ami-id", help="AMI of the control plane nodes"),
    aws_control_plane_addl_sec_groups: str = typer.Option(
        "", "--aws-control-plane-addl-sec-groups", help="Additional security groups of the control plane nodes"),
    aws_control_plane_iam_profile: str = typer.Option(
        "", "--aws-control-plane-iam-profile", help="IAM profile of the control plane nodes"),
    aws_control_plane_machine_type: str = typer.Option(
        AWSDeployOptions.control_plane_machine_type, "--aws-control-plane-machine-type",
        help="Instance type of the control plane nodes"),
    aws_control_plane_vol_size: int = typer.Option(
        AWSDeployOptions.control_plane_vol_size, "--aws-control-plane-vol-size",
        help="Root volume size (GiB) of the control plane nodes"),
    aws_node_ami_id: str = typer.Option(
        "", "--aws-node-ami-id", help="AMI of the worker nodes"),
    aws_node_addl_sec_groups: str = typer.Option(
        "", "--aws-node-addl-sec-groups", help="Additional security groups of the worker nodes"),
    aws_node_iam_profile: str = typer.Option(
        "", "--aws-node-iam-profile", help="IAM profile of the worker nodes"),
    aws_node_machine_type: str = typer.Option(
        AWSDeployOptions.node_machine_type, "--aws-node-machine-type", help="Instance type of the worker nodes"),
    aws_node_vol_size: int = typer.Option(
        AWSDeployOptions.node_vol_size, "--aws-node-vol-size", help="Root volume size (GiB) of the worker nodes"),
    aws_region: str = typer.Option("", "--aws-region", help="AWS region"),
    aws_subnet: str = typer.Option("", "--aws-subnet", help="AWS subnet id"),
    aws_ssh_key_name: str = typer.Option("", "--aws-ssh-key-name", help="AWS SSH key pair name"),
    aws_vpc_id: str = typer.Option("", "--aws-vpc-id", help="AWS VPC id"),
    # Sidero
    sidero_control_plane_endpoint: str = typer.Option(
        "", "--sidero-control-plane-endpoint", help="Control plane endpoint of the cluster"),
    sidero_control_plane_port: int = typer.Option(
        SideroDeployOptions.control_plane_port, "--sidero-control-plane-port", help="Control plane port"),
    sidero_control_plane_server_class: str = typer.Option(
        SideroDeployOptions.control_plane_server_class, "--sidero-control-plane-server-class",
        help="Server class of the control plane nodes"),
    sidero_worker_server_class: str = typer.Option(
        SideroDeployOptions.worker_server_class, "--sidero-worker-server-class",
        help="Server class of the worker nodes"),
) -> None:
    """Deploy a cluster, wait for it to be ready, then wait for its nodes."""
    settings: ManagerSettings = ctx.obj
    manager = Manager.create(settings)

    target = provider or (manager.providers[0].name if manager.providers else "")
    provider_options = _provider_options(
        target,
        AWSDeployOptions(
            cloud_provider_version=aws_cloud_provider_version,
            control_plane_ami_id=aws_control_plane_ami_id,
            control_plane_addl_sec_groups=aws_control_plane_addl_sec_groups,
            control_plane_iam_profile=aws_control_plane_iam_profile,
            control_plane_machine_type=aws_control_plane_machine_type,
            control_plane_vol_size=aws_control_plane_vol_size,
            node_ami_id=aws_node_ami_id,
            node_addl_sec_groups=aws_node_addl_sec_groups,
            node_iam_profile=aws_node_iam_profile,
            node_machine_type=aws_node_machine_type,
            node_vol_size=aws_node_vol_size,
            region=aws_region,
            subnet=aws_subnet,
            ssh_key_name=aws_ssh_key_name,
            vpc_id=aws_vpc_id,
        ),
        SideroDeployOptions(
            control_plane_endpoint=sidero_control_plane_endpoint,
            control_plane_port=sidero_control_plane_port,
            control_plane_server_class=sidero_control_plane_server_class,
            worker_server_class=sidero_worker_server_class,
        ),
    )

    setters = [
        with_cluster_namespace(namespace),
        with_control_plane_nodes(control_plane_nodes),
        with_worker_nodes(worker_nodes),
        with_provider(provider),
        with_provider_version(provider_version),
        with_kubernetes_version(kubernetes_version),
        with_talos_version(talos_version),
        with_provider_options(provider_options),
    ]
    if template:
        setters.append(with_template_file(template))

    cluster = manager.deploy_cluster(name, *setters)
    cluster.health()


@app.command()
def scale(
    ctx: typer.Context,
    name: str = NAME_OPTION,
    namespace: str = NAMESPACE_OPTION,
    replicas: int = typer.Option(-1, "--replicas", "-r", help="Desired number of replicas"),
    nodes: NodeGroup = typer.Option(NodeGroup.CONTROL_PLANES, "--nodes", help="Node group to scale"),
    machine_deployment: str | None = typer.Option(
        None, "--machine-deployment", help="Worker MachineDeployment to scale when there are several"),
) -> None:
    """Scale the control planes or workers of a cluster."""
    if replicas < 0:
        raise typer.BadParameter("number of replicas is required", param_hint="--replicas")
    manager = Manager.create(ctx.obj)
    cluster = manager.new_cluster(name, namespace)
    scale_cluster(cluster, replicas, nodes, machine_deployment=machine_deployment)


@app.command()
def health(
    ctx: typer.Context,
    name: str = NAME_OPTION,
    namespace: str = NAMESPACE_OPTION,
) -> None:
    """Wait until every node of a cluster is ready."""
    manager = Manager.create(ctx.obj)
    cluster = manager.new_cluster(name, namespace)
    cluster.health()
    console.print(f"[green]\u2705 Cluster {name} is healthy[/green]")
