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

"""Tests for the provider factory, variables, and installed/ready checks."""

from __future__ import annotations

from dataclasses import replace

import pytest

from capi_manager.clusterctl import TemplateOptions
from capi_manager.errors import (
    ConvergenceTimeout,
    InvalidConfiguration,
    InvalidProviderOptions,
    MalformedProviderString,
    RemoteAccessError,
    UnknownProviderType,
)
from capi_manager.providers import (
    AWSDeployOptions,
    AWSProvider,
    AWSSetupOptions,
    SideroDeployOptions,
    SideroProvider,
    SideroSetupOptions,
    new_provider,
)
from conftest import FakeClusterctl


class TestFactory:
    def test_aws_defaults(self):
        provider = new_provider("aws")
        assert isinstance(provider, AWSProvider)
        assert (provider.name, provider.version, provider.namespace) == ("aws", "", "capa-system")
        assert provider.watching_namespace == ""

    def test_versioned_token(self):
        provider = new_provider("sidero:v0.6.0")
        assert isinstance(provider, SideroProvider)
        assert provider.version == "v0.6.0"
        assert provider.token == "sidero:v0.6.0"

    def test_namespace_overrides(self):
        provider = new_provider("aws", namespace="infra", watching_namespace="tenants")
        assert provider.namespace == "infra"
        assert provider.watching_namespace == "tenants"

    def test_unknown_provider(self):
        with pytest.raises(UnknownProviderType) as exc_info:
            new_provider("docker:v1.0.0")
        assert exc_info.value.name == "docker"

    @pytest.mark.parametrize("token", ["", ":v1", "aws:", "aws:v1:extra"])
    def test_malformed_token(self, token):
        with pytest.raises(MalformedProviderString):
            new_provider(token)


class TestAWSProvider:
    def test_configure_rejects_foreign_options(self):
        with pytest.raises(InvalidConfiguration):
            new_provider("aws").configure(SideroSetupOptions())

    def test_provider_vars(self):
        provider = new_provider("aws")
        provider.configure(AWSSetupOptions(credentials="c2VjcmV0"))
        assert provider.provider_vars() == {"AWS_B64ENCODED_CREDENTIALS": "c2VjcmV0"}

    def test_cluster_vars_defaults(self):
        variables = new_provider("aws").cluster_vars(None)
        assert variables["AWS_CONTROL_PLANE_MACHINE_TYPE"] == "t3.large"
        assert variables["AWS_NODE_VOL_SIZE"] == "50"
        assert variables["AWS_REGION"] == ""

    def test_cluster_vars(self):
        variables = new_provider("aws").cluster_vars(
            AWSDeployOptions(region="us-east-2", vpc_id="vpc-1", node_vol_size=0)
        )
        assert variables["AWS_REGION"] == "us-east-2"
        assert variables["AWS_VPC_ID"] == "vpc-1"
        assert variables["AWS_NODE_VOL_SIZE"] == ""

    def test_cluster_vars_rejects_foreign_options(self):
        with pytest.raises(InvalidProviderOptions):
            new_provider("aws").cluster_vars(SideroDeployOptions())


class TestSideroProvider:
    def test_provider_vars(self):
        provider = new_provider("sidero")
        provider.configure(SideroSetupOptions(host_network=True, api_endpoint="10.0.0.1"))
        variables = provider.provider_vars()
        assert variables["SIDERO_CONTROLLER_MANAGER_HOST_NETWORK"] == "true"
        assert variables["SIDERO_CONTROLLER_MANAGER_API_ENDPOINT"] == "10.0.0.1"
        assert variables["SIDERO_CONTROLLER_MANAGER_DEPLOYMENT_STRATEGY"] == ""

    def test_cluster_vars(self):
        variables = new_provider("sidero").cluster_vars(SideroDeployOptions(control_plane_endpoint="10.5.0.2"))
        assert variables == {
            "CONTROL_PLANE_ENDPOINT": "10.5.0.2",
            "CONTROL_PLANE_PORT": "6443",
            "CONTROL_PLANE_SERVERCLASS": "any",
            "WORKER_SERVERCLASS": "any",
        }

    def test_configure_rejects_foreign_options(self):
        with pytest.raises(InvalidConfiguration):
            new_provider("sidero").configure(AWSSetupOptions())

    def test_cluster_vars_rejects_foreign_options(self):
        with pytest.raises(InvalidProviderOptions):
            new_provider("sidero").cluster_vars(AWSDeployOptions())


class TestInstalledCheck:
    def test_not_installed(self, resources):
        assert new_provider("aws").is_installed(resources) is False

    def test_namespace_without_deployment(self, resources):
        resources.namespaces.add("capa-system")
        assert new_provider("aws").is_installed(resources) is False

    def test_installed(self, resources):
        resources.add_deployment("capa-system", "capa-controller-manager")
        assert new_provider("aws").is_installed(resources) is True

    def test_installed_in_overridden_namespace(self, resources):
        resources.add_deployment("infra", "capa-controller-manager")
        assert new_provider("aws", namespace="infra").is_installed(resources) is True
        assert new_provider("aws").is_installed(resources) is False

    def test_remote_errors_propagate(self, resources):
        resources.errors["get_namespace"] = RemoteAccessError(401, "Unauthorized")
        with pytest.raises(RemoteAccessError):
            new_provider("aws").is_installed(resources)


class TestWaitReady:
    def test_ready(self, resources):
        resources.add_deployment("capa-system", "capa-controller-manager", ready=2, replicas=2)
        new_provider("aws").wait_ready(resources, timeout=1, interval=0)

    def test_becomes_ready(self, resources):
        attempts = []
        original = resources.get_deployment

        def get_deployment(namespace, name):
            attempts.append(1)
            if len(attempts) == 3:
                resources.add_deployment(namespace, name, ready=1, replicas=1)
            return original(namespace, name)

        resources.get_deployment = get_deployment
        new_provider("aws").wait_ready(resources, timeout=5, interval=0)
        assert len(attempts) == 3

    @pytest.mark.parametrize("ready,replicas", [(0, 0), (1, 2), (None, 1)])
    def test_never_ready_times_out(self, resources, ready, replicas):
        resources.add_deployment("capa-system", "capa-controller-manager", ready=ready, replicas=replicas)
        with pytest.raises(ConvergenceTimeout):
            new_provider("aws").wait_ready(resources, timeout=0.05, interval=0.01)


class TestClusterTemplate:
    @pytest.fixture
    def template_options(self) -> TemplateOptions:
        return TemplateOptions(
            kubeconfig="/tmp/kubeconfig",
            cluster_name="demo",
            target_namespace="default",
            kubernetes_version="1.30.0",
            control_plane_machine_count=1,
            worker_machine_count=2,
        )

    def test_default_template_uses_provider_token(self, template_options, variables):
        clusterctl = FakeClusterctl(template=[{"apiVersion": "v1", "kind": "ConfigMap", "metadata": {"name": "x"}}])
        objects = new_provider("aws:v2.5.0").get_cluster_template(clusterctl, template_options, variables)
        assert [obj.kind for obj in objects] == ["ConfigMap"]
        options, _ = clusterctl.generate_calls[0]
        assert options.infrastructure_provider == "aws:v2.5.0"

    def test_explicit_source_is_kept(self, template_options, variables):
        clusterctl = FakeClusterctl()
        template_options = replace(template_options, url_source="/tmp/template.yaml")
        new_provider("aws").get_cluster_template(clusterctl, template_options, variables)
        options, _ = clusterctl.generate_calls[0]
        assert options.url_source == "/tmp/template.yaml"
        assert options.infrastructure_provider == ""
