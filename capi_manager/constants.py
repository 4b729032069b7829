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

"""Constants for namespaces, controller names, template variables, and timeouts."""

from __future__ import annotations

# -- Cluster API groups and kinds --
CAPI_GROUP = "cluster.x-k8s.io"
CLUSTERCTL_GROUP = "clusterctl.cluster.x-k8s.io"
KIND_CLUSTER = "Cluster"
KIND_MACHINE_DEPLOYMENT = "MachineDeployment"
KIND_PROVIDER = "Provider"
CLUSTER_NAME_LABEL = "cluster.x-k8s.io/cluster-name"
INFRASTRUCTURE_PROVIDER_TYPE = "InfrastructureProvider"
CONDITION_READY = "Ready"
CONDITION_TRUE = "True"
PHASE_RUNNING = "Running"

# -- Core provider --
CORE_PROVIDER_NAME = "cluster-api"
CORE_CAPI_NAMESPACE = "capi-system"
CORE_CAPI_DEPLOYMENT = "capi-controller-manager"

# -- Infrastructure providers --
AWS_PROVIDER_NAME = "aws"
AWS_CAPA_NAMESPACE = "capa-system"
AWS_CAPA_DEPLOYMENT = "capa-controller-manager"

SIDERO_PROVIDER_NAME = "sidero"
SIDERO_NAMESPACE = "sidero-system"
SIDERO_CAPS_DEPLOYMENT = "caps-controller-manager"

# -- Common template variables --
VAR_TALOS_VERSION = "TALOS_VERSION"
VAR_KUBERNETES_VERSION = "KUBERNETES_VERSION"
VAR_CLUSTER_NAME = "CLUSTER_NAME"
VAR_CONTROL_PLANE_MACHINE_COUNT = "CONTROL_PLANE_MACHINE_COUNT"
VAR_WORKER_MACHINE_COUNT = "WORKER_MACHINE_COUNT"

# -- Workload cluster access --
KUBECONFIG_SECRET_SUFFIX = "-kubeconfig"
KUBECONFIG_SECRET_KEY = "value"
LABEL_CONTROL_PLANE = "node-role.kubernetes.io/control-plane"
ADDRESS_INTERNAL_IP = "InternalIP"
ADDRESS_EXTERNAL_IP = "ExternalIP"

# -- clusterctl config discovery --
CLUSTERCTL_CONFIG_FOLDER = ".cluster-api"
CLUSTERCTL_CONFIG_NAME = "clusterctl"
CLUSTERCTL_CONFIG_EXTENSIONS = ("yaml", "yml", "json")
CONFIG_DOWNLOAD_TIMEOUT_SECONDS = 30

# -- Deploy defaults --
DEFAULT_CLUSTER_NAMESPACE = "default"
DEFAULT_CONTROL_PLANE_NODES = 1
DEFAULT_WORKER_NODES = 1
DEFAULT_TALOS_VERSION = "v1.7"
DEFAULT_KUBERNETES_VERSION = "1.30.0"
DEFAULT_CLUSTER_NAME = "talos-default"

# -- Timeouts and intervals (seconds) --
WAIT_PROVIDER_TIMEOUT_SECONDS = 300
PROVIDER_READY_TIMEOUT_SECONDS = 300
CLUSTER_READY_TIMEOUT_SECONDS = 30 * 60
HEALTH_TIMEOUT_SECONDS = 5 * 60
POLL_INTERVAL_SECONDS = 10
SCALE_GRACE_PERIOD_SECONDS = 2
