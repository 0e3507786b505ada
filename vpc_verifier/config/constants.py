# Copyright 2026 Cisco Systems, Inc.
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
#
# SPDX-License-Identifier: Apache-2.0

"""
Constants for VPC Verifier.
"""

from pathlib import Path

from ..data import DATA_DIR, DEFAULT_POLICY_PATH


class VerifierConstants:
    """Constants used throughout the verifier."""

    # Project paths
    PACKAGE_ROOT = Path(__file__).parent.parent
    DATA_DIR = DATA_DIR
    DEFAULT_POLICY_PATH = DEFAULT_POLICY_PATH

    # Control identifiers
    CONTROL_DEFAULT_NETWORK = "CCC.VPC.CN01"
    CONTROL_PUBLIC_SUBNET_IP = "CCC.VPC.CN02"
    CONTROL_PEERING = "CCC.VPC.CN03"
    CONTROL_FLOW_LOGS = "CCC.VPC.CN04"
    # Behavioral variant of CN02: launch a resource and look for an external IP
    CONTROL_PUBLIC_IP_BEHAVIOR = "CCC.VPC.CN02.BEHAVIORAL"

    CONTROL_DESCRIPTIONS = {
        CONTROL_DEFAULT_NETWORK: "In-scope network is not a provider-created default network",
        CONTROL_PUBLIC_SUBNET_IP: "Public subnets do not auto-assign public IPs on launch",
        CONTROL_PUBLIC_IP_BEHAVIOR: "A resource launched in a public subnet receives no external IP",
        CONTROL_PEERING: "Network peering requests are limited to allow-listed requesters",
        CONTROL_FLOW_LOGS: "Flow logs are ACTIVE and capture ALL traffic",
    }

    # Default values
    DEFAULT_INSTANCE_TYPE = "t3.micro"
    DEFAULT_REGION = "us-east-1"
    DEFAULT_CLEANUP_WAIT_SECONDS = 0.0
    MAX_INDEXED_ALLOW_LIST_ENTRIES = 99

    # Environment variable names
    ENV_IMAGE_ID = "VPC_VERIFIER_IMAGE_ID"
    ENV_INSTANCE_TYPE = "VPC_VERIFIER_INSTANCE_TYPE"
    ENV_CLEANUP_WAIT_SECONDS = "VPC_VERIFIER_CLEANUP_WAIT_SECONDS"
    ENV_PEER_OWNER_ID = "VPC_VERIFIER_PEER_OWNER_ID"
    ENV_ALLOWED_REQUESTER_IDS = "VPC_VERIFIER_ALLOWED_REQUESTER_IDS"
    ENV_ALLOWED_REQUESTER_ID_PREFIX = "VPC_VERIFIER_ALLOWED_REQUESTER_ID_"
    ENV_PEER_TRIAL_MATRIX_FILE = "VPC_VERIFIER_PEER_TRIAL_MATRIX_FILE"
    ENV_PROBE_DEADLINE_SECONDS = "VPC_VERIFIER_PROBE_DEADLINE_SECONDS"

    # Allow-list source labels
    SOURCE_MULTI_VALUE = ENV_ALLOWED_REQUESTER_IDS
    SOURCE_INDEXED = f"{ENV_ALLOWED_REQUESTER_ID_PREFIX}1..N"
    SOURCE_TRIAL_MATRIX = ENV_PEER_TRIAL_MATRIX_FILE

    @classmethod
    def get_data_path(cls) -> Path:
        """Get path to data directory."""
        return cls.DATA_DIR

    @classmethod
    def describe_control(cls, control_id: str) -> str:
        return cls.CONTROL_DESCRIPTIONS.get(control_id, "")
