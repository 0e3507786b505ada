# Copyright 2026 Cisco Systems, Inc. and its affiliates
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
Pytest configuration and shared fixtures.

This file is automatically loaded by pytest before running tests.
All fixtures defined here are available to every test module without
explicit imports.
"""

from __future__ import annotations

import os
from dataclasses import replace
from pathlib import Path

import pytest
from dotenv import load_dotenv

from vpc_verifier.config.config import Config
from vpc_verifier.core.exceptions import NotFoundError
from vpc_verifier.core.models import (
    DryRunResponse,
    EphemeralTestResource,
    FlowLogRecord,
    ResourceState,
    Route,
    RouteTable,
    Subnet,
    VirtualNetwork,
)
from vpc_verifier.core.policy import VerificationPolicy
from vpc_verifier.core.providers.base import InstanceLifecycle, NetworkReader, PeeringProber

# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------

project_root = Path(__file__).parent.parent
env_file = project_root / ".env"

if env_file.exists():
    load_dotenv(env_file)

_ISOLATED_ENV_PREFIXES = ("VPC_VERIFIER_", "AWS_REGION", "AWS_DEFAULT_REGION", "AWS_PROFILE")


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    """Strip verifier and AWS selection variables so tests never see the developer's shell."""
    for key in list(os.environ):
        if key.startswith(_ISOLATED_ENV_PREFIXES):
            monkeypatch.delenv(key, raising=False)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeClock:
    """Monotonic clock whose ``sleep`` advances time instead of blocking."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeProvider(NetworkReader, PeeringProber, InstanceLifecycle):
    """In-memory provider implementing every capability.

    ``launch_states`` and ``termination_states`` are the states returned by
    successive ``describe_instance`` calls after a launch or a termination;
    the last entry repeats.
    """

    def __init__(self):
        self.networks: dict[str, VirtualNetwork] = {}
        self.subnets: dict[str, list[Subnet]] = {}
        self.route_tables: dict[str, list[RouteTable]] = {}
        self.flow_logs: dict[str, list[FlowLogRecord]] = {}
        self.access_error: Exception | None = None

        self.peering_responses: dict[str, DryRunResponse] = {}
        self.default_peering_response = DryRunResponse.api_error(
            "UnauthorizedOperation", "You are not authorized to perform this operation."
        )
        self.peering_calls: list[tuple[str, str, str | None]] = []

        self.instances: dict[str, EphemeralTestResource] = {}
        self.launch_states: list[ResourceState] = [ResourceState.RUNNING]
        self.termination_states: list[ResourceState] = [ResourceState.TERMINATED]
        self.external_address = ""
        self.run_error: Exception | None = None
        self.run_calls: list[dict] = []
        self.describe_calls: list[str] = []
        self.terminate_calls: list[str] = []
        self._pending_states: dict[str, list[ResourceState]] = {}

    def add_network(
        self,
        network_id: str,
        is_default: bool = False,
        subnets: list[Subnet] | None = None,
        route_tables: list[RouteTable] | None = None,
        flow_logs: list[FlowLogRecord] | None = None,
    ) -> FakeProvider:
        self.networks[network_id] = VirtualNetwork(network_id, region="us-east-1", is_default=is_default)
        self.subnets[network_id] = list(subnets or [])
        self.route_tables[network_id] = list(route_tables or [])
        self.flow_logs[network_id] = list(flow_logs or [])
        return self

    # NetworkReader

    def check_access(self) -> None:
        if self.access_error is not None:
            raise self.access_error

    def describe_network(self, network_id: str) -> VirtualNetwork:
        if network_id not in self.networks:
            raise NotFoundError(f"network {network_id} not found", resource_id=network_id, operation="describe_network")
        return self.networks[network_id]

    def list_networks(self, default_only: bool = False) -> list[VirtualNetwork]:
        return [n for n in self.networks.values() if n.is_default or not default_only]

    def list_subnets(self, network_id: str) -> list[Subnet]:
        return list(self.subnets.get(network_id, []))

    def list_route_tables(self, network_id: str) -> list[RouteTable]:
        return list(self.route_tables.get(network_id, []))

    def list_flow_logs(self, network_id: str) -> list[FlowLogRecord]:
        return list(self.flow_logs.get(network_id, []))

    # PeeringProber

    def request_peering(self, requester_id, receiver_id, peer_owner_id=None, dry_run=True) -> DryRunResponse:
        self.peering_calls.append((requester_id, receiver_id, peer_owner_id))
        return self.peering_responses.get(requester_id, self.default_peering_response)

    # InstanceLifecycle

    def _network_of(self, subnet_id: str) -> str:
        for network_id, subnets in self.subnets.items():
            if any(s.subnet_id == subnet_id for s in subnets):
                return network_id
        return ""

    def run_instance(self, subnet_id, image_id, instance_type, tags=None) -> EphemeralTestResource:
        self.run_calls.append(
            {"subnet_id": subnet_id, "image_id": image_id, "instance_type": instance_type, "tags": dict(tags or {})}
        )
        if self.run_error is not None:
            raise self.run_error
        resource_id = f"i-{len(self.run_calls):04d}"
        self.instances[resource_id] = EphemeralTestResource(
            resource_id=resource_id,
            subnet_id=subnet_id,
            state=ResourceState.PENDING,
            network_id=self._network_of(subnet_id),
            image_id=image_id,
            instance_type=instance_type,
        )
        self._pending_states[resource_id] = list(self.launch_states)
        return replace(self.instances[resource_id])

    def describe_instance(self, resource_id: str) -> EphemeralTestResource | None:
        self.describe_calls.append(resource_id)
        instance = self.instances.get(resource_id)
        if instance is None:
            return None
        states = self._pending_states.get(resource_id)
        if states:
            instance.state = states.pop(0) if len(states) > 1 else states[0]
        if instance.state == ResourceState.ABSENT:
            return None
        address = self.external_address if instance.state == ResourceState.RUNNING else ""
        return replace(instance, external_address=address)

    def terminate_instance(self, resource_id: str) -> bool:
        self.terminate_calls.append(resource_id)
        instance = self.instances.get(resource_id)
        if instance is None or instance.state in (ResourceState.TERMINATED, ResourceState.ABSENT):
            return False
        instance.state = ResourceState.SHUTTING_DOWN
        self._pending_states[resource_id] = list(self.termination_states)
        return True


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def route_table(
    route_table_id: str,
    network_id: str = "vpc-1",
    routes: list[tuple[str, str]] | None = None,
    subnet_ids: list[str] | None = None,
    is_main: bool = False,
) -> RouteTable:
    return RouteTable(
        route_table_id=route_table_id,
        network_id=network_id,
        routes=tuple(Route(cidr, target) for cidr, target in (routes or [])),
        subnet_ids=tuple(subnet_ids or []),
        is_main=is_main,
    )


def flow_log(flow_log_id: str, status="ACTIVE", traffic_type="ALL", delivery_status="SUCCESS", network_id="vpc-1"):
    return FlowLogRecord(
        flow_log_id=flow_log_id,
        network_id=network_id,
        status=status,
        traffic_type=traffic_type,
        delivery_status=delivery_status,
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def policy() -> VerificationPolicy:
    """Built-in default policy."""
    return VerificationPolicy.default()


@pytest.fixture
def config() -> Config:
    """Config with a test image and synchronous cleanup disabled."""
    return Config(image_id="ami-test")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def provider() -> FakeProvider:
    """``vpc-1`` with one public subnet that auto-assigns public IPs and one private subnet.

    ``subnet-pub`` is explicitly associated with a table routing 0.0.0.0/0 to
    ``igw-1``; ``subnet-priv`` falls back to the main table, which routes
    0.0.0.0/0 to a NAT gateway.
    """
    fake = FakeProvider()
    fake.add_network(
        "vpc-1",
        subnets=[
            Subnet("subnet-pub", "vpc-1", map_public_ip_on_launch=True),
            Subnet("subnet-priv", "vpc-1", map_public_ip_on_launch=False),
        ],
        route_tables=[
            route_table(
                "rtb-main",
                routes=[("10.0.0.0/16", "local"), ("0.0.0.0/0", "nat-1")],
                is_main=True,
            ),
            route_table(
                "rtb-pub",
                routes=[("10.0.0.0/16", "local"), ("0.0.0.0/0", "igw-1")],
                subnet_ids=["subnet-pub"],
            ),
        ],
        flow_logs=[flow_log("fl-1")],
    )
    fake.add_network("vpc-default", is_default=True)
    return fake


@pytest.fixture
def trial_matrix_file(tmp_path) -> Path:
    """Trial matrix with one disallowed and one allowed requester for ``vpc-1``."""
    path = tmp_path / "trials.yaml"
    path.write_text(
        "receiver_vpc_id: vpc-1\n"
        "allowed_requester_vpc_ids: [vpc-y]\n"
        "disallowed_requester_vpc_ids: [vpc-x]\n"
    )
    return path
