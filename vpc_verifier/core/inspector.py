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
Control-plane inspection of virtual networks.

The inspector reads network inventory through a ``NetworkReader`` and derives
structural facts: whether a network is a default network, which subnets are
public, and which flow logs are attached. It never creates anything.
"""

from __future__ import annotations

import logging

from .models import ControlVerdict, FlowLogDeliveryObservation, FlowLogRecord, RouteTable, Subnet, VirtualNetwork
from .policy import VerificationPolicy
from .providers.base import NetworkReader
from .verdicts import default_network_verdict, flow_log_delivery_observation, flow_log_verdict, public_subnet_verdict

logger = logging.getLogger(__name__)


def require_id(value: str, name: str) -> str:
    if value is None or not str(value).strip():
        raise ValueError(f"{name} is required")
    return str(value).strip()


class ControlPlaneInspector:
    """Derives structural control facts from network metadata."""

    def __init__(self, reader: NetworkReader, policy: VerificationPolicy | None = None):
        """
        Initialize inspector.

        Args:
            reader: Provider used for every inventory read
            policy: Routing and flow-log expectations. If None, loads built-in defaults.
        """
        self.reader = reader
        self.policy = policy or VerificationPolicy.default()

    # -----------------------------------------------------------------------
    # Default networks
    # -----------------------------------------------------------------------

    def is_default_network(self, network_id: str) -> bool:
        """
        Check whether a network is a provider-created default network.

        Raises:
            NotFoundError: If the network does not exist
        """
        network_id = require_id(network_id, "network_id")
        return self.reader.describe_network(network_id).is_default

    def list_networks(self) -> list[VirtualNetwork]:
        return self.reader.list_networks()

    def list_default_networks(self) -> list[VirtualNetwork]:
        return [n for n in self.reader.list_networks(default_only=True) if n.is_default]

    def count_default_networks(self) -> int:
        return len(self.list_default_networks())

    def evaluate_default_network_control(self, network_id: str) -> ControlVerdict:
        network_id = require_id(network_id, "network_id")
        return default_network_verdict(self.reader.describe_network(network_id))

    # -----------------------------------------------------------------------
    # Public subnets
    # -----------------------------------------------------------------------

    def _routes_to_internet(self, table: RouteTable) -> bool:
        routing = self.policy.routing
        return any(
            route.destination_cidr in routing.default_route_cidrs and routing.is_internet_gateway(route.target_id)
            for route in table.routes
        )

    def list_subnets(self, network_id: str) -> list[Subnet]:
        """
        List every subnet of a network with its effective route table resolved.

        A subnet uses its explicitly associated route table, else the
        network's main table. Route tables are read once per call.
        """
        network_id = require_id(network_id, "network_id")
        subnets = self.reader.list_subnets(network_id)
        tables = self.reader.list_route_tables(network_id)

        explicit: dict[str, RouteTable] = {}
        main_table: RouteTable | None = None
        for table in tables:
            if table.is_main and main_table is None:
                main_table = table
            for subnet_id in table.subnet_ids:
                explicit.setdefault(subnet_id, table)

        resolved = []
        for subnet in subnets:
            table = explicit.get(subnet.subnet_id, main_table)
            resolved.append(
                Subnet(
                    subnet_id=subnet.subnet_id,
                    network_id=subnet.network_id or network_id,
                    map_public_ip_on_launch=subnet.map_public_ip_on_launch,
                    route_table_id=table.route_table_id if table else "",
                    is_public=self._routes_to_internet(table) if table else False,
                )
            )
        return resolved

    def list_public_subnets(self, network_id: str) -> list[Subnet]:
        """Subnets whose effective route table sends the default route to an internet gateway."""
        public = [s for s in self.list_subnets(network_id) if s.is_public]
        logger.debug("Network %s has %d public subnet(s)", network_id, len(public))
        return public

    def evaluate_public_subnet_control(self, network_id: str) -> ControlVerdict:
        network_id = require_id(network_id, "network_id")
        return public_subnet_verdict(network_id, self.list_public_subnets(network_id))

    def summarize_public_subnets(self, network_id: str) -> str:
        return self.evaluate_public_subnet_control(network_id).summary()

    # -----------------------------------------------------------------------
    # Flow logs
    # -----------------------------------------------------------------------

    def list_flow_logs(self, network_id: str) -> list[FlowLogRecord]:
        network_id = require_id(network_id, "network_id")
        return self.reader.list_flow_logs(network_id)

    def evaluate_flow_log_control(self, network_id: str) -> ControlVerdict:
        network_id = require_id(network_id, "network_id")
        return flow_log_verdict(network_id, self.list_flow_logs(network_id), self.policy.flow_logs)

    def has_active_all_traffic_flow_logs(self, network_id: str) -> bool:
        return self.evaluate_flow_log_control(network_id).compliant

    def summarize_flow_logs(self, network_id: str) -> str:
        return self.evaluate_flow_log_control(network_id).summary()

    def prepare_flow_log_delivery_observation(self, network_id: str) -> FlowLogDeliveryObservation:
        """Check that every flow log is ready to deliver records before traffic is generated."""
        network_id = require_id(network_id, "network_id")
        observation = flow_log_delivery_observation(
            network_id, self.list_flow_logs(network_id), self.policy.flow_logs
        )
        observation.reason = f"flow-log preconditions evaluated for behavioral observation: {observation.reason}"
        return observation

    def observe_recent_flow_log_delivery(self, network_id: str) -> FlowLogDeliveryObservation:
        """Best-effort read of delivery status; does not affect the flow-log verdict."""
        network_id = require_id(network_id, "network_id")
        observation = flow_log_delivery_observation(
            network_id, self.list_flow_logs(network_id), self.policy.flow_logs
        )
        if not observation.records_observed:
            logger.info("No successful flow-log delivery reported yet for %s", network_id)
        return observation
