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
Abstract capability interfaces for cloud providers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..models import DryRunResponse, EphemeralTestResource, FlowLogRecord, RouteTable, Subnet, VirtualNetwork


class NetworkReader(ABC):
    """Read-only access to virtual network inventory.

    Implementations return fresh data on every call and raise
    ``NotFoundError`` for unknown ids or ``SetupError`` for any other
    collaborator failure.
    """

    @abstractmethod
    def check_access(self) -> None:
        """
        Verify the inspecting identity can read network inventory.

        Raises:
            SetupError: If the provider rejects the credentials
        """
        pass

    @abstractmethod
    def describe_network(self, network_id: str) -> VirtualNetwork:
        """
        Describe a single network.

        Raises:
            NotFoundError: If the network does not exist
        """
        pass

    @abstractmethod
    def list_networks(self, default_only: bool = False) -> list[VirtualNetwork]:
        pass

    @abstractmethod
    def list_subnets(self, network_id: str) -> list[Subnet]:
        pass

    @abstractmethod
    def list_route_tables(self, network_id: str) -> list[RouteTable]:
        pass

    @abstractmethod
    def list_flow_logs(self, network_id: str) -> list[FlowLogRecord]:
        pass


class PeeringProber(ABC):
    """Issues peering requests, normally as a dry run."""

    @abstractmethod
    def request_peering(
        self,
        requester_id: str,
        receiver_id: str,
        peer_owner_id: str | None = None,
        dry_run: bool = True,
    ) -> DryRunResponse:
        """
        Ask the provider to create a peering connection.

        Provider errors are returned as ``DryRunResponse`` values, never raised:
        a rejection is evidence, not a failure of the check.

        Args:
            requester_id: Network initiating the peering
            receiver_id: Network receiving the request
            peer_owner_id: Account owning the receiver, if different
            dry_run: Only validate authorization, create nothing

        Returns:
            Tagged response (success, API error or transport error)
        """
        pass


class InstanceLifecycle(ABC):
    """Creates, reads and terminates short-lived compute instances."""

    @abstractmethod
    def run_instance(
        self,
        subnet_id: str,
        image_id: str,
        instance_type: str,
        tags: dict[str, str] | None = None,
    ) -> EphemeralTestResource:
        """
        Launch one instance in *subnet_id*.

        Raises:
            SetupError: If the launch is rejected
        """
        pass

    @abstractmethod
    def describe_instance(self, resource_id: str) -> EphemeralTestResource | None:
        """Return the current instance, or None once it no longer exists."""
        pass

    @abstractmethod
    def terminate_instance(self, resource_id: str) -> bool:
        """
        Request termination.

        Returns:
            False if the instance was already gone, True otherwise
        """
        pass
