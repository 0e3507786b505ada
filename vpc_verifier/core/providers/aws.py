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
AWS EC2 implementation of the provider capabilities.

Example:
    >>> from vpc_verifier.core.providers.aws import AwsEc2Provider
    >>> provider = AwsEc2Provider(region_name="us-east-1")
    >>> provider.describe_network("vpc-0123456789abcdef0").is_default
    False
"""

from __future__ import annotations

import logging
from typing import Any

try:
    import boto3
    from botocore.exceptions import BotoCoreError, ClientError
except ImportError as exc:
    raise ImportError("AWS provider requires boto3. Install with: pip install boto3") from exc

from ..exceptions import NotFoundError, SetupError
from ..models import (
    DryRunResponse,
    EphemeralTestResource,
    FlowLogRecord,
    ResourceState,
    Route,
    RouteTable,
    Subnet,
    VirtualNetwork,
)
from .base import InstanceLifecycle, NetworkReader, PeeringProber

logger = logging.getLogger(__name__)

# Route target fields, most specific first
_ROUTE_TARGET_KEYS = (
    "GatewayId",
    "NatGatewayId",
    "VpcPeeringConnectionId",
    "TransitGatewayId",
    "NetworkInterfaceId",
    "InstanceId",
    "EgressOnlyInternetGatewayId",
    "CarrierGatewayId",
    "LocalGatewayId",
)


def _error_code(error: ClientError) -> str:
    return (error.response.get("Error", {}).get("Code") or "").strip()


def _error_message(error: ClientError) -> str:
    return (error.response.get("Error", {}).get("Message") or str(error)).strip()


def _is_not_found(error: ClientError) -> bool:
    return "notfound" in _error_code(error).lower()


def _tag_value(tags: list[dict[str, str]] | None, key: str) -> str:
    for tag in tags or []:
        if tag.get("Key") == key:
            return tag.get("Value", "")
    return ""


def _resource_state(name: str | None) -> ResourceState:
    try:
        return ResourceState(name or "")
    except ValueError:
        logger.debug("Unknown instance state %r treated as pending", name)
        return ResourceState.PENDING


class AwsEc2Provider(NetworkReader, PeeringProber, InstanceLifecycle):
    """Network reader, peering prober and instance lifecycle backed by one EC2 client."""

    def __init__(
        self,
        region_name: str | None = None,
        profile_name: str | None = None,
        client: Any | None = None,
    ):
        """
        Initialize provider.

        Args:
            region_name: AWS region (default: session default)
            profile_name: Named AWS profile for credentials
            client: Pre-built EC2 client, mainly for tests
        """
        if client is not None:
            self.client = client
            self.region_name = region_name or client.meta.region_name
            return

        try:
            session = boto3.Session(profile_name=profile_name, region_name=region_name)
            self.client = session.client("ec2")
        except BotoCoreError as e:
            raise SetupError(
                f"Failed to initialize EC2 client. Ensure AWS credentials and region are configured. Error: {e}",
                operation="create_client",
            ) from e
        self.region_name = region_name or session.region_name or ""

    @classmethod
    def from_config(cls, config) -> AwsEc2Provider:
        return cls(region_name=config.aws_region_name, profile_name=config.aws_profile_name)

    def _call_failed(self, operation: str, error: Exception) -> SetupError:
        if isinstance(error, ClientError):
            message = f"{operation} failed: {_error_code(error)}: {_error_message(error)}"
        else:
            message = f"{operation} failed: {error}"
        return SetupError(message, operation=operation)

    def _paginate(self, operation: str, result_key: str, **kwargs) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        try:
            for page in self.client.get_paginator(operation).paginate(**kwargs):
                items.extend(page.get(result_key, []))
        except (ClientError, BotoCoreError) as e:
            raise self._call_failed(operation, e) from e
        return items

    # -----------------------------------------------------------------------
    # NetworkReader
    # -----------------------------------------------------------------------

    def check_access(self) -> None:
        try:
            self.client.describe_vpcs(MaxResults=5)
        except (ClientError, BotoCoreError) as e:
            raise self._call_failed("describe_vpcs", e) from e

    def _to_network(self, vpc: dict[str, Any]) -> VirtualNetwork:
        return VirtualNetwork(
            network_id=vpc["VpcId"],
            region=self.region_name,
            is_default=bool(vpc.get("IsDefault", False)),
            name=_tag_value(vpc.get("Tags"), "Name"),
        )

    def describe_network(self, network_id: str) -> VirtualNetwork:
        try:
            response = self.client.describe_vpcs(VpcIds=[network_id])
        except ClientError as e:
            if _is_not_found(e):
                raise NotFoundError(
                    f"network {network_id} not found", resource_id=network_id, operation="describe_vpcs"
                ) from e
            raise self._call_failed("describe_vpcs", e) from e
        except BotoCoreError as e:
            raise self._call_failed("describe_vpcs", e) from e

        for vpc in response.get("Vpcs", []):
            if vpc.get("VpcId") == network_id:
                return self._to_network(vpc)
        raise NotFoundError(f"network {network_id} not found", resource_id=network_id, operation="describe_vpcs")

    def list_networks(self, default_only: bool = False) -> list[VirtualNetwork]:
        kwargs: dict[str, Any] = {}
        if default_only:
            kwargs["Filters"] = [{"Name": "isDefault", "Values": ["true"]}]
        return [self._to_network(v) for v in self._paginate("describe_vpcs", "Vpcs", **kwargs)]

    def list_subnets(self, network_id: str) -> list[Subnet]:
        subnets = self._paginate(
            "describe_subnets", "Subnets", Filters=[{"Name": "vpc-id", "Values": [network_id]}]
        )
        return [
            Subnet(
                subnet_id=s["SubnetId"],
                network_id=s.get("VpcId", network_id),
                map_public_ip_on_launch=bool(s.get("MapPublicIpOnLaunch", False)),
            )
            for s in subnets
        ]

    def list_route_tables(self, network_id: str) -> list[RouteTable]:
        tables = self._paginate(
            "describe_route_tables", "RouteTables", Filters=[{"Name": "vpc-id", "Values": [network_id]}]
        )
        result = []
        for table in tables:
            routes = []
            for route in table.get("Routes", []):
                target = next((route[k] for k in _ROUTE_TARGET_KEYS if route.get(k)), "")
                routes.append(Route(destination_cidr=route.get("DestinationCidrBlock", ""), target_id=target))
            associations = table.get("Associations", [])
            result.append(
                RouteTable(
                    route_table_id=table["RouteTableId"],
                    network_id=table.get("VpcId", network_id),
                    routes=tuple(routes),
                    subnet_ids=tuple(a["SubnetId"] for a in associations if a.get("SubnetId")),
                    is_main=any(a.get("Main", False) for a in associations),
                )
            )
        return result

    def list_flow_logs(self, network_id: str) -> list[FlowLogRecord]:
        flow_logs = self._paginate(
            "describe_flow_logs", "FlowLogs", Filters=[{"Name": "resource-id", "Values": [network_id]}]
        )
        return [
            FlowLogRecord(
                flow_log_id=f.get("FlowLogId", ""),
                network_id=f.get("ResourceId", network_id),
                status=f.get("FlowLogStatus", ""),
                traffic_type=f.get("TrafficType", ""),
                delivery_status=f.get("DeliverLogsStatus", ""),
                destination_type=f.get("LogDestinationType", ""),
                destination=f.get("LogDestination") or f.get("LogGroupName", ""),
                delivery_error=f.get("DeliverLogsErrorMessage", ""),
            )
            for f in flow_logs
        ]

    # -----------------------------------------------------------------------
    # PeeringProber
    # -----------------------------------------------------------------------

    def request_peering(
        self,
        requester_id: str,
        receiver_id: str,
        peer_owner_id: str | None = None,
        dry_run: bool = True,
    ) -> DryRunResponse:
        kwargs: dict[str, Any] = {"VpcId": requester_id, "PeerVpcId": receiver_id, "DryRun": dry_run}
        if peer_owner_id:
            kwargs["PeerOwnerId"] = peer_owner_id
        try:
            self.client.create_vpc_peering_connection(**kwargs)
        except ClientError as e:
            return DryRunResponse.api_error(_error_code(e), _error_message(e))
        except BotoCoreError as e:
            return DryRunResponse.transport_error(str(e))
        return DryRunResponse.success()

    # -----------------------------------------------------------------------
    # InstanceLifecycle
    # -----------------------------------------------------------------------

    def _to_resource(self, instance: dict[str, Any]) -> EphemeralTestResource:
        return EphemeralTestResource(
            resource_id=instance["InstanceId"],
            subnet_id=instance.get("SubnetId", ""),
            state=_resource_state(instance.get("State", {}).get("Name")),
            external_address=instance.get("PublicIpAddress", ""),
            network_id=instance.get("VpcId", ""),
            image_id=instance.get("ImageId", ""),
            instance_type=instance.get("InstanceType", ""),
            resource_type="ec2:instance",
        )

    def run_instance(
        self,
        subnet_id: str,
        image_id: str,
        instance_type: str,
        tags: dict[str, str] | None = None,
    ) -> EphemeralTestResource:
        kwargs: dict[str, Any] = {
            "ImageId": image_id,
            "InstanceType": instance_type,
            "MinCount": 1,
            "MaxCount": 1,
            "SubnetId": subnet_id,
        }
        if tags:
            kwargs["TagSpecifications"] = [
                {"ResourceType": "instance", "Tags": [{"Key": k, "Value": v} for k, v in tags.items()]}
            ]
        try:
            response = self.client.run_instances(**kwargs)
        except (ClientError, BotoCoreError) as e:
            raise self._call_failed("run_instances", e) from e

        instances = response.get("Instances", [])
        if not instances or not instances[0].get("InstanceId"):
            raise SetupError(
                f"run_instances returned no instance for subnet {subnet_id}", operation="run_instances"
            )
        return self._to_resource(instances[0])

    def describe_instance(self, resource_id: str) -> EphemeralTestResource | None:
        try:
            response = self.client.describe_instances(InstanceIds=[resource_id])
        except ClientError as e:
            if _is_not_found(e):
                return None
            raise self._call_failed("describe_instances", e) from e
        except BotoCoreError as e:
            raise self._call_failed("describe_instances", e) from e

        for reservation in response.get("Reservations", []):
            for instance in reservation.get("Instances", []):
                if instance.get("InstanceId") == resource_id:
                    return self._to_resource(instance)
        return None

    def terminate_instance(self, resource_id: str) -> bool:
        try:
            response = self.client.terminate_instances(InstanceIds=[resource_id])
        except ClientError as e:
            if _is_not_found(e):
                return False
            raise self._call_failed("terminate_instances", e) from e
        except BotoCoreError as e:
            raise self._call_failed("terminate_instances", e) from e

        for change in response.get("TerminatingInstances", []):
            if change.get("InstanceId") == resource_id:
                return change.get("PreviousState", {}).get("Name") != ResourceState.TERMINATED.value
        return True
