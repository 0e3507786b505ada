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
Data models for network inventory, probe evidence and control verdicts.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Verdict(str, Enum):
    """Outcome of a single control check."""

    PASS = "PASS"
    FAIL = "FAIL"
    NA = "NA"
    SETUP_ERROR = "SETUP_ERROR"


class ResultClass(str, Enum):
    """Evidence-bearing classification of a verdict.

    Mirrors ``Verdict`` with one addition: ``UNDEFINED`` marks an enforcement
    comparison that could not be made because no allow-list is configured.
    """

    PASS = "PASS"
    FAIL = "FAIL"
    NA = "NA"
    SETUP_ERROR = "SETUP_ERROR"
    UNDEFINED = "UNDEFINED"


class ResourceState(str, Enum):
    """Lifecycle state of an ephemeral compute resource."""

    PENDING = "pending"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    SHUTTING_DOWN = "shutting-down"
    TERMINATED = "terminated"
    # Not a provider state: the resource can no longer be described
    ABSENT = "absent"

    @property
    def is_stable(self) -> bool:
        """True once reads of the resource return settled data."""
        return self in (
            ResourceState.RUNNING,
            ResourceState.STOPPED,
            ResourceState.TERMINATED,
            ResourceState.SHUTTING_DOWN,
            ResourceState.ABSENT,
        )

    @property
    def is_terminal(self) -> bool:
        return self in (ResourceState.TERMINATED, ResourceState.ABSENT)


class DryRunResponseKind(str, Enum):
    """Shape of a provider response to a dry-run request."""

    API_SUCCESS = "api_success"
    API_ERROR = "api_error"
    TRANSPORT_ERROR = "transport_error"


class DryRunOutcome(str, Enum):
    """Authorization outcome inferred from a dry-run response."""

    ALLOWED = "allowed"
    DENIED = "denied"
    AMBIGUOUS = "ambiguous"
    TRANSPORT_ERROR = "transport_error"


class CleanupStatus(str, Enum):
    TERMINATED = "terminated"
    ALREADY_ABSENT = "already-absent"
    TERMINATION_REQUESTED = "termination-requested"
    IN_PROGRESS = "cleanup-in-progress"


# ---------------------------------------------------------------------------
# Inventory snapshots (read fresh on every call, never cached)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VirtualNetwork:
    """An isolated logical network in one account/region."""

    network_id: str
    region: str = ""
    is_default: bool = False
    name: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "network_id": self.network_id,
            "region": self.region,
            "is_default": self.is_default,
            "name": self.name,
        }


@dataclass(frozen=True)
class Route:
    destination_cidr: str
    target_id: str = ""


@dataclass(frozen=True)
class RouteTable:
    """A route table together with its subnet associations."""

    route_table_id: str
    network_id: str
    routes: tuple[Route, ...] = ()
    subnet_ids: tuple[str, ...] = ()
    is_main: bool = False


@dataclass(frozen=True)
class Subnet:
    """A subnet of a virtual network.

    ``route_table_id`` and ``is_public`` are derived by the inspector from the
    subnet's effective route table; providers leave them empty.
    """

    subnet_id: str
    network_id: str
    map_public_ip_on_launch: bool = False
    route_table_id: str = ""
    is_public: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "subnet_id": self.subnet_id,
            "network_id": self.network_id,
            "route_table_id": self.route_table_id,
            "map_public_ip_on_launch": self.map_public_ip_on_launch,
            "is_public": self.is_public,
        }


@dataclass(frozen=True)
class FlowLogRecord:
    """A flow-log configuration attached to a virtual network."""

    flow_log_id: str
    network_id: str
    status: str = ""
    traffic_type: str = ""
    delivery_status: str = ""
    destination_type: str = ""
    destination: str = ""
    delivery_error: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "flow_log_id": self.flow_log_id,
            "network_id": self.network_id,
            "status": self.status,
            "traffic_type": self.traffic_type,
            "delivery_status": self.delivery_status,
            "destination_type": self.destination_type,
            "destination": self.destination,
            "delivery_error": self.delivery_error,
        }


@dataclass
class EphemeralTestResource:
    """A short-lived compute instance owned by one probe call."""

    resource_id: str
    subnet_id: str
    state: ResourceState = ResourceState.PENDING
    external_address: str = ""
    network_id: str = ""
    image_id: str = ""
    instance_type: str = ""
    resource_type: str = "compute:instance"

    def to_dict(self) -> dict[str, Any]:
        return {
            "resource_id": self.resource_id,
            "resource_type": self.resource_type,
            "subnet_id": self.subnet_id,
            "network_id": self.network_id,
            "state": self.state.value,
            "external_address": self.external_address,
            "image_id": self.image_id,
            "instance_type": self.instance_type,
        }


# ---------------------------------------------------------------------------
# Probe evidence
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DryRunResponse:
    """Tagged result of a provider peering request.

    ``error_code`` is only meaningful for ``API_ERROR``; ``message`` carries
    the raw provider text for errors of either kind.
    """

    kind: DryRunResponseKind
    error_code: str = ""
    message: str = ""

    @classmethod
    def success(cls) -> "DryRunResponse":
        return cls(kind=DryRunResponseKind.API_SUCCESS)

    @classmethod
    def api_error(cls, error_code: str, message: str = "") -> "DryRunResponse":
        return cls(kind=DryRunResponseKind.API_ERROR, error_code=error_code, message=message)

    @classmethod
    def transport_error(cls, message: str) -> "DryRunResponse":
        return cls(kind=DryRunResponseKind.TRANSPORT_ERROR, message=message)


@dataclass
class DryRunClassification:
    """How a dry-run response was read: outcome plus the rule that decided it."""

    outcome: DryRunOutcome
    basis: str  # "success", "error_code", "message_heuristic", "unrecognized", "transport"
    reason: str

    @property
    def allowed(self) -> bool:
        return self.outcome == DryRunOutcome.ALLOWED


@dataclass
class PeeringEvidence:
    """Evidence from one dry-run peering attempt.

    ``call_executed`` describes probe mechanics (did the provider answer);
    ``dry_run_allowed`` describes the authorization outcome. A transport
    failure is never reported as a policy denial.
    """

    requester_id: str
    receiver_id: str
    peer_owner_id: str = ""
    dry_run_allowed: bool = False
    outcome: DryRunOutcome = DryRunOutcome.AMBIGUOUS
    call_executed: bool = True
    error_code: str = ""
    error_message: str = ""
    classification_basis: str = ""
    reason: str = ""
    # Allow-list enrichment; expectation/mismatch stay None when undefined
    allow_list_defined: bool = False
    allow_list_source: str = ""
    requester_in_allow_list: bool = False
    expectation: str | None = None
    mismatch: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "requester_id": self.requester_id,
            "receiver_id": self.receiver_id,
            "peer_owner_id": self.peer_owner_id,
            "dry_run_allowed": self.dry_run_allowed,
            "outcome": self.outcome.value,
            "call_executed": self.call_executed,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "classification_basis": self.classification_basis,
            "reason": self.reason,
            "allow_list_defined": self.allow_list_defined,
            "allow_list_source": self.allow_list_source,
            "requester_in_allow_list": self.requester_in_allow_list,
            "expectation": self.expectation,
            "mismatch": self.mismatch,
        }


@dataclass
class PeeringTrial:
    """One requester from a trial matrix and what the dry-run showed."""

    requester_id: str
    receiver_id: str
    expected_allowed: bool
    actual_allowed: bool
    peer_owner_id: str = ""
    outcome: DryRunOutcome = DryRunOutcome.AMBIGUOUS
    error_code: str = ""
    error_message: str = ""

    @property
    def matches_expectation(self) -> bool:
        # An unreached provider proves nothing either way
        if self.outcome == DryRunOutcome.TRANSPORT_ERROR:
            return False
        return self.actual_allowed == self.expected_allowed

    def to_dict(self) -> dict[str, Any]:
        return {
            "requester_id": self.requester_id,
            "receiver_id": self.receiver_id,
            "peer_owner_id": self.peer_owner_id,
            "expected_allowed": self.expected_allowed,
            "actual_allowed": self.actual_allowed,
            "matches_expectation": self.matches_expectation,
            "outcome": self.outcome.value,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


@dataclass
class TrialRunResult:
    """Aggregate of all dry-run trials driven by one trial matrix."""

    file_path: str
    receiver_id: str
    peer_owner_id: str = ""
    trials: list[PeeringTrial] = field(default_factory=list)
    allowed_count: int = 0
    disallowed_count: int = 0

    @property
    def total_trials(self) -> int:
        return len(self.trials)

    @property
    def unexpected_count(self) -> int:
        return sum(1 for t in self.trials if not t.matches_expectation)

    @property
    def compliant(self) -> bool:
        return self.total_trials > 0 and self.unexpected_count == 0

    def unexpected_trials(self) -> list[PeeringTrial]:
        return [t for t in self.trials if not t.matches_expectation]

    def to_dict(self) -> dict[str, Any]:
        return {
            "file_path": self.file_path,
            "receiver_id": self.receiver_id,
            "peer_owner_id": self.peer_owner_id,
            "allowed_count": self.allowed_count,
            "disallowed_count": self.disallowed_count,
            "total_trials": self.total_trials,
            "unexpected_count": self.unexpected_count,
            "compliant": self.compliant,
            "trials": [t.to_dict() for t in self.trials],
        }


@dataclass(frozen=True)
class AllowListResult:
    """Allowed requester ids and the configuration tier they came from.

    ``source`` is empty when no tier produced any identifier.
    """

    ids: tuple[str, ...] = ()
    source: str = ""

    @property
    def defined(self) -> bool:
        return len(self.ids) > 0

    def __contains__(self, item: object) -> bool:
        return item in self.ids

    def to_dict(self) -> dict[str, Any]:
        return {"ids": list(self.ids), "source": self.source, "defined": self.defined}


@dataclass
class AllowListEvaluation:
    peer_id: str
    allowed: bool
    basis_defined: bool
    source: str = ""
    allowed_ids: list[str] = field(default_factory=list)
    reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "peer_id": self.peer_id,
            "allowed": self.allowed,
            "basis_defined": self.basis_defined,
            "allow_list_count": len(self.allowed_ids),
            "allowed_ids": list(self.allowed_ids),
            "source": self.source,
            "reason": self.reason,
        }


@dataclass
class EnforcementSummary:
    """Expected vs. observed peering enforcement.

    ``expected`` and ``mismatch`` are None when no allow-list is configured:
    the comparison is undefined, neither a pass nor a failure.
    """

    expected: bool | None
    actual: bool
    mismatch: bool | None
    basis_defined: bool
    reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "expected": self.expected,
            "actual": self.actual,
            "mismatch": self.mismatch,
            "basis_defined": self.basis_defined,
            "reason": self.reason,
        }


@dataclass
class ExternalAddressObservation:
    resource_id: str
    has_external_ip: bool
    address: str = ""
    state: ResourceState = ResourceState.PENDING
    network_id: str = ""
    subnet_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "resource_id": self.resource_id,
            "has_external_ip": self.has_external_ip,
            "address": self.address,
            "state": self.state.value,
            "network_id": self.network_id,
            "subnet_id": self.subnet_id,
        }


@dataclass
class CleanupResult:
    """Outcome of deleting an ephemeral resource.

    An unconfirmed termination is advisory: ``incomplete`` is True but the
    probe result that led here stays usable.
    """

    resource_id: str
    deleted: bool
    status: CleanupStatus
    reason: str = ""

    @property
    def incomplete(self) -> bool:
        return self.status == CleanupStatus.IN_PROGRESS

    def to_dict(self) -> dict[str, Any]:
        return {
            "resource_id": self.resource_id,
            "deleted": self.deleted,
            "status": self.status.value,
            "reason": self.reason,
            "incomplete": self.incomplete,
        }


@dataclass
class TrafficEvidence:
    """Merged evidence from a select -> create -> observe -> delete probe run."""

    network_id: str
    subnet_id: str = ""
    resource_id: str = ""
    generated: bool = False
    external_address: ExternalAddressObservation | None = None
    stabilization_error: str | None = None
    inspection_error: str | None = None
    cleanup: CleanupResult | None = None
    cleanup_error: str | None = None
    warnings: list[str] = field(default_factory=list)
    possibly_leaked_resource_ids: list[str] = field(default_factory=list)

    @property
    def has_external_ip(self) -> bool | None:
        if self.external_address is None:
            return None
        return self.external_address.has_external_ip

    @property
    def cleanup_deleted(self) -> bool:
        return self.cleanup is not None and self.cleanup.deleted

    def to_dict(self) -> dict[str, Any]:
        return {
            "network_id": self.network_id,
            "subnet_id": self.subnet_id,
            "resource_id": self.resource_id,
            "generated": self.generated,
            "has_external_ip": self.has_external_ip,
            "external_address": self.external_address.to_dict() if self.external_address else None,
            "stabilization_error": self.stabilization_error,
            "inspection_error": self.inspection_error,
            "cleanup": self.cleanup.to_dict() if self.cleanup else None,
            "cleanup_deleted": self.cleanup_deleted,
            "cleanup_error": self.cleanup_error,
            "warnings": list(self.warnings),
            "possibly_leaked_resource_ids": list(self.possibly_leaked_resource_ids),
        }


@dataclass
class FlowLogDeliveryObservation:
    """Best-effort delivery health of a network's flow logs (non-blocking)."""

    network_id: str
    flow_log_count: int = 0
    active_all_count: int = 0
    delivery_success_count: int = 0
    reason: str = ""

    @property
    def ready(self) -> bool:
        return self.flow_log_count > 0 and self.active_all_count == self.flow_log_count

    @property
    def records_observed(self) -> bool:
        return self.delivery_success_count > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "network_id": self.network_id,
            "flow_log_count": self.flow_log_count,
            "active_all_count": self.active_all_count,
            "delivery_success_count": self.delivery_success_count,
            "ready": self.ready,
            "records_observed": self.records_observed,
            "reason": self.reason,
        }


# ---------------------------------------------------------------------------
# Verdicts
# ---------------------------------------------------------------------------


@dataclass
class ControlVerdict:
    """The verdict for one control on one network, with supporting evidence."""

    control_id: str
    network_id: str
    verdict: Verdict
    result_class: ResultClass
    reason: str
    evidence: dict[str, Any] = field(default_factory=dict)

    @property
    def compliant(self) -> bool:
        return self.verdict == Verdict.PASS

    def summary(self) -> str:
        """One-line human readable form used in logs and summaries."""
        return (
            f"{self.control_id}: {self.verdict.value} ({self.result_class.value}) "
            f"for network {self.network_id} - {self.reason}"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "control_id": self.control_id,
            "network_id": self.network_id,
            "verdict": self.verdict.value,
            "result_class": self.result_class.value,
            "compliant": self.compliant,
            "reason": self.reason,
            "evidence": self.evidence,
        }


@dataclass
class NetworkReport:
    """All control verdicts gathered for one network in one invocation."""

    network_id: str
    verdicts: list[ControlVerdict] = field(default_factory=list)
    duration_seconds: float = 0.0
    warnings: list[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=datetime.now)

    def add_verdict(self, verdict: ControlVerdict):
        self.verdicts.append(verdict)

    def get_verdict(self, control_id: str) -> ControlVerdict | None:
        for v in self.verdicts:
            if v.control_id == control_id:
                return v
        return None

    def count(self, verdict: Verdict) -> int:
        return sum(1 for v in self.verdicts if v.verdict == verdict)

    @property
    def is_compliant(self) -> bool:
        """No control failed and none was left unchecked by a setup error."""
        return not any(v.verdict in (Verdict.FAIL, Verdict.SETUP_ERROR) for v in self.verdicts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "network_id": self.network_id,
            "is_compliant": self.is_compliant,
            "summary": {
                "pass": self.count(Verdict.PASS),
                "fail": self.count(Verdict.FAIL),
                "na": self.count(Verdict.NA),
                "setup_error": self.count(Verdict.SETUP_ERROR),
            },
            "duration_seconds": self.duration_seconds,
            "timestamp": self.timestamp.isoformat(),
            "warnings": list(self.warnings),
            "verdicts": [v.to_dict() for v in self.verdicts],
        }
