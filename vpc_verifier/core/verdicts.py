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
Verdict builder: pure reductions from raw evidence to control verdicts.

Nothing in this module performs I/O. Every function takes literal evidence
(subnet lists, flow-log records, probe results, allow-list membership) and
returns a record, so each rule can be tested from fixtures alone.
"""

from __future__ import annotations

from ..config.constants import VerifierConstants
from .models import (
    AllowListEvaluation,
    AllowListResult,
    ControlVerdict,
    DryRunClassification,
    DryRunOutcome,
    DryRunResponse,
    DryRunResponseKind,
    EnforcementSummary,
    FlowLogDeliveryObservation,
    FlowLogRecord,
    PeeringEvidence,
    ResultClass,
    Subnet,
    TrafficEvidence,
    TrialRunResult,
    Verdict,
    VirtualNetwork,
)
from .policy import DryRunPolicy, FlowLogPolicy

C = VerifierConstants


def _verdict(
    control_id: str,
    network_id: str,
    verdict: Verdict,
    reason: str,
    evidence: dict | None = None,
    result_class: ResultClass | None = None,
) -> ControlVerdict:
    return ControlVerdict(
        control_id=control_id,
        network_id=network_id,
        verdict=verdict,
        result_class=result_class or ResultClass(verdict.value),
        reason=reason,
        evidence=evidence or {},
    )


# ---------------------------------------------------------------------------
# Structural controls
# ---------------------------------------------------------------------------


def default_network_verdict(network: VirtualNetwork) -> ControlVerdict:
    """FAIL iff *network* is a provider-created default network."""
    evidence = {"is_default": network.is_default, "network": network.to_dict()}
    if network.is_default:
        return _verdict(
            C.CONTROL_DEFAULT_NETWORK,
            network.network_id,
            Verdict.FAIL,
            f"network {network.network_id} is a default network",
            evidence,
        )
    return _verdict(
        C.CONTROL_DEFAULT_NETWORK,
        network.network_id,
        Verdict.PASS,
        f"network {network.network_id} is not a default network",
        evidence,
    )


def public_subnet_verdict(network_id: str, public_subnets: list[Subnet]) -> ControlVerdict:
    """
    Reduce a network's public subnets to a CN02 verdict.

    NA when there is nothing to check, FAIL when any public subnet
    auto-assigns public IPs on launch, PASS otherwise.
    """
    violating = sorted(s.subnet_id for s in public_subnets if s.map_public_ip_on_launch)
    evidence = {
        "public_subnet_count": len(public_subnets),
        "public_subnet_ids": sorted(s.subnet_id for s in public_subnets),
        "violating_subnet_count": len(violating),
        "violating_subnet_ids": violating,
    }

    if not public_subnets:
        return _verdict(
            C.CONTROL_PUBLIC_SUBNET_IP,
            network_id,
            Verdict.NA,
            f"no public subnets found in network {network_id}",
            evidence,
        )
    if violating:
        return _verdict(
            C.CONTROL_PUBLIC_SUBNET_IP,
            network_id,
            Verdict.FAIL,
            f"{len(violating)} of {len(public_subnets)} public subnet(s) auto-assign public IPs: "
            + ", ".join(violating),
            evidence,
        )
    return _verdict(
        C.CONTROL_PUBLIC_SUBNET_IP,
        network_id,
        Verdict.PASS,
        f"none of {len(public_subnets)} public subnet(s) auto-assign public IPs",
        evidence,
    )


def _is_active_all(record: FlowLogRecord, policy: FlowLogPolicy) -> bool:
    return (
        record.status.upper() == policy.required_status.upper()
        and record.traffic_type.upper() == policy.required_traffic_type.upper()
    )


def flow_log_verdict(network_id: str, flow_logs: list[FlowLogRecord], policy: FlowLogPolicy) -> ControlVerdict:
    """FAIL when no flow logs exist or any is not both ACTIVE and capturing ALL traffic."""
    non_compliant = [f.flow_log_id for f in flow_logs if not _is_active_all(f, policy)]
    evidence = {
        "flow_log_count": len(flow_logs),
        "flow_log_ids": [f.flow_log_id for f in flow_logs],
        "non_compliant_flow_log_ids": non_compliant,
        "non_compliant_count": len(non_compliant),
    }

    if not flow_logs:
        return _verdict(
            C.CONTROL_FLOW_LOGS, network_id, Verdict.FAIL, f"no flow logs configured for network {network_id}", evidence
        )
    if non_compliant:
        return _verdict(
            C.CONTROL_FLOW_LOGS,
            network_id,
            Verdict.FAIL,
            f"{len(non_compliant)} flow log(s) not {policy.required_status} with traffic type "
            f"{policy.required_traffic_type}: " + ", ".join(non_compliant),
            evidence,
        )
    return _verdict(
        C.CONTROL_FLOW_LOGS,
        network_id,
        Verdict.PASS,
        f"all {len(flow_logs)} flow log(s) are {policy.required_status} and capture "
        f"{policy.required_traffic_type} traffic",
        evidence,
    )


def flow_log_delivery_observation(
    network_id: str, flow_logs: list[FlowLogRecord], policy: FlowLogPolicy
) -> FlowLogDeliveryObservation:
    """Summarize delivery health. Informational only; never changes the CN04 verdict."""
    active_all = [f for f in flow_logs if _is_active_all(f, policy)]
    delivered = [
        f
        for f in flow_logs
        if f.status.upper() == policy.required_status.upper()
        and f.delivery_status.upper() == policy.delivery_success_status.upper()
    ]
    observation = FlowLogDeliveryObservation(
        network_id=network_id,
        flow_log_count=len(flow_logs),
        active_all_count=len(active_all),
        delivery_success_count=len(delivered),
    )
    if not flow_logs:
        observation.reason = "no flow logs to observe"
    elif not observation.ready:
        observation.reason = f"{len(active_all)} of {len(flow_logs)} flow log(s) are ready for delivery"
    elif observation.records_observed:
        observation.reason = f"{len(delivered)} flow log(s) report successful delivery"
    else:
        observation.reason = "flow logs are active but no successful delivery has been reported yet"
    return observation


# ---------------------------------------------------------------------------
# Peering enforcement
# ---------------------------------------------------------------------------


def classify_dry_run_response(response: DryRunResponse, policy: DryRunPolicy) -> DryRunClassification:
    """
    Classify a dry-run response as allowed, denied or ambiguous.

    Error codes are authoritative; message markers are only consulted when the
    code is in neither list. Transport failures keep their own outcome so
    they are never mistaken for a policy denial.
    """
    if response.kind == DryRunResponseKind.TRANSPORT_ERROR:
        return DryRunClassification(
            outcome=DryRunOutcome.TRANSPORT_ERROR,
            basis="transport",
            reason=f"dry-run call did not reach the provider: {response.message}",
        )

    if response.kind == DryRunResponseKind.API_SUCCESS:
        return DryRunClassification(
            outcome=DryRunOutcome.ALLOWED,
            basis="success",
            reason="dry-run call returned success; request would be allowed",
        )

    code = response.error_code.strip()
    if policy.is_allow_code(code):
        return DryRunClassification(
            outcome=DryRunOutcome.ALLOWED,
            basis="error_code",
            reason=f"{code} indicates request would be allowed",
        )
    if policy.is_deny_code(code):
        return DryRunClassification(
            outcome=DryRunOutcome.DENIED,
            basis="error_code",
            reason=f"{code} indicates request was denied",
        )

    text = f"{code} {response.message}".lower()
    for marker in policy.allow_message_markers:
        if marker and marker in text:
            return DryRunClassification(
                outcome=DryRunOutcome.ALLOWED,
                basis="message_heuristic",
                reason=f"dry-run response mentions '{marker}'; request would be allowed",
            )
    for marker in policy.deny_message_markers:
        if marker and marker in text:
            return DryRunClassification(
                outcome=DryRunOutcome.DENIED,
                basis="message_heuristic",
                reason=f"dry-run response mentions '{marker}'; request treated as denied",
            )

    return DryRunClassification(
        outcome=DryRunOutcome.AMBIGUOUS,
        basis="unrecognized",
        reason=f"dry-run response could not be classified: {code or 'no error code'}",
    )


def allow_list_evaluation(peer_id: str, allow_list: AllowListResult) -> AllowListEvaluation:
    """Is *peer_id* allow-listed? ``basis_defined`` is False when no list is configured."""
    if not allow_list.defined:
        return AllowListEvaluation(
            peer_id=peer_id,
            allowed=False,
            basis_defined=False,
            reason="no allow-list is configured; membership cannot be evaluated",
        )
    allowed = peer_id in allow_list
    return AllowListEvaluation(
        peer_id=peer_id,
        allowed=allowed,
        basis_defined=True,
        source=allow_list.source,
        allowed_ids=list(allow_list.ids),
        reason=(
            f"{peer_id} is in the allow-list from {allow_list.source}"
            if allowed
            else f"{peer_id} is not in the allow-list from {allow_list.source}"
        ),
    )


def enforcement_summary(evidence: PeeringEvidence, allow_list: AllowListResult) -> EnforcementSummary:
    """Compare what the allow-list expects with what the dry-run observed."""
    actual = evidence.dry_run_allowed
    if not allow_list.defined:
        return EnforcementSummary(
            expected=None,
            actual=actual,
            mismatch=None,
            basis_defined=False,
            reason="allow-list is not defined, so enforcement expectation cannot be computed",
        )

    expected = evidence.requester_id in allow_list
    mismatch = expected != actual
    expectation = "allow" if expected else "deny"
    state = "mismatch" if mismatch else "aligned"
    return EnforcementSummary(
        expected=expected,
        actual=actual,
        mismatch=mismatch,
        basis_defined=True,
        reason=f"guardrail {state}: allow-list expects {expectation} for requester {evidence.requester_id}",
    )


def peering_evidence_verdict(evidence: PeeringEvidence, summary: EnforcementSummary) -> ControlVerdict:
    """
    Reduce a single dry-run peering attempt to a CN03 verdict.

    An undefined allow-list yields NA with result class UNDEFINED, never FAIL.
    """
    details = {"peering": evidence.to_dict(), "enforcement": summary.to_dict()}
    network_id = evidence.receiver_id

    if evidence.outcome == DryRunOutcome.TRANSPORT_ERROR:
        return _verdict(
            C.CONTROL_PEERING, network_id, Verdict.SETUP_ERROR, evidence.reason or "dry-run call failed", details
        )
    if not summary.basis_defined:
        return _verdict(
            C.CONTROL_PEERING,
            network_id,
            Verdict.NA,
            summary.reason,
            details,
            result_class=ResultClass.UNDEFINED,
        )
    if summary.mismatch:
        return _verdict(C.CONTROL_PEERING, network_id, Verdict.FAIL, summary.reason, details)
    if evidence.outcome == DryRunOutcome.AMBIGUOUS:
        return _verdict(
            C.CONTROL_PEERING,
            network_id,
            Verdict.NA,
            f"enforcement ambiguous: {evidence.reason}",
            details,
        )
    return _verdict(C.CONTROL_PEERING, network_id, Verdict.PASS, summary.reason, details)


def peering_trials_verdict(result: TrialRunResult) -> ControlVerdict:
    """PASS iff at least one trial ran and every trial matched its expectation."""
    details = result.to_dict()
    unexpected = [t.requester_id for t in result.unexpected_trials()]
    unreached = [t.requester_id for t in result.trials if t.outcome == DryRunOutcome.TRANSPORT_ERROR]

    if unreached:
        return _verdict(
            C.CONTROL_PEERING,
            result.receiver_id,
            Verdict.SETUP_ERROR,
            f"{len(unreached)} peering trial(s) could not reach the provider: " + ", ".join(unreached),
            details,
        )
    if result.total_trials == 0:
        return _verdict(
            C.CONTROL_PEERING,
            result.receiver_id,
            Verdict.NA,
            "no peering trials were run",
            details,
            result_class=ResultClass.UNDEFINED,
        )
    if unexpected:
        return _verdict(
            C.CONTROL_PEERING,
            result.receiver_id,
            Verdict.FAIL,
            f"{len(unexpected)} of {result.total_trials} peering trial(s) did not match the allow-list: "
            + ", ".join(unexpected),
            details,
        )
    return _verdict(
        C.CONTROL_PEERING,
        result.receiver_id,
        Verdict.PASS,
        f"all {result.total_trials} peering trial(s) matched the allow-list",
        details,
    )


# ---------------------------------------------------------------------------
# Behavioral public IP
# ---------------------------------------------------------------------------


def external_address_verdict(evidence: TrafficEvidence) -> ControlVerdict:
    """FAIL if the probe resource received an external IP; SETUP_ERROR if it could not be observed."""
    details = evidence.to_dict()
    network_id = evidence.network_id
    control_id = C.CONTROL_PUBLIC_IP_BEHAVIOR

    if evidence.external_address is None:
        reason = evidence.stabilization_error or evidence.inspection_error or "external address was not observed"
        return _verdict(control_id, network_id, Verdict.SETUP_ERROR, reason, details)

    observation = evidence.external_address
    if observation.has_external_ip:
        return _verdict(
            control_id,
            network_id,
            Verdict.FAIL,
            f"resource {observation.resource_id} in subnet {evidence.subnet_id} received external IP "
            f"{observation.address}",
            details,
        )
    return _verdict(
        control_id,
        network_id,
        Verdict.PASS,
        f"resource {observation.resource_id} in subnet {evidence.subnet_id} received no external IP",
        details,
    )


def setup_error_verdict(control_id: str, network_id: str, error: Exception) -> ControlVerdict:
    """Wrap a collaborator failure; distinct from a control FAIL."""
    evidence = {"error_type": type(error).__name__, "error": str(error)}
    operation = getattr(error, "operation", None)
    if operation:
        evidence["operation"] = operation
    return _verdict(control_id, network_id, Verdict.SETUP_ERROR, f"check could not run: {error}", evidence)


def peering_attempts_verdict(receiver_id: str, verdicts: list[ControlVerdict]) -> ControlVerdict:
    """
    Combine per-requester peering verdicts into one verdict for the receiver.

    SETUP_ERROR outranks FAIL, FAIL outranks NA, and PASS requires every
    attempt to pass.
    """
    details = {"attempt_count": len(verdicts), "attempts": [v.to_dict() for v in verdicts]}
    if not verdicts:
        return _verdict(
            C.CONTROL_PEERING,
            receiver_id,
            Verdict.NA,
            "no peering attempts were made",
            details,
            result_class=ResultClass.UNDEFINED,
        )

    for severity in (Verdict.SETUP_ERROR, Verdict.FAIL):
        matching = [v for v in verdicts if v.verdict == severity]
        if matching:
            return _verdict(
                C.CONTROL_PEERING,
                receiver_id,
                severity,
                "; ".join(v.reason for v in matching),
                details,
            )

    not_applicable = [v for v in verdicts if v.verdict == Verdict.NA]
    if not_applicable:
        undefined = any(v.result_class == ResultClass.UNDEFINED for v in not_applicable)
        return _verdict(
            C.CONTROL_PEERING,
            receiver_id,
            Verdict.NA,
            not_applicable[0].reason,
            details,
            result_class=ResultClass.UNDEFINED if undefined else ResultClass.NA,
        )
    return _verdict(
        C.CONTROL_PEERING,
        receiver_id,
        Verdict.PASS,
        f"all {len(verdicts)} peering attempt(s) matched the allow-list",
        details,
    )
