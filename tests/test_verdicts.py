# Copyright 2026 Cisco Systems, Inc.
# SPDX-License-Identifier: Apache-2.0

"""Tests for the pure verdict reductions."""

from vpc_verifier.config.constants import VerifierConstants
from vpc_verifier.core.exceptions import NotFoundError
from vpc_verifier.core.models import (
    AllowListResult,
    CleanupResult,
    CleanupStatus,
    DryRunOutcome,
    DryRunResponse,
    ExternalAddressObservation,
    PeeringEvidence,
    PeeringTrial,
    ResultClass,
    Subnet,
    TrafficEvidence,
    TrialRunResult,
    Verdict,
    VirtualNetwork,
)
from vpc_verifier.core.policy import FlowLogPolicy, VerificationPolicy
from vpc_verifier.core.verdicts import (
    allow_list_evaluation,
    classify_dry_run_response,
    default_network_verdict,
    enforcement_summary,
    external_address_verdict,
    flow_log_delivery_observation,
    flow_log_verdict,
    peering_attempts_verdict,
    peering_evidence_verdict,
    peering_trials_verdict,
    public_subnet_verdict,
    setup_error_verdict,
)

from conftest import flow_log

C = VerifierConstants
DRY_RUN = VerificationPolicy.default().dry_run


def _public(subnet_id: str, auto_assign: bool) -> Subnet:
    return Subnet(subnet_id, "vpc-1", map_public_ip_on_launch=auto_assign, route_table_id="rtb-pub", is_public=True)


class TestDefaultNetworkVerdict:
    def test_default_network_fails(self):
        verdict = default_network_verdict(VirtualNetwork("vpc-d", is_default=True))
        assert verdict.verdict == Verdict.FAIL
        assert verdict.control_id == C.CONTROL_DEFAULT_NETWORK
        assert verdict.evidence["is_default"] is True

    def test_custom_network_passes(self):
        verdict = default_network_verdict(VirtualNetwork("vpc-1"))
        assert verdict.verdict == Verdict.PASS
        assert verdict.result_class == ResultClass.PASS
        assert verdict.compliant


class TestPublicSubnetVerdict:
    def test_no_public_subnets_is_na(self):
        verdict = public_subnet_verdict("vpc-1", [])
        assert verdict.verdict == Verdict.NA
        assert verdict.evidence["public_subnet_count"] == 0

    def test_auto_assign_fails_with_sorted_ids(self):
        subnets = [_public("subnet-b", True), _public("subnet-c", False), _public("subnet-a", True)]
        verdict = public_subnet_verdict("vpc-1", subnets)
        assert verdict.verdict == Verdict.FAIL
        assert verdict.evidence["violating_subnet_ids"] == ["subnet-a", "subnet-b"]
        assert verdict.evidence["violating_subnet_count"] == 2
        assert verdict.evidence["public_subnet_count"] == 3
        assert "subnet-a, subnet-b" in verdict.reason

    def test_no_auto_assign_passes(self):
        verdict = public_subnet_verdict("vpc-1", [_public("subnet-a", False)])
        assert verdict.verdict == Verdict.PASS
        assert verdict.evidence["violating_subnet_ids"] == []


class TestFlowLogVerdict:
    def test_no_flow_logs_fails(self):
        verdict = flow_log_verdict("vpc-1", [], FlowLogPolicy())
        assert verdict.verdict == Verdict.FAIL
        assert verdict.evidence["flow_log_count"] == 0

    def test_active_all_passes(self):
        verdict = flow_log_verdict("vpc-1", [flow_log("fl-1"), flow_log("fl-2")], FlowLogPolicy())
        assert verdict.verdict == Verdict.PASS
        assert verdict.evidence["non_compliant_count"] == 0

    def test_reject_only_fails(self):
        logs = [flow_log("fl-1"), flow_log("fl-2", traffic_type="REJECT")]
        verdict = flow_log_verdict("vpc-1", logs, FlowLogPolicy())
        assert verdict.verdict == Verdict.FAIL
        assert verdict.evidence["non_compliant_flow_log_ids"] == ["fl-2"]

    def test_inactive_fails(self):
        verdict = flow_log_verdict("vpc-1", [flow_log("fl-1", status="INACTIVE")], FlowLogPolicy())
        assert verdict.verdict == Verdict.FAIL

    def test_status_comparison_ignores_case(self):
        verdict = flow_log_verdict("vpc-1", [flow_log("fl-1", status="active", traffic_type="all")], FlowLogPolicy())
        assert verdict.verdict == Verdict.PASS


class TestFlowLogDeliveryObservation:
    def test_ready_and_delivered(self):
        observation = flow_log_delivery_observation("vpc-1", [flow_log("fl-1")], FlowLogPolicy())
        assert observation.ready
        assert observation.records_observed
        assert observation.delivery_success_count == 1

    def test_ready_but_failed_delivery(self):
        observation = flow_log_delivery_observation(
            "vpc-1", [flow_log("fl-1", delivery_status="FAILED")], FlowLogPolicy()
        )
        assert observation.ready
        assert not observation.records_observed

    def test_empty(self):
        observation = flow_log_delivery_observation("vpc-1", [], FlowLogPolicy())
        assert not observation.ready
        assert observation.reason == "no flow logs to observe"


class TestClassifyDryRunResponse:
    def test_success_is_allowed(self):
        result = classify_dry_run_response(DryRunResponse.success(), DRY_RUN)
        assert result.outcome == DryRunOutcome.ALLOWED
        assert result.basis == "success"

    def test_dry_run_operation_code_is_allowed(self):
        result = classify_dry_run_response(DryRunResponse.api_error("DryRunOperation", "Request would have succeeded"), DRY_RUN)
        assert result.allowed
        assert result.basis == "error_code"

    def test_unauthorized_code_is_denied(self):
        result = classify_dry_run_response(DryRunResponse.api_error("UnauthorizedOperation"), DRY_RUN)
        assert result.outcome == DryRunOutcome.DENIED
        assert result.basis == "error_code"

    def test_code_outranks_message(self):
        response = DryRunResponse.api_error("UnauthorizedOperation", "request would have succeeded")
        assert classify_dry_run_response(response, DRY_RUN).outcome == DryRunOutcome.DENIED

    def test_message_heuristic_deny(self):
        response = DryRunResponse.api_error("SomethingOdd", "Access was denied by an SCP")
        result = classify_dry_run_response(response, DRY_RUN)
        assert result.outcome == DryRunOutcome.DENIED
        assert result.basis == "message_heuristic"

    def test_message_heuristic_allow(self):
        response = DryRunResponse.api_error("SomethingOdd", "Request would have succeeded, but DryRun flag is set.")
        result = classify_dry_run_response(response, DRY_RUN)
        assert result.outcome == DryRunOutcome.ALLOWED
        assert result.basis == "message_heuristic"

    def test_unrecognized_is_ambiguous(self):
        response = DryRunResponse.api_error("InvalidVpcID.NotFound", "The vpc ID 'vpc-x' does not exist")
        result = classify_dry_run_response(response, DRY_RUN)
        assert result.outcome == DryRunOutcome.AMBIGUOUS
        assert not result.allowed

    def test_transport_error_is_not_a_denial(self):
        result = classify_dry_run_response(DryRunResponse.transport_error("connection reset"), DRY_RUN)
        assert result.outcome == DryRunOutcome.TRANSPORT_ERROR
        assert "connection reset" in result.reason


class TestAllowListComparisons:
    def test_undefined_allow_list(self):
        evaluation = allow_list_evaluation("vpc-x", AllowListResult())
        assert not evaluation.basis_defined
        assert not evaluation.allowed

    def test_membership(self):
        allow_list = AllowListResult(ids=("vpc-a", "vpc-b"), source="src")
        assert allow_list_evaluation("vpc-a", allow_list).allowed
        assert not allow_list_evaluation("vpc-x", allow_list).allowed
        assert allow_list_evaluation("vpc-x", allow_list).basis_defined

    def test_enforcement_undefined_never_mismatches(self):
        evidence = PeeringEvidence("vpc-x", "vpc-1", dry_run_allowed=True, outcome=DryRunOutcome.ALLOWED)
        summary = enforcement_summary(evidence, AllowListResult())
        assert summary.basis_defined is False
        assert summary.expected is None
        assert summary.mismatch is None
        assert summary.actual is True

    def test_enforcement_mismatch(self):
        evidence = PeeringEvidence("vpc-x", "vpc-1", dry_run_allowed=True, outcome=DryRunOutcome.ALLOWED)
        summary = enforcement_summary(evidence, AllowListResult(ids=("vpc-a",), source="src"))
        assert summary.expected is False
        assert summary.mismatch is True
        assert summary.reason.startswith("guardrail mismatch")

    def test_enforcement_aligned(self):
        evidence = PeeringEvidence("vpc-x", "vpc-1", dry_run_allowed=False, outcome=DryRunOutcome.DENIED)
        summary = enforcement_summary(evidence, AllowListResult(ids=("vpc-a",), source="src"))
        assert summary.mismatch is False
        assert summary.reason.startswith("guardrail aligned")


class TestPeeringVerdicts:
    def _evidence(self, outcome: DryRunOutcome, allowed: bool = False) -> PeeringEvidence:
        return PeeringEvidence("vpc-x", "vpc-1", dry_run_allowed=allowed, outcome=outcome, reason="r")

    def test_undefined_basis_is_na_undefined(self):
        evidence = self._evidence(DryRunOutcome.ALLOWED, allowed=True)
        verdict = peering_evidence_verdict(evidence, enforcement_summary(evidence, AllowListResult()))
        assert verdict.verdict == Verdict.NA
        assert verdict.result_class == ResultClass.UNDEFINED

    def test_mismatch_fails(self):
        evidence = self._evidence(DryRunOutcome.ALLOWED, allowed=True)
        summary = enforcement_summary(evidence, AllowListResult(ids=("vpc-a",), source="s"))
        assert peering_evidence_verdict(evidence, summary).verdict == Verdict.FAIL

    def test_aligned_denial_passes(self):
        evidence = self._evidence(DryRunOutcome.DENIED)
        summary = enforcement_summary(evidence, AllowListResult(ids=("vpc-a",), source="s"))
        assert peering_evidence_verdict(evidence, summary).verdict == Verdict.PASS

    def test_transport_error_is_setup_error(self):
        evidence = self._evidence(DryRunOutcome.TRANSPORT_ERROR)
        summary = enforcement_summary(evidence, AllowListResult(ids=("vpc-a",), source="s"))
        assert peering_evidence_verdict(evidence, summary).verdict == Verdict.SETUP_ERROR

    def test_ambiguous_without_mismatch_is_na(self):
        evidence = self._evidence(DryRunOutcome.AMBIGUOUS)
        summary = enforcement_summary(evidence, AllowListResult(ids=("vpc-a",), source="s"))
        verdict = peering_evidence_verdict(evidence, summary)
        assert verdict.verdict == Verdict.NA
        assert verdict.result_class == ResultClass.NA

    def test_attempts_rank_setup_error_over_fail(self):
        failed = default_network_verdict(VirtualNetwork("vpc-1", is_default=True))
        errored = setup_error_verdict(C.CONTROL_PEERING, "vpc-1", RuntimeError("throttled"))
        combined = peering_attempts_verdict("vpc-1", [failed, errored])
        assert combined.verdict == Verdict.SETUP_ERROR
        assert combined.evidence["attempt_count"] == 2

    def test_attempts_empty_is_undefined(self):
        verdict = peering_attempts_verdict("vpc-1", [])
        assert verdict.verdict == Verdict.NA
        assert verdict.result_class == ResultClass.UNDEFINED


class TestPeeringTrialsVerdict:
    def _result(self, *trials: PeeringTrial) -> TrialRunResult:
        return TrialRunResult(file_path="t.yaml", receiver_id="vpc-1", trials=list(trials))

    def test_all_expected_passes(self):
        result = self._result(
            PeeringTrial("vpc-x", "vpc-1", expected_allowed=False, actual_allowed=False, outcome=DryRunOutcome.DENIED),
            PeeringTrial("vpc-y", "vpc-1", expected_allowed=True, actual_allowed=True, outcome=DryRunOutcome.ALLOWED),
        )
        assert peering_trials_verdict(result).verdict == Verdict.PASS

    def test_unexpected_fails(self):
        result = self._result(
            PeeringTrial("vpc-x", "vpc-1", expected_allowed=False, actual_allowed=True, outcome=DryRunOutcome.ALLOWED)
        )
        verdict = peering_trials_verdict(result)
        assert verdict.verdict == Verdict.FAIL
        assert "vpc-x" in verdict.reason

    def test_no_trials_is_undefined(self):
        verdict = peering_trials_verdict(self._result())
        assert verdict.verdict == Verdict.NA
        assert verdict.result_class == ResultClass.UNDEFINED

    def test_transport_error_is_setup_error(self):
        result = self._result(
            PeeringTrial(
                "vpc-x", "vpc-1", expected_allowed=False, actual_allowed=False, outcome=DryRunOutcome.TRANSPORT_ERROR
            )
        )
        assert peering_trials_verdict(result).verdict == Verdict.SETUP_ERROR


class TestExternalAddressVerdict:
    def _evidence(self, address: str | None) -> TrafficEvidence:
        evidence = TrafficEvidence(network_id="vpc-1", subnet_id="subnet-pub", resource_id="i-1", generated=True)
        if address is not None:
            evidence.external_address = ExternalAddressObservation("i-1", has_external_ip=bool(address), address=address)
        evidence.cleanup = CleanupResult("i-1", deleted=True, status=CleanupStatus.TERMINATED)
        return evidence

    def test_external_ip_fails(self):
        verdict = external_address_verdict(self._evidence("203.0.113.10"))
        assert verdict.verdict == Verdict.FAIL
        assert verdict.control_id == C.CONTROL_PUBLIC_IP_BEHAVIOR
        assert "203.0.113.10" in verdict.reason

    def test_no_external_ip_passes(self):
        assert external_address_verdict(self._evidence("")).verdict == Verdict.PASS

    def test_unobserved_is_setup_error(self):
        evidence = self._evidence(None)
        evidence.stabilization_error = "timed out"
        verdict = external_address_verdict(evidence)
        assert verdict.verdict == Verdict.SETUP_ERROR
        assert verdict.reason == "timed out"


class TestSetupErrorVerdict:
    def test_records_operation(self):
        error = NotFoundError("network vpc-9 not found", resource_id="vpc-9", operation="describe_vpcs")
        verdict = setup_error_verdict(C.CONTROL_DEFAULT_NETWORK, "vpc-9", error)
        assert verdict.verdict == Verdict.SETUP_ERROR
        assert verdict.result_class == ResultClass.SETUP_ERROR
        assert verdict.evidence == {
            "error_type": "NotFoundError",
            "error": "network vpc-9 not found",
            "operation": "describe_vpcs",
        }
        assert not verdict.compliant
