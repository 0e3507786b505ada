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
Peering allow-list resolution.

The allowed requester ids come from the first configuration tier that yields
any data:

1. ``VPC_VERIFIER_ALLOWED_REQUESTER_IDS`` (comma-separated)
2. ``VPC_VERIFIER_ALLOWED_REQUESTER_ID_1`` .. ``_99``
3. the allowed list of ``VPC_VERIFIER_PEER_TRIAL_MATRIX_FILE``

Tiers are never merged. When no tier yields data the allow-list is
*undefined* and every comparison against it reports ``basis_defined=False``.
"""

from __future__ import annotations

import logging

from ..config.config import Config
from ..config.constants import VerifierConstants
from .exceptions import TrialMatrixError
from .models import AllowListEvaluation, AllowListResult, EnforcementSummary, PeeringEvidence
from .policy import VerificationPolicy
from .trial_matrix import load_trial_matrix, normalize_string_list
from .verdicts import allow_list_evaluation, enforcement_summary

logger = logging.getLogger(__name__)

__all__ = ["AllowListResolver", "normalize_string_list"]


class AllowListResolver:
    """Resolves the peering allow-list from configuration. Holds no state between calls."""

    def __init__(self, config: Config | None = None, policy: VerificationPolicy | None = None):
        self.config = config or Config.from_env()
        self.policy = policy or VerificationPolicy.default()

    def resolve_allowed_requester_ids(self) -> AllowListResult:
        """
        Return the allowed requester ids and the tier they came from.

        Raises:
            TrialMatrixError: If the trial-matrix tier is configured but unreadable
        """
        C = VerifierConstants

        ids = normalize_string_list([self.config.allowed_requester_ids])
        if ids:
            return AllowListResult(ids=tuple(ids), source=C.SOURCE_MULTI_VALUE)

        entries = self.config.allowed_requester_id_entries[: self.policy.allow_list.max_indexed_entries]
        ids = normalize_string_list(entries)
        if ids:
            return AllowListResult(ids=tuple(ids), source=C.SOURCE_INDEXED)

        matrix_path = (self.config.peer_trial_matrix_file or "").strip()
        if matrix_path:
            matrix = load_trial_matrix(matrix_path, self.config.peer_owner_id)
            if matrix.allowed_requester_ids:
                return AllowListResult(
                    ids=tuple(matrix.allowed_requester_ids),
                    source=f"{C.SOURCE_TRIAL_MATRIX} ({matrix.path})",
                )

        return AllowListResult()

    def _resolve_safely(self) -> tuple[AllowListResult, str]:
        try:
            return self.resolve_allowed_requester_ids(), ""
        except TrialMatrixError as e:
            logger.warning("Allow-list resolution failed: %s", e)
            return AllowListResult(), f"allow-list resolution failed: {e}"

    def evaluate_peering_against_allow_list(self, peer_id: str) -> AllowListEvaluation:
        """Report whether *peer_id* is allow-listed, or that no list is defined."""
        if not peer_id or not peer_id.strip():
            raise ValueError("peer_id is required")
        allow_list, error = self._resolve_safely()
        evaluation = allow_list_evaluation(peer_id.strip(), allow_list)
        if error:
            evaluation.reason = error
        return evaluation

    def summarize_enforcement_mismatch(self, evidence: PeeringEvidence) -> EnforcementSummary:
        """Compare a dry-run outcome with what the allow-list expects."""
        allow_list, error = self._resolve_safely()
        summary = enforcement_summary(evidence, allow_list)
        if error:
            summary.reason = error
        return summary

    def enrich_evidence(self, evidence: PeeringEvidence) -> PeeringEvidence:
        """Fill the allow-list fields of *evidence* in place and return it."""
        allow_list, error = self._resolve_safely()
        summary = enforcement_summary(evidence, allow_list)

        evidence.allow_list_defined = allow_list.defined
        evidence.allow_list_source = allow_list.source
        evidence.requester_in_allow_list = evidence.requester_id in allow_list
        if summary.basis_defined:
            evidence.expectation = "allow" if summary.expected else "deny"
            evidence.mismatch = summary.mismatch
        else:
            evidence.expectation = None
            evidence.mismatch = None

        evidence.reason = f"{evidence.reason}; {error or summary.reason}" if evidence.reason else (error or summary.reason)
        return evidence
