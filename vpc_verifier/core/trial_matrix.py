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
Peering trial matrices: which requesters should be able to peer with a receiver.

A trial matrix is a YAML (or JSON) file naming a receiving network, an
optional peer owner, and two requester lists. Example::

    receiver_vpc_id: vpc-receiver
    peer_owner_id: "123456789012"
    allowed_requester_vpc_ids: [vpc-a, vpc-b]
    disallowed_requester_vpc_ids: [vpc-x]

Unknown keys are ignored. Several spellings are accepted for each field so
that matrices written for other tools load unchanged.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from .exceptions import MissingReceiverError, NoTrialsDefinedError, TrialMatrixError
from .models import PeeringTrial, TrialRunResult

if TYPE_CHECKING:
    from .probe import BehavioralProbe

logger = logging.getLogger(__name__)

RECEIVER_KEYS = (
    "receiver_vpc_id",
    "receiver_id",
    "peer_vpc_id",
    "target_vpc_id",
    "receiverVpcId",
    "receiverId",
    "peerVpcId",
    "targetVpcId",
)
PEER_OWNER_KEYS = ("peer_owner_id", "peerOwnerId")
ALLOWED_KEYS = (
    "allowed_requester_ids",
    "allowed_requester_vpc_ids",
    "allowed_peer_vpc_ids",
    "allowed_vpc_ids",
    "allowedRequesterIds",
    "allowedRequesterVpcIds",
)
DISALLOWED_KEYS = (
    "disallowed_requester_ids",
    "disallowed_requester_vpc_ids",
    "disallowed_peer_vpc_ids",
    "disallowed_vpc_ids",
    "disallowedRequesterIds",
    "disallowedRequesterVpcIds",
)


def normalize_string_list(values: Iterable[Any] | None) -> list[str]:
    """
    Flatten values into trimmed, de-duplicated strings.

    Each value may itself be a comma-separated list. Order of first
    occurrence is preserved and blanks are dropped.

        >>> normalize_string_list(["a, b", "b", " c "])
        ['a', 'b', 'c']
    """
    seen: set[str] = set()
    result: list[str] = []
    for value in values or []:
        if value is None:
            continue
        for part in str(value).split(","):
            item = part.strip()
            if item and item not in seen:
                seen.add(item)
                result.append(item)
    return result


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _first_string(raw: dict[str, Any], keys: Iterable[str]) -> str:
    for key in keys:
        value = raw.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    return ""


def _collect(raw: dict[str, Any], keys: Iterable[str]) -> list[Any]:
    values: list[Any] = []
    for key in keys:
        values.extend(_as_list(raw.get(key)))
    return values


@dataclass
class TrialMatrix:
    """A loaded trial matrix. ``receiver_id`` may be empty; runners reject that."""

    path: str
    receiver_id: str = ""
    peer_owner_id: str = ""
    allowed_requester_ids: list[str] = field(default_factory=list)
    disallowed_requester_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "receiver_id": self.receiver_id,
            "peer_owner_id": self.peer_owner_id,
            "allowed_requester_ids": list(self.allowed_requester_ids),
            "disallowed_requester_ids": list(self.disallowed_requester_ids),
            "allowed_count": len(self.allowed_requester_ids),
            "disallowed_count": len(self.disallowed_requester_ids),
        }


def load_trial_matrix(path: str | Path, default_peer_owner_id: str | None = None) -> TrialMatrix:
    """
    Load and normalize a trial matrix file.

    Args:
        path: YAML or JSON file
        default_peer_owner_id: Used when the file names no peer owner

    Returns:
        Parsed TrialMatrix with an absolute path

    Raises:
        TrialMatrixError: If the file cannot be read or parsed
        NoTrialsDefinedError: If neither requester list has entries
    """
    resolved = Path(path).expanduser().resolve()
    try:
        with open(resolved, encoding="utf-8") as fh:
            raw = yaml.safe_load(fh)
    except OSError as e:
        raise TrialMatrixError(f"failed to read trial matrix file {resolved}: {e}", path=str(resolved)) from e
    except yaml.YAMLError as e:
        raise TrialMatrixError(f"failed to parse trial matrix file {resolved}: {e}", path=str(resolved)) from e

    if not isinstance(raw, dict):
        raise TrialMatrixError(f"trial matrix file {resolved} must contain a mapping", path=str(resolved))

    receiver_id = _first_string(raw, RECEIVER_KEYS)
    peer_owner_id = _first_string(raw, PEER_OWNER_KEYS)
    allowed = _collect(raw, ALLOWED_KEYS)
    disallowed = _collect(raw, DISALLOWED_KEYS)

    requesters = raw.get("requesters")
    if isinstance(requesters, dict):
        allowed.extend(_as_list(requesters.get("allowed")))
        disallowed.extend(_as_list(requesters.get("disallowed")))
        receiver_id = receiver_id or _first_string(requesters, ("receiver_vpc_id", "receiverVpcId"))

    matrix = TrialMatrix(
        path=str(resolved),
        receiver_id=receiver_id,
        peer_owner_id=peer_owner_id or (default_peer_owner_id or "").strip(),
        allowed_requester_ids=normalize_string_list(allowed),
        disallowed_requester_ids=normalize_string_list(disallowed),
    )
    if not matrix.allowed_requester_ids and not matrix.disallowed_requester_ids:
        raise NoTrialsDefinedError(
            f"trial matrix file {resolved} does not define any requester ids", path=str(resolved)
        )

    logger.debug(
        "Loaded trial matrix %s: receiver=%s allowed=%d disallowed=%d",
        resolved,
        matrix.receiver_id or "<none>",
        len(matrix.allowed_requester_ids),
        len(matrix.disallowed_requester_ids),
    )
    return matrix


class TrialMatrixRunner:
    """Runs one dry-run peering attempt per requester listed in a trial matrix."""

    def __init__(self, probe: BehavioralProbe, default_peer_owner_id: str | None = None):
        self.probe = probe
        self.default_peer_owner_id = default_peer_owner_id

    def describe_trial_matrix(self, path: str | Path) -> dict[str, Any]:
        """Load a matrix and summarize it without issuing any requests."""
        matrix = load_trial_matrix(path, self.default_peer_owner_id)
        summary = matrix.to_dict()
        summary["total_trials"] = len(matrix.allowed_requester_ids) + len(matrix.disallowed_requester_ids)
        summary["runnable"] = bool(matrix.receiver_id)
        return summary

    def run_trials_from_file(self, path: str | Path) -> TrialRunResult:
        """
        Attempt a dry-run peering from every listed requester to the receiver.

        Disallowed requesters are tried first, then allowed ones.

        Raises:
            TrialMatrixError: If the file cannot be loaded
            MissingReceiverError: If the matrix names no receiver
        """
        matrix = load_trial_matrix(path, self.default_peer_owner_id)
        if not matrix.receiver_id:
            raise MissingReceiverError(
                f"trial matrix file {matrix.path} does not define a receiver network id", path=matrix.path
            )

        result = TrialRunResult(
            file_path=matrix.path,
            receiver_id=matrix.receiver_id,
            peer_owner_id=matrix.peer_owner_id,
            allowed_count=len(matrix.allowed_requester_ids),
            disallowed_count=len(matrix.disallowed_requester_ids),
        )

        for requester_id in matrix.disallowed_requester_ids:
            result.trials.append(self._run_trial(matrix, requester_id, expected_allowed=False))
        for requester_id in matrix.allowed_requester_ids:
            result.trials.append(self._run_trial(matrix, requester_id, expected_allowed=True))

        logger.info(
            "Ran %d peering trial(s) against %s: %d unexpected",
            result.total_trials,
            result.receiver_id,
            result.unexpected_count,
        )
        return result

    def _run_trial(self, matrix: TrialMatrix, requester_id: str, expected_allowed: bool) -> PeeringTrial:
        evidence = self.probe.attempt_peering_dry_run(requester_id, matrix.receiver_id, matrix.peer_owner_id or None)
        trial = PeeringTrial(
            requester_id=requester_id,
            receiver_id=matrix.receiver_id,
            expected_allowed=expected_allowed,
            actual_allowed=evidence.dry_run_allowed,
            peer_owner_id=matrix.peer_owner_id,
            outcome=evidence.outcome,
            error_code=evidence.error_code,
            error_message=evidence.error_message,
        )
        if not trial.matches_expectation:
            logger.warning(
                "Peering trial %s -> %s: expected %s, observed %s",
                requester_id,
                matrix.receiver_id,
                "allow" if expected_allowed else "deny",
                trial.outcome.value,
            )
        return trial
