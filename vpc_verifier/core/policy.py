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
Verification policy: tunable knobs for classification, polling and control toggles.

Providers and organisations differ in how they spell gateway ids, which error
codes mean "denied", and how long a test instance may take to boot. A
``VerificationPolicy`` keeps those values out of the engine logic.

Usage
-----
    from vpc_verifier.core.policy import VerificationPolicy

    # Load built-in defaults
    policy = VerificationPolicy.default()

    # Load an org policy (merges on top of defaults)
    policy = VerificationPolicy.from_yaml("my_policy.yaml")

    # Dump the current (including default) policy for editing
    policy.to_yaml("generated_policy.yaml")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from ..config.constants import VerifierConstants

logger = logging.getLogger(__name__)

_DEFAULT_POLICY_PATH = VerifierConstants.DEFAULT_POLICY_PATH


# ---------------------------------------------------------------------------
# Data classes for each policy section
# ---------------------------------------------------------------------------


@dataclass
class ControlsPolicy:
    """Which controls the engine evaluates."""

    default_network: bool = True
    public_subnet_ip: bool = True
    peering: bool = True
    flow_logs: bool = True
    public_ip_behavior: bool = False


@dataclass
class RoutingPolicy:
    """How a route table is recognised as granting direct internet access."""

    default_route_cidrs: list[str] = field(default_factory=lambda: ["0.0.0.0/0"])
    internet_gateway_prefixes: list[str] = field(default_factory=lambda: ["igw-"])

    def is_internet_gateway(self, target_id: str) -> bool:
        target = (target_id or "").strip()
        return any(target.startswith(p) and len(target) > len(p) for p in self.internet_gateway_prefixes)


@dataclass
class FlowLogPolicy:
    required_status: str = "ACTIVE"
    required_traffic_type: str = "ALL"
    delivery_success_status: str = "SUCCESS"


@dataclass
class DryRunPolicy:
    """Signal patterns used to classify dry-run responses.

    Error codes are authoritative. Message markers are a best-effort layer
    consulted only when the code is not in either code list.
    """

    allow_error_codes: list[str] = field(default_factory=lambda: ["DryRunOperation"])
    deny_error_codes: list[str] = field(default_factory=list)
    allow_message_markers: list[str] = field(default_factory=list)
    deny_message_markers: list[str] = field(default_factory=list)

    @property
    def _allow_codes_lower(self) -> frozenset[str]:
        return frozenset(c.strip().lower() for c in self.allow_error_codes)

    @property
    def _deny_codes_lower(self) -> frozenset[str]:
        return frozenset(c.strip().lower() for c in self.deny_error_codes)

    def is_allow_code(self, code: str) -> bool:
        return bool(code) and code.strip().lower() in self._allow_codes_lower

    def is_deny_code(self, code: str) -> bool:
        return bool(code) and code.strip().lower() in self._deny_codes_lower


@dataclass
class ProbePolicy:
    """Timing and tagging for ephemeral probe resources."""

    stabilize_timeout_seconds: float = 120.0
    stabilize_poll_interval_seconds: float = 5.0
    termination_poll_interval_seconds: float = 5.0
    settle_delay_seconds: float = 10.0
    resource_tags: dict[str, str] = field(default_factory=dict)


@dataclass
class AllowListPolicy:
    max_indexed_entries: int = VerifierConstants.MAX_INDEXED_ALLOW_LIST_ENTRIES


# ---------------------------------------------------------------------------
# The top-level policy object
# ---------------------------------------------------------------------------


@dataclass
class VerificationPolicy:
    """Everything about a verification run that an organisation may tune."""

    policy_name: str = "default"
    policy_version: str = "1.0"

    controls: ControlsPolicy = field(default_factory=ControlsPolicy)
    routing: RoutingPolicy = field(default_factory=RoutingPolicy)
    flow_logs: FlowLogPolicy = field(default_factory=FlowLogPolicy)
    dry_run: DryRunPolicy = field(default_factory=DryRunPolicy)
    probe: ProbePolicy = field(default_factory=ProbePolicy)
    allow_list: AllowListPolicy = field(default_factory=AllowListPolicy)

    # -----------------------------------------------------------------------
    # Construction helpers
    # -----------------------------------------------------------------------

    @classmethod
    def default(cls) -> VerificationPolicy:
        """Load the built-in default policy that ships with the package."""
        return cls.from_yaml(_DEFAULT_POLICY_PATH)

    @classmethod
    def from_yaml(cls, path: str | Path) -> VerificationPolicy:
        """
        Load a policy from a YAML file.

        The YAML is first merged on top of the built-in defaults so that
        users only need to specify the sections they want to override.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Policy file not found: {path}")

        with open(path) as fh:
            raw: dict[str, Any] = yaml.safe_load(fh) or {}

        if not isinstance(raw, dict):
            raise ValueError(f"Policy file must contain a mapping: {path}")

        if path.resolve() == _DEFAULT_POLICY_PATH.resolve():
            return cls._from_dict(raw)

        merged = cls._deep_merge(cls._load_default_raw(), raw)
        policy = cls._from_dict(merged)
        logger.debug("Loaded verification policy %s from %s", policy.policy_name, path)
        return policy

    def to_yaml(self, path: str | Path) -> None:
        """Dump the full policy to a YAML file for editing."""
        data = self._to_dict()
        with open(path, "w") as fh:
            fh.write("# VPC Verifier – Verification Policy\n")
            fh.write("# Only include sections you want to override; omitted sections\n")
            fh.write("# will use the built-in defaults.\n\n")
            yaml.dump(data, fh, default_flow_style=False, sort_keys=False, width=120)

    # -----------------------------------------------------------------------
    # Internal parsing
    # -----------------------------------------------------------------------

    @classmethod
    def _load_default_raw(cls) -> dict[str, Any]:
        if _DEFAULT_POLICY_PATH.exists():
            with open(_DEFAULT_POLICY_PATH) as fh:
                return yaml.safe_load(fh) or {}
        return {}

    @staticmethod
    def _deep_merge(base: dict, override: dict) -> dict:
        """Recursively merge *override* into *base*.

        Lists in the override **replace** the base list so an org can narrow
        a code list without repeating every entry.
        """
        result = dict(base)
        for key, val in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(val, dict):
                result[key] = VerificationPolicy._deep_merge(result[key], val)
            else:
                result[key] = val
        return result

    @classmethod
    def _from_dict(cls, d: dict[str, Any]) -> VerificationPolicy:
        ct = d.get("controls", {}) or {}
        rt = d.get("routing", {}) or {}
        fl = d.get("flow_logs", {}) or {}
        dr = d.get("dry_run", {}) or {}
        pr = d.get("probe", {}) or {}
        al = d.get("allow_list", {}) or {}

        return cls(
            policy_name=d.get("policy_name", "default"),
            policy_version=str(d.get("policy_version", "1.0")),
            controls=ControlsPolicy(
                default_network=ct.get("default_network", True),
                public_subnet_ip=ct.get("public_subnet_ip", True),
                peering=ct.get("peering", True),
                flow_logs=ct.get("flow_logs", True),
                public_ip_behavior=ct.get("public_ip_behavior", False),
            ),
            routing=RoutingPolicy(
                default_route_cidrs=list(rt.get("default_route_cidrs", ["0.0.0.0/0"])),
                internet_gateway_prefixes=list(rt.get("internet_gateway_prefixes", ["igw-"])),
            ),
            flow_logs=FlowLogPolicy(
                required_status=fl.get("required_status", "ACTIVE"),
                required_traffic_type=fl.get("required_traffic_type", "ALL"),
                delivery_success_status=fl.get("delivery_success_status", "SUCCESS"),
            ),
            dry_run=DryRunPolicy(
                allow_error_codes=list(dr.get("allow_error_codes", ["DryRunOperation"])),
                deny_error_codes=list(dr.get("deny_error_codes", [])),
                allow_message_markers=[m.lower() for m in dr.get("allow_message_markers", [])],
                deny_message_markers=[m.lower() for m in dr.get("deny_message_markers", [])],
            ),
            probe=ProbePolicy(
                stabilize_timeout_seconds=float(pr.get("stabilize_timeout_seconds", 120)),
                stabilize_poll_interval_seconds=float(pr.get("stabilize_poll_interval_seconds", 5)),
                termination_poll_interval_seconds=float(pr.get("termination_poll_interval_seconds", 5)),
                settle_delay_seconds=float(pr.get("settle_delay_seconds", 10)),
                resource_tags={str(k): str(v) for k, v in (pr.get("resource_tags") or {}).items()},
            ),
            allow_list=AllowListPolicy(
                max_indexed_entries=int(al.get("max_indexed_entries", VerifierConstants.MAX_INDEXED_ALLOW_LIST_ENTRIES)),
            ),
        )

    def _to_dict(self) -> dict[str, Any]:
        return {
            "policy_name": self.policy_name,
            "policy_version": self.policy_version,
            "controls": {
                "default_network": self.controls.default_network,
                "public_subnet_ip": self.controls.public_subnet_ip,
                "peering": self.controls.peering,
                "flow_logs": self.controls.flow_logs,
                "public_ip_behavior": self.controls.public_ip_behavior,
            },
            "routing": {
                "default_route_cidrs": self.routing.default_route_cidrs,
                "internet_gateway_prefixes": self.routing.internet_gateway_prefixes,
            },
            "flow_logs": {
                "required_status": self.flow_logs.required_status,
                "required_traffic_type": self.flow_logs.required_traffic_type,
                "delivery_success_status": self.flow_logs.delivery_success_status,
            },
            "dry_run": {
                "allow_error_codes": self.dry_run.allow_error_codes,
                "deny_error_codes": self.dry_run.deny_error_codes,
                "allow_message_markers": self.dry_run.allow_message_markers,
                "deny_message_markers": self.dry_run.deny_message_markers,
            },
            "probe": {
                "stabilize_timeout_seconds": self.probe.stabilize_timeout_seconds,
                "stabilize_poll_interval_seconds": self.probe.stabilize_poll_interval_seconds,
                "termination_poll_interval_seconds": self.probe.termination_poll_interval_seconds,
                "settle_delay_seconds": self.probe.settle_delay_seconds,
                "resource_tags": dict(self.probe.resource_tags),
            },
            "allow_list": {
                "max_indexed_entries": self.allow_list.max_indexed_entries,
            },
        }
