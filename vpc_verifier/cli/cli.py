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

"""Command-line interface for VPC Verifier."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from ..config.config import Config
from ..config.constants import VerifierConstants
from ..core.engine import EngineBuilder, VerificationEngine
from ..core.exceptions import SetupError, TrialMatrixError
from ..core.models import NetworkReport, Verdict
from ..core.policy import VerificationPolicy
from ..core.polling import Deadline
from ..core.verdicts import peering_evidence_verdict

logger = logging.getLogger("vpc_verifier.cli")


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _configure_logging(args: argparse.Namespace) -> None:
    level = logging.DEBUG if getattr(args, "verbose", False) else logging.WARNING
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _load_config(args: argparse.Namespace) -> Config:
    """Load configuration from ``--env-file`` or the environment."""
    env_file = getattr(args, "env_file", None)
    if env_file:
        return Config.from_file(Path(env_file))
    return Config.from_env()


def _load_policy(args: argparse.Namespace) -> VerificationPolicy:
    """Load verification policy from ``--policy`` or return the default."""
    policy_value = getattr(args, "policy", None)
    if not policy_value:
        return VerificationPolicy.default()

    try:
        policy = VerificationPolicy.from_yaml(policy_value)
    except FileNotFoundError:
        print(f"Error: Policy file not found: {policy_value}", file=sys.stderr)
        sys.exit(1)
    except (ValueError, OSError) as e:
        print(f"Error loading policy file: {e}", file=sys.stderr)
        sys.exit(1)
    logger.info("Using verification policy: %s (%s)", policy_value, policy.policy_name)
    return policy


def _build_engine(config: Config, policy: VerificationPolicy) -> VerificationEngine:
    return EngineBuilder.for_aws(config, policy).build()


def _write_output(args: argparse.Namespace, output: str) -> None:
    """Write *output* to a file or stdout."""
    if getattr(args, "output", None):
        with open(args.output, "w", encoding="utf-8") as fh:
            fh.write(output)
        print(f"Report saved to: {args.output}")
    else:
        print(output)


def _as_json(data) -> str:
    return json.dumps(data, indent=2, default=str)


# ---------------------------------------------------------------------------
# Summary formatters
# ---------------------------------------------------------------------------


def _generate_summary(reports: list[NetworkReport]) -> str:
    lines = [
        "=" * 60,
        "VPC Network Control Verification",
        "=" * 60,
        f"Networks Verified: {len(reports)}",
        "",
    ]
    for report in reports:
        tag = "[OK]" if report.is_compliant else "[FAIL]"
        lines.append(f"{tag} {report.network_id} ({report.duration_seconds:.2f}s)")
        for verdict in report.verdicts:
            lines.append(f"  {verdict.verdict.value:>11s}  {verdict.control_id}: {verdict.reason}")
        for warning in report.warnings:
            lines.append(f"  [WARNING] {warning}")
        lines.append("")
    return "\n".join(lines).rstrip()


def _generate_trial_summary(result) -> str:
    lines = [
        "=" * 60,
        f"Peering Trials: {result.receiver_id}",
        "=" * 60,
        f"Matrix: {result.file_path}",
        f"Status: {'[OK] COMPLIANT' if result.compliant else '[FAIL] UNEXPECTED RESULTS'}",
        f"Trials: {result.total_trials} ({result.disallowed_count} disallowed, {result.allowed_count} allowed)",
        f"Unexpected: {result.unexpected_count}",
        "",
    ]
    for trial in result.trials:
        tag = "[OK]" if trial.matches_expectation else "[FAIL]"
        expected = "allow" if trial.expected_allowed else "deny"
        lines.append(f"  {tag} {trial.requester_id}: expected {expected}, observed {trial.outcome.value}")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def check_command(args: argparse.Namespace) -> int:
    """Handle the ``check`` command."""
    if not args.network_ids and not args.all:
        print("Error: give one or more network ids, or --all", file=sys.stderr)
        return 1

    config = _load_config(args)
    policy = _load_policy(args)

    try:
        engine = _build_engine(config, policy)
        engine.check_access()
        deadline = Deadline.after(config.probe_deadline_seconds) if config.probe_deadline_seconds else None
        reports = engine.evaluate_networks(
            None if args.all else args.network_ids,
            peer_ids=args.peer or None,
            trial_matrix=args.trial_matrix,
            behavioral=True if args.behavioral else None,
            deadline=deadline,
        )
    except SetupError as e:
        print(f"Setup error: {e}", file=sys.stderr)
        return 1
    except ImportError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.format == "json":
        output = _as_json({"reports": [r.to_dict() for r in reports]})
    else:
        output = _generate_summary(reports)
    _write_output(args, output)

    if args.fail_on_findings and not all(r.is_compliant for r in reports):
        return 1
    return 0


def peering_dry_run_command(args: argparse.Namespace) -> int:
    """Handle the ``peering-dry-run`` command."""
    config = _load_config(args)
    policy = _load_policy(args)

    try:
        engine = _build_engine(config, policy)
        evidence = engine.probe.attempt_peering_dry_run(args.requester_id, args.receiver_id, args.peer_owner)
        summary = engine.resolver.summarize_enforcement_mismatch(evidence)
    except (SetupError, ImportError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    verdict = peering_evidence_verdict(evidence, summary)
    if args.format == "json":
        output = _as_json(verdict.to_dict())
    else:
        output = "\n".join(
            [
                verdict.summary(),
                f"  outcome: {evidence.outcome.value} ({evidence.classification_basis})",
                f"  error code: {evidence.error_code or '-'}",
                f"  allow-list: {evidence.allow_list_source or 'not defined'}",
            ]
        )
    _write_output(args, output)

    if args.fail_on_findings and verdict.verdict in (Verdict.FAIL, Verdict.SETUP_ERROR):
        return 1
    return 0


def run_trials_command(args: argparse.Namespace) -> int:
    """Handle the ``run-trials`` command."""
    config = _load_config(args)
    policy = _load_policy(args)

    try:
        engine = _build_engine(config, policy)
        if args.describe:
            _write_output(args, _as_json(engine.trial_runner.describe_trial_matrix(args.trial_matrix)))
            return 0
        result = engine.trial_runner.run_trials_from_file(args.trial_matrix)
    except TrialMatrixError as e:
        print(f"Error loading trial matrix: {e}", file=sys.stderr)
        return 1
    except (SetupError, ImportError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    output = _as_json(result.to_dict()) if args.format == "json" else _generate_trial_summary(result)
    _write_output(args, output)

    if args.fail_on_findings and not result.compliant:
        return 1
    return 0


def list_controls_command(_args: argparse.Namespace) -> int:
    """Handle the ``list-controls`` command."""
    print("Verified Controls:\n")
    for i, (control_id, description) in enumerate(VerifierConstants.CONTROL_DESCRIPTIONS.items(), 1):
        print(f"  {i}. {control_id}")
        print(f"     {description}")
        print()
    return 0


def generate_policy_command(args: argparse.Namespace) -> int:
    """Handle the ``generate-policy`` command."""
    output_path = Path(args.output)
    try:
        VerificationPolicy.default().to_yaml(output_path)
    except OSError as e:
        print(f"Error generating policy: {e}", file=sys.stderr)
        return 1
    print(f"Generated default verification policy: {output_path}\n")
    print("Edit the file to customise, then use:")
    print(f"  vpc-verifier check --policy {output_path} vpc-0123456789abcdef0")
    return 0


# ---------------------------------------------------------------------------
# Shared argparse helpers
# ---------------------------------------------------------------------------


def _add_common_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--format", choices=["summary", "json"], default="summary", help="Output format")
    parser.add_argument("--output", "-o", help="Output file path")
    parser.add_argument("--policy", metavar="PATH", help="Path to custom verification policy YAML")
    parser.add_argument("--env-file", metavar="PATH", help="Load configuration from a .env file")
    parser.add_argument("--fail-on-findings", action="store_true", help="Exit with error on FAIL or SETUP_ERROR")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="VPC Verifier - Network control verification for cloud virtual networks",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  vpc-verifier check vpc-0123456789abcdef0
  vpc-verifier check --all --format json --fail-on-findings
  vpc-verifier check vpc-0123456789abcdef0 --trial-matrix trials.yaml
  vpc-verifier check vpc-0123456789abcdef0 --behavioral
  vpc-verifier peering-dry-run vpc-requester vpc-receiver
  vpc-verifier run-trials trials.yaml
  vpc-verifier generate-policy -o my_policy.yaml
  vpc-verifier list-controls
        """,
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # -- check -------------------------------------------------------------
    check_p = subparsers.add_parser("check", help="Verify every enabled control for one or more networks")
    check_p.add_argument("network_ids", nargs="*", help="Network ids to verify")
    check_p.add_argument("--all", action="store_true", help="Verify every network in the region")
    check_p.add_argument("--trial-matrix", metavar="PATH", help="Peering trial matrix (YAML or JSON)")
    check_p.add_argument(
        "--peer", action="append", metavar="REQUESTER_ID", help="Requester id for a dry-run peering (repeatable)"
    )
    check_p.add_argument(
        "--behavioral", action="store_true", help="Launch a short-lived instance to observe public IP assignment"
    )
    _add_common_flags(check_p)

    # -- peering-dry-run ---------------------------------------------------
    pd_p = subparsers.add_parser("peering-dry-run", help="Attempt one dry-run peering request")
    pd_p.add_argument("requester_id", help="Requesting network id")
    pd_p.add_argument("receiver_id", help="Receiving network id")
    pd_p.add_argument("--peer-owner", help="Account id owning the receiver")
    _add_common_flags(pd_p)

    # -- run-trials --------------------------------------------------------
    rt_p = subparsers.add_parser("run-trials", help="Run dry-run peering trials from a trial matrix")
    rt_p.add_argument("trial_matrix", help="Trial matrix file (YAML or JSON)")
    rt_p.add_argument("--describe", action="store_true", help="Only load and summarize the matrix")
    _add_common_flags(rt_p)

    # -- list-controls -----------------------------------------------------
    subparsers.add_parser("list-controls", help="List verified controls")

    # -- generate-policy ---------------------------------------------------
    gp_p = subparsers.add_parser("generate-policy", help="Generate a default verification policy YAML")
    gp_p.add_argument("--output", "-o", default="vpc_policy.yaml", help="Output file path")

    # -- dispatch ----------------------------------------------------------
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    _configure_logging(args)

    dispatch = {
        "check": check_command,
        "peering-dry-run": peering_dry_run_command,
        "run-trials": run_trials_command,
        "list-controls": list_controls_command,
        "generate-policy": generate_policy_command,
    }
    handler = dispatch.get(args.command)
    if handler:
        return handler(args)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
