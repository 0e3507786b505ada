# Copyright 2026 Cisco Systems, Inc.
# SPDX-License-Identifier: Apache-2.0

"""Tests for the command-line interface."""

import json
from unittest.mock import patch

import pytest
import yaml

from vpc_verifier.cli.cli import main
from vpc_verifier.core.engine import EngineBuilder
from vpc_verifier.core.exceptions import SetupError
from vpc_verifier.core.models import DryRunResponse


@pytest.fixture
def fake_engine(provider, clock):
    """Patch engine construction so the CLI runs against the in-memory provider."""

    def build(config, policy):
        return (
            EngineBuilder()
            .with_provider(provider)
            .with_config(config)
            .with_policy(policy)
            .with_timing(sleep=clock.sleep, clock=clock)
            .build()
        )

    with patch("vpc_verifier.cli.cli._build_engine", side_effect=build) as mock_build:
        yield mock_build


class TestCheckCommand:
    def test_requires_network_or_all(self, fake_engine, capsys):
        assert main(["check"]) == 1
        assert "--all" in capsys.readouterr().err

    def test_summary_output(self, fake_engine, capsys):
        assert main(["check", "vpc-1"]) == 0
        out = capsys.readouterr().out
        assert "[FAIL] vpc-1" in out
        assert "CCC.VPC.CN02" in out

    def test_fail_on_findings(self, fake_engine):
        assert main(["check", "vpc-1", "--fail-on-findings"]) == 1

    def test_json_output_to_file(self, fake_engine, tmp_path):
        out_file = tmp_path / "report.json"
        assert main(["check", "--all", "--format", "json", "-o", str(out_file)]) == 0
        data = json.loads(out_file.read_text())
        assert sorted(r["network_id"] for r in data["reports"]) == ["vpc-1", "vpc-default"]

    def test_peer_flags(self, fake_engine, provider, monkeypatch, capsys):
        monkeypatch.setenv("VPC_VERIFIER_ALLOWED_REQUESTER_IDS", "vpc-a")
        assert main(["check", "vpc-1", "--peer", "vpc-x", "--peer", "vpc-y", "--format", "json"]) == 0
        report = json.loads(capsys.readouterr().out)["reports"][0]
        peering = next(v for v in report["verdicts"] if v["control_id"] == "CCC.VPC.CN03")
        assert peering["verdict"] == "PASS"
        assert [call[0] for call in provider.peering_calls] == ["vpc-x", "vpc-y"]

    def test_behavioral_flag(self, fake_engine, provider, monkeypatch, capsys):
        monkeypatch.setenv("VPC_VERIFIER_IMAGE_ID", "ami-test")
        assert main(["check", "vpc-1", "--behavioral"]) == 0
        assert "CCC.VPC.CN02.BEHAVIORAL" in capsys.readouterr().out
        assert provider.terminate_calls == ["i-0001"]

    def test_access_failure(self, fake_engine, provider, capsys):
        provider.access_error = SetupError("describe_vpcs failed: AuthFailure", operation="describe_vpcs")
        assert main(["check", "vpc-1"]) == 1
        assert "AuthFailure" in capsys.readouterr().err

    def test_env_file(self, fake_engine, tmp_path, capsys):
        env_file = tmp_path / ".env"
        env_file.write_text("VPC_VERIFIER_IMAGE_ID=ami-from-file\n")
        with patch.dict("os.environ", {}):
            assert main(["check", "vpc-1", "--env-file", str(env_file)]) == 0
            config = fake_engine.call_args[0][0]
        assert config.image_id == "ami-from-file"

    def test_missing_policy_file(self, fake_engine, tmp_path, capsys):
        with pytest.raises(SystemExit) as excinfo:
            main(["check", "vpc-1", "--policy", str(tmp_path / "missing.yaml")])
        assert excinfo.value.code == 1
        assert "Policy file not found" in capsys.readouterr().err


class TestPeeringDryRunCommand:
    def test_json_verdict(self, fake_engine, capsys):
        assert main(["peering-dry-run", "vpc-x", "vpc-1", "--format", "json"]) == 0
        verdict = json.loads(capsys.readouterr().out)
        assert verdict["verdict"] == "NA"
        assert verdict["result_class"] == "UNDEFINED"
        assert verdict["evidence"]["peering"]["error_code"] == "UnauthorizedOperation"

    def test_summary_with_peer_owner(self, fake_engine, provider, capsys):
        assert main(["peering-dry-run", "vpc-x", "vpc-1", "--peer-owner", "123456789012"]) == 0
        assert provider.peering_calls == [("vpc-x", "vpc-1", "123456789012")]
        assert "allow-list: not defined" in capsys.readouterr().out


class TestRunTrialsCommand:
    def test_runs_trials(self, fake_engine, provider, trial_matrix_file, capsys):
        provider.peering_responses["vpc-y"] = DryRunResponse.api_error("DryRunOperation")
        assert main(["run-trials", str(trial_matrix_file), "--fail-on-findings"]) == 0
        out = capsys.readouterr().out
        assert "[OK] COMPLIANT" in out
        assert "Unexpected: 0" in out

    def test_unexpected_trial_fails(self, fake_engine, trial_matrix_file):
        assert main(["run-trials", str(trial_matrix_file), "--fail-on-findings"]) == 1

    def test_describe(self, fake_engine, provider, trial_matrix_file, capsys):
        assert main(["run-trials", str(trial_matrix_file), "--describe"]) == 0
        assert json.loads(capsys.readouterr().out)["total_trials"] == 2
        assert provider.peering_calls == []

    def test_bad_matrix(self, fake_engine, tmp_path, capsys):
        assert main(["run-trials", str(tmp_path / "missing.yaml")]) == 1
        assert "Error loading trial matrix" in capsys.readouterr().err


class TestUtilityCommands:
    def test_list_controls(self, capsys):
        assert main(["list-controls"]) == 0
        out = capsys.readouterr().out
        assert "CCC.VPC.CN01" in out
        assert "CCC.VPC.CN04" in out

    def test_generate_policy(self, tmp_path, capsys):
        out_file = tmp_path / "policy.yaml"
        assert main(["generate-policy", "-o", str(out_file)]) == 0
        assert yaml.safe_load(out_file.read_text())["policy_name"] == "default"

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
