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
Verification engine: runs every enabled control against a network.

Example:
    >>> from vpc_verifier.core.engine import EngineBuilder
    >>> engine = EngineBuilder.for_aws().build()
    >>> report = engine.evaluate_network("vpc-0123456789abcdef0")
    >>> report.is_compliant
    True
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from pathlib import Path

from ..config.config import Config
from ..config.constants import VerifierConstants
from .allowlist import AllowListResolver
from .exceptions import ConfigurationError, NoPublicSubnetError, SetupError
from .inspector import ControlPlaneInspector
from .models import ControlVerdict, NetworkReport, ResultClass, Verdict
from .policy import VerificationPolicy
from .polling import Clock, Deadline, Sleeper
from .probe import BehavioralProbe
from .providers.base import InstanceLifecycle, NetworkReader, PeeringProber
from .trial_matrix import TrialMatrixRunner, load_trial_matrix
from .verdicts import (
    external_address_verdict,
    peering_attempts_verdict,
    peering_evidence_verdict,
    peering_trials_verdict,
    setup_error_verdict,
)

logger = logging.getLogger(__name__)

C = VerifierConstants


class VerificationEngine:
    """Orchestrates inspection, probing and verdicts for one or more networks."""

    def __init__(
        self,
        reader: NetworkReader,
        prober: PeeringProber | None = None,
        lifecycle: InstanceLifecycle | None = None,
        config: Config | None = None,
        policy: VerificationPolicy | None = None,
        *,
        sleep: Sleeper = time.sleep,
        clock: Clock = time.monotonic,
    ):
        """
        Initialize engine. Prefer :class:`EngineBuilder` over calling this directly.

        Args:
            reader: Network inventory provider (required)
            prober: Dry-run peering provider; without it the peering control is a setup error
            lifecycle: Test instance provider; without it the behavioral control is a setup error
            config: Runtime parameters. If None, read from the environment.
            policy: Verification policy. If None, loads built-in defaults.
        """
        self.config = config or Config.from_env()
        self.policy = policy or VerificationPolicy.default()
        self.reader = reader
        self.inspector = ControlPlaneInspector(reader, self.policy)
        self.resolver = AllowListResolver(self.config, self.policy)
        self.probe = BehavioralProbe(
            self.inspector,
            prober,
            lifecycle,
            self.config,
            self.policy,
            self.resolver,
            sleep=sleep,
            clock=clock,
        )
        self.trial_runner = TrialMatrixRunner(self.probe, self.config.peer_owner_id)

    def check_access(self) -> None:
        """Raise ``SetupError`` if the provider rejects the inspecting identity."""
        self.reader.check_access()

    def _run_control(
        self, control_id: str, network_id: str, check: Callable[[], ControlVerdict]
    ) -> ControlVerdict:
        try:
            verdict = check()
        except SetupError as e:
            logger.warning("%s could not run for %s: %s", control_id, network_id, e)
            return setup_error_verdict(control_id, network_id, e)
        logger.info("%s", verdict.summary())
        return verdict

    # -----------------------------------------------------------------------
    # Peering
    # -----------------------------------------------------------------------

    def _evaluate_peering(
        self, network_id: str, peer_ids: list[str] | None, trial_matrix: str | Path | None
    ) -> ControlVerdict:
        if peer_ids:
            verdicts = []
            for peer_id in peer_ids:
                evidence = self.probe.attempt_peering_dry_run(peer_id, network_id)
                summary = self.resolver.summarize_enforcement_mismatch(evidence)
                verdicts.append(peering_evidence_verdict(evidence, summary))
            return peering_attempts_verdict(network_id, verdicts)

        matrix_path = trial_matrix or self.config.peer_trial_matrix_file
        if matrix_path:
            matrix = load_trial_matrix(matrix_path, self.config.peer_owner_id)
            if matrix.receiver_id and matrix.receiver_id != network_id:
                return ControlVerdict(
                    control_id=C.CONTROL_PEERING,
                    network_id=network_id,
                    verdict=Verdict.NA,
                    result_class=ResultClass.NA,
                    reason=f"trial matrix targets receiver {matrix.receiver_id}, not {network_id}",
                    evidence={"trial_matrix": matrix.to_dict()},
                )
            return peering_trials_verdict(self.trial_runner.run_trials_from_file(matrix_path))

        return ControlVerdict(
            control_id=C.CONTROL_PEERING,
            network_id=network_id,
            verdict=Verdict.NA,
            result_class=ResultClass.UNDEFINED,
            reason="no requester ids or trial matrix supplied; peering enforcement cannot be probed",
        )

    # -----------------------------------------------------------------------
    # Flow logs and behavioral public IP
    # -----------------------------------------------------------------------

    def _evaluate_flow_logs(self, network_id: str, report: NetworkReport) -> ControlVerdict:
        verdict = self.inspector.evaluate_flow_log_control(network_id)
        try:
            delivery = self.inspector.observe_recent_flow_log_delivery(network_id)
        except SetupError as e:
            report.warnings.append(f"flow-log delivery could not be observed: {e}")
        else:
            verdict.evidence["delivery"] = delivery.to_dict()
        return verdict

    def _evaluate_public_ip_behavior(
        self, network_id: str, report: NetworkReport, deadline: Deadline | None
    ) -> ControlVerdict:
        try:
            evidence = self.probe.generate_test_traffic(network_id, deadline=deadline)
        except NoPublicSubnetError as e:
            return ControlVerdict(
                control_id=C.CONTROL_PUBLIC_IP_BEHAVIOR,
                network_id=network_id,
                verdict=Verdict.NA,
                result_class=ResultClass.NA,
                reason=str(e),
            )
        report.warnings.extend(evidence.warnings)
        if evidence.possibly_leaked_resource_ids:
            logger.warning("Possibly leaked test resources: %s", ", ".join(evidence.possibly_leaked_resource_ids))
        return external_address_verdict(evidence)

    # -----------------------------------------------------------------------
    # Entry points
    # -----------------------------------------------------------------------

    def evaluate_network(
        self,
        network_id: str,
        *,
        peer_ids: list[str] | None = None,
        trial_matrix: str | Path | None = None,
        behavioral: bool | None = None,
        deadline: Deadline | None = None,
    ) -> NetworkReport:
        """
        Evaluate every enabled control for one network.

        Collaborator failures become ``SETUP_ERROR`` verdicts; they never
        abort the remaining controls.

        Args:
            network_id: Network to verify
            peer_ids: Requester ids to try a dry-run peering from
            trial_matrix: Trial matrix file; used when *peer_ids* is empty
            behavioral: Run the launch-an-instance probe (default: policy toggle)
            deadline: Caller deadline bounding every probe wait

        Returns:
            NetworkReport with one verdict per evaluated control
        """
        if not network_id or not network_id.strip():
            raise ValueError("network_id is required")
        network_id = network_id.strip()

        started = time.time()
        report = NetworkReport(network_id=network_id)
        controls = self.policy.controls
        run_behavioral = controls.public_ip_behavior if behavioral is None else behavioral

        if controls.default_network:
            report.add_verdict(
                self._run_control(
                    C.CONTROL_DEFAULT_NETWORK,
                    network_id,
                    lambda: self.inspector.evaluate_default_network_control(network_id),
                )
            )
        if controls.public_subnet_ip:
            report.add_verdict(
                self._run_control(
                    C.CONTROL_PUBLIC_SUBNET_IP,
                    network_id,
                    lambda: self.inspector.evaluate_public_subnet_control(network_id),
                )
            )
        if run_behavioral:
            report.add_verdict(
                self._run_control(
                    C.CONTROL_PUBLIC_IP_BEHAVIOR,
                    network_id,
                    lambda: self._evaluate_public_ip_behavior(network_id, report, deadline),
                )
            )
        if controls.peering:
            report.add_verdict(
                self._run_control(
                    C.CONTROL_PEERING,
                    network_id,
                    lambda: self._evaluate_peering(network_id, peer_ids, trial_matrix),
                )
            )
        if controls.flow_logs:
            report.add_verdict(
                self._run_control(
                    C.CONTROL_FLOW_LOGS,
                    network_id,
                    lambda: self._evaluate_flow_logs(network_id, report),
                )
            )

        report.duration_seconds = time.time() - started
        return report

    def evaluate_networks(
        self,
        network_ids: list[str] | None = None,
        **kwargs,
    ) -> list[NetworkReport]:
        """
        Evaluate several networks; with no ids, every network visible to the reader.

        Keyword arguments are forwarded to :meth:`evaluate_network`.
        """
        if not network_ids:
            network_ids = [n.network_id for n in self.inspector.list_networks()]
            logger.info("Discovered %d network(s) to verify", len(network_ids))
        return [self.evaluate_network(network_id, **kwargs) for network_id in network_ids]


class EngineBuilder:
    """Chooses providers once and assembles a :class:`VerificationEngine`."""

    def __init__(self):
        self._reader: NetworkReader | None = None
        self._prober: PeeringProber | None = None
        self._lifecycle: InstanceLifecycle | None = None
        self._config: Config | None = None
        self._policy: VerificationPolicy | None = None
        self._sleep: Sleeper = time.sleep
        self._clock: Clock = time.monotonic

    def with_network_reader(self, reader: NetworkReader) -> EngineBuilder:
        self._reader = reader
        return self

    def with_peering_prober(self, prober: PeeringProber) -> EngineBuilder:
        self._prober = prober
        return self

    def with_instance_lifecycle(self, lifecycle: InstanceLifecycle) -> EngineBuilder:
        self._lifecycle = lifecycle
        return self

    def with_provider(self, provider) -> EngineBuilder:
        """Use one object for every capability it implements."""
        if isinstance(provider, NetworkReader):
            self._reader = provider
        if isinstance(provider, PeeringProber):
            self._prober = provider
        if isinstance(provider, InstanceLifecycle):
            self._lifecycle = provider
        return self

    def with_config(self, config: Config) -> EngineBuilder:
        self._config = config
        return self

    def with_policy(self, policy: VerificationPolicy) -> EngineBuilder:
        self._policy = policy
        return self

    def with_timing(self, sleep: Sleeper | None = None, clock: Clock | None = None) -> EngineBuilder:
        if sleep is not None:
            self._sleep = sleep
        if clock is not None:
            self._clock = clock
        return self

    def build(self) -> VerificationEngine:
        if self._reader is None:
            raise ConfigurationError("a network reader is required to build the engine", operation="build_engine")
        return VerificationEngine(
            self._reader,
            self._prober,
            self._lifecycle,
            config=self._config,
            policy=self._policy,
            sleep=self._sleep,
            clock=self._clock,
        )

    @classmethod
    def for_aws(cls, config: Config | None = None, policy: VerificationPolicy | None = None) -> EngineBuilder:
        """Builder preloaded with an :class:`AwsEc2Provider` for every capability."""
        from .providers.aws import AwsEc2Provider

        config = config or Config.from_env()
        builder = cls().with_provider(AwsEc2Provider.from_config(config)).with_config(config)
        if policy is not None:
            builder.with_policy(policy)
        return builder
