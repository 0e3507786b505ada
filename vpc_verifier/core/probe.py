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
Behavioral probing: observe enforcement that metadata alone cannot show.

Two kinds of probe are supported:

* dry-run peering requests, classified as allowed, denied or ambiguous and
  compared with the configured allow-list;
* a short-lived compute instance launched in a public subnet to see whether
  it receives an external IP address.

Every wait is bounded by a poll timeout and, optionally, a caller
``Deadline``. Once an instance id exists, cleanup always runs.
"""

from __future__ import annotations

import logging
import time

from ..config.config import Config
from ..config.constants import VerifierConstants
from .allowlist import AllowListResolver
from .exceptions import (
    ConfigurationError,
    NoPublicSubnetError,
    NotFoundError,
    ProbeTimeoutError,
    ResourceStabilizationTimeout,
    SetupError,
)
from .inspector import ControlPlaneInspector, require_id
from .models import (
    CleanupResult,
    CleanupStatus,
    DryRunOutcome,
    DryRunResponseKind,
    EphemeralTestResource,
    ExternalAddressObservation,
    PeeringEvidence,
    ResourceState,
    Subnet,
    TrafficEvidence,
)
from .policy import VerificationPolicy
from .polling import Clock, Deadline, Sleeper, bounded_sleep, poll_until
from .providers.base import InstanceLifecycle, PeeringProber
from .verdicts import classify_dry_run_response

logger = logging.getLogger(__name__)


def _state_label(resource: EphemeralTestResource | None) -> str:
    return ResourceState.ABSENT.value if resource is None else resource.state.value


class BehavioralProbe:
    """Runs dry-run and ephemeral-resource probes against one provider."""

    def __init__(
        self,
        inspector: ControlPlaneInspector,
        prober: PeeringProber | None,
        lifecycle: InstanceLifecycle | None,
        config: Config | None = None,
        policy: VerificationPolicy | None = None,
        resolver: AllowListResolver | None = None,
        *,
        sleep: Sleeper = time.sleep,
        clock: Clock = time.monotonic,
        deadline: Deadline | None = None,
    ):
        """
        Initialize probe.

        Args:
            inspector: Used to find public subnets
            prober: Issues dry-run peering requests; None disables peering probes
            lifecycle: Launches and terminates test instances; None disables them
            config: Probe parameters (image id, instance type, cleanup wait)
            policy: Classification and timing knobs. If None, loads built-in defaults.
            resolver: Allow-list resolver used to enrich peering evidence
            sleep: Injectable sleep, for tests
            clock: Injectable monotonic clock, for tests
            deadline: Default caller deadline for every wait
        """
        self.inspector = inspector
        self.prober = prober
        self.lifecycle = lifecycle
        self.config = config or Config.from_env()
        self.policy = policy or VerificationPolicy.default()
        self.resolver = resolver or AllowListResolver(self.config, self.policy)
        self._sleep = sleep
        self._clock = clock
        self.deadline = deadline

    def _resolve_deadline(self, deadline: Deadline | None) -> Deadline | None:
        if deadline is not None:
            return deadline
        if self.deadline is not None:
            return self.deadline
        if self.config.probe_deadline_seconds:
            return Deadline.after(self.config.probe_deadline_seconds, clock=self._clock)
        return None

    # -----------------------------------------------------------------------
    # Peering
    # -----------------------------------------------------------------------

    def attempt_peering_dry_run(
        self, requester_id: str, receiver_id: str, peer_owner_id: str | None = None
    ) -> PeeringEvidence:
        """
        Issue a dry-run peering request and classify the response.

        Provider rejections are evidence, not exceptions: the raw error code
        and message are always preserved.
        """
        requester_id = require_id(requester_id, "requester_id")
        receiver_id = require_id(receiver_id, "receiver_id")
        if self.prober is None:
            raise ConfigurationError("no peering prober configured", operation="attempt_peering_dry_run")
        peer_owner_id = (peer_owner_id or self.config.peer_owner_id or "").strip()

        response = self.prober.request_peering(requester_id, receiver_id, peer_owner_id or None, dry_run=True)
        classification = classify_dry_run_response(response, self.policy.dry_run)

        evidence = PeeringEvidence(
            requester_id=requester_id,
            receiver_id=receiver_id,
            peer_owner_id=peer_owner_id,
            dry_run_allowed=classification.allowed,
            outcome=classification.outcome,
            call_executed=response.kind != DryRunResponseKind.TRANSPORT_ERROR,
            error_code=response.error_code,
            error_message=response.message,
            classification_basis=classification.basis,
            reason=classification.reason,
        )

        if classification.outcome == DryRunOutcome.AMBIGUOUS:
            logger.warning(
                "Dry-run peering %s -> %s gave an unrecognized response: %s %s",
                requester_id,
                receiver_id,
                response.error_code,
                response.message,
            )
        elif classification.outcome == DryRunOutcome.TRANSPORT_ERROR:
            logger.warning("Dry-run peering %s -> %s did not execute: %s", requester_id, receiver_id, response.message)
        else:
            logger.info("Dry-run peering %s -> %s: %s", requester_id, receiver_id, classification.outcome.value)

        return self.resolver.enrich_evidence(evidence)

    # -----------------------------------------------------------------------
    # Ephemeral resources
    # -----------------------------------------------------------------------

    def _require_lifecycle(self, operation: str) -> InstanceLifecycle:
        if self.lifecycle is None:
            raise ConfigurationError("no instance lifecycle provider configured", operation=operation)
        return self.lifecycle

    def select_public_subnet_for_probe(self, network_id: str) -> Subnet:
        """
        Pick the public subnet with the lexicographically smallest id.

        Raises:
            NoPublicSubnetError: If the network has no public subnet
        """
        network_id = require_id(network_id, "network_id")
        public = sorted(self.inspector.list_public_subnets(network_id), key=lambda s: s.subnet_id)
        if not public:
            raise NoPublicSubnetError(network_id)
        logger.debug("Selected %s of %d public subnet(s) in %s", public[0].subnet_id, len(public), network_id)
        return public[0]

    def _launch(self, subnet_id: str) -> EphemeralTestResource:
        subnet_id = require_id(subnet_id, "subnet_id")
        lifecycle = self._require_lifecycle("create_ephemeral_resource")
        if not self.config.image_id:
            raise ConfigurationError(
                f"missing test image: set {VerifierConstants.ENV_IMAGE_ID}",
                operation="create_ephemeral_resource",
            )
        resource = lifecycle.run_instance(
            subnet_id,
            self.config.image_id,
            self.config.instance_type,
            tags=dict(self.policy.probe.resource_tags),
        )
        logger.info("Launched test resource %s in %s", resource.resource_id, subnet_id)
        return resource

    def _wait_until_stable(
        self, resource: EphemeralTestResource, deadline: Deadline | None
    ) -> EphemeralTestResource:
        current = poll_until(
            lambda: self.lifecycle.describe_instance(resource.resource_id),
            lambda r: r is None or r.state.is_stable,
            timeout=self.policy.probe.stabilize_timeout_seconds,
            interval=self.policy.probe.stabilize_poll_interval_seconds,
            deadline=deadline,
            sleep=self._sleep,
            clock=self._clock,
            description=f"resource {resource.resource_id} to stabilize",
            resource_id=resource.resource_id,
            state_label=_state_label,
            error_cls=ResourceStabilizationTimeout,
        )
        if current is None:
            resource.state = ResourceState.ABSENT
            return resource
        return current

    def create_ephemeral_resource(self, subnet_id: str, deadline: Deadline | None = None) -> EphemeralTestResource:
        """
        Launch one tagged test instance and wait until its state settles.

        Raises:
            ConfigurationError: If no image id is configured
            ResourceStabilizationTimeout: If the instance does not settle in time;
                termination is requested before the error is raised
        """
        resource = self._launch(subnet_id)
        try:
            return self._wait_until_stable(resource, self._resolve_deadline(deadline))
        except ResourceStabilizationTimeout:
            try:
                self.lifecycle.terminate_instance(resource.resource_id)
            except SetupError as e:
                logger.warning("Could not terminate unsettled resource %s: %s", resource.resource_id, e)
            raise

    def observe_external_address(self, resource_id: str) -> ExternalAddressObservation:
        """
        Read the external IP assignment of a test resource.

        Raises:
            NotFoundError: If the resource no longer exists
        """
        resource_id = require_id(resource_id, "resource_id")
        self._require_lifecycle("observe_external_address")
        resource = self.lifecycle.describe_instance(resource_id)
        if resource is None:
            raise NotFoundError(
                f"resource {resource_id} not found", resource_id=resource_id, operation="observe_external_address"
            )
        address = (resource.external_address or "").strip()
        return ExternalAddressObservation(
            resource_id=resource_id,
            has_external_ip=bool(address),
            address=address,
            state=resource.state,
            network_id=resource.network_id,
            subnet_id=resource.subnet_id,
        )

    def delete_ephemeral_resource(self, resource_id: str, deadline: Deadline | None = None) -> CleanupResult:
        """
        Terminate a test resource. Safe to call more than once.

        With ``cleanup_wait_timeout`` of 0 the termination is only requested.
        Otherwise the call waits for termination; a wait that runs out is
        reported as ``cleanup-in-progress``, not raised.
        """
        resource_id = require_id(resource_id, "resource_id")
        self._require_lifecycle("delete_ephemeral_resource")
        if not self.lifecycle.terminate_instance(resource_id):
            return CleanupResult(resource_id, deleted=True, status=CleanupStatus.ALREADY_ABSENT, reason="already absent")

        wait = self.config.cleanup_wait_timeout
        if wait <= 0:
            return CleanupResult(
                resource_id,
                deleted=True,
                status=CleanupStatus.TERMINATION_REQUESTED,
                reason="async cleanup requested; termination continues in the provider control plane",
            )

        try:
            poll_until(
                lambda: self.lifecycle.describe_instance(resource_id),
                lambda r: r is None or r.state.is_terminal,
                timeout=wait,
                interval=self.policy.probe.termination_poll_interval_seconds,
                deadline=self._resolve_deadline(deadline),
                sleep=self._sleep,
                clock=self._clock,
                description=f"resource {resource_id} termination",
                resource_id=resource_id,
                state_label=_state_label,
            )
        except ProbeTimeoutError as e:
            logger.warning("Cleanup of %s not confirmed: %s (last state %s)", resource_id, e, e.last_state)
            return CleanupResult(resource_id, deleted=False, status=CleanupStatus.IN_PROGRESS, reason=str(e))

        return CleanupResult(resource_id, deleted=True, status=CleanupStatus.TERMINATED, reason="terminated")

    # -----------------------------------------------------------------------
    # Full traffic probe
    # -----------------------------------------------------------------------

    def generate_test_traffic(self, network_id: str, deadline: Deadline | None = None) -> TrafficEvidence:
        """
        Select a public subnet, launch a resource, observe it and delete it.

        Partial failures are recorded on the returned evidence. Errors that
        occur before any resource exists propagate.

        Raises:
            NoPublicSubnetError: If the network has no public subnet
            ConfigurationError: If no image id is configured
            SetupError: If the launch itself is rejected
        """
        network_id = require_id(network_id, "network_id")
        deadline = self._resolve_deadline(deadline)

        subnet = self.select_public_subnet_for_probe(network_id)
        evidence = TrafficEvidence(network_id=network_id, subnet_id=subnet.subnet_id)

        resource = self._launch(subnet.subnet_id)
        evidence.resource_id = resource.resource_id
        evidence.generated = True
        try:
            try:
                self._wait_until_stable(resource, deadline)
            except (ProbeTimeoutError, SetupError) as e:
                evidence.stabilization_error = str(e)
                logger.warning("Test resource %s did not stabilize: %s", resource.resource_id, e)
                return evidence

            if not bounded_sleep(self.policy.probe.settle_delay_seconds, deadline, self._sleep):
                evidence.warnings.append("settle delay cut short by caller deadline")

            try:
                evidence.external_address = self.observe_external_address(resource.resource_id)
            except SetupError as e:
                evidence.inspection_error = str(e)
            return evidence
        finally:
            self._cleanup(evidence, resource.resource_id, deadline)

    def _cleanup(self, evidence: TrafficEvidence, resource_id: str, deadline: Deadline | None):
        if deadline is not None and deadline.expired:
            try:
                existed = self.lifecycle.terminate_instance(resource_id)
            except SetupError as e:
                evidence.cleanup_error = str(e)
                existed = True
            else:
                evidence.cleanup = CleanupResult(
                    resource_id,
                    deleted=not existed,
                    status=CleanupStatus.TERMINATION_REQUESTED if existed else CleanupStatus.ALREADY_ABSENT,
                    reason=(
                        "caller deadline expired; termination requested without confirmation"
                        if existed
                        else "already absent"
                    ),
                )
            if existed:
                evidence.possibly_leaked_resource_ids.append(resource_id)
                evidence.warnings.append(f"caller deadline expired before cleanup of {resource_id} was confirmed")
                logger.warning("Deadline expired; %s may outlive this probe", resource_id)
            return

        try:
            evidence.cleanup = self.delete_ephemeral_resource(resource_id, deadline=deadline)
        except SetupError as e:
            evidence.cleanup_error = str(e)
            evidence.possibly_leaked_resource_ids.append(resource_id)
            evidence.warnings.append(f"cleanup of {resource_id} failed: {e}")
            logger.warning("Cleanup of %s failed: %s", resource_id, e)
            return

        if evidence.cleanup.incomplete:
            evidence.warnings.append(f"cleanup of {resource_id} still in progress")
            if deadline is not None and deadline.expired:
                evidence.possibly_leaked_resource_ids.append(resource_id)
