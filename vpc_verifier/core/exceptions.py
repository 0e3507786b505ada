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

"""VPC Verifier exceptions.

All exceptions inherit from VerifierError for easy catching.

``SetupError`` and its subclasses mean a check *could not be performed*
(credentials, missing resources, bad configuration). The engine reports them
as ``SETUP_ERROR`` verdicts, never as a control ``FAIL``.

Example:
    >>> from vpc_verifier.core.exceptions import NotFoundError, SetupError
    >>>
    >>> try:
    ...     inspector.is_default_network("vpc-missing")
    ... except NotFoundError as e:
    ...     print(f"Network not found: {e.resource_id}")
    ... except SetupError as e:
    ...     print(f"Check could not run: {e}")
"""


class VerifierError(Exception):
    """Base exception for all VPC Verifier errors."""

    pass


class SetupError(VerifierError):
    """Raised when a collaborator call fails for reasons unrelated to the control.

    This can indicate:
    - Authentication or authorization failure of the inspecting identity
    - A provider API outage or throttling
    - Invalid configuration
    """

    def __init__(self, message: str, operation: str | None = None):
        super().__init__(message)
        self.operation = operation


class NotFoundError(SetupError):
    """Raised when a referenced network or resource does not exist."""

    def __init__(self, message: str, resource_id: str | None = None, operation: str | None = None):
        super().__init__(message, operation=operation)
        self.resource_id = resource_id


class ConfigurationError(SetupError):
    """Raised when required configuration is missing or malformed."""

    pass


class TrialMatrixError(ConfigurationError):
    """Raised when a peering trial matrix file cannot be read or parsed."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message, operation="load_trial_matrix")
        self.path = path


class MissingReceiverError(TrialMatrixError):
    """Raised when a trial matrix does not name the receiving network."""

    pass


class NoTrialsDefinedError(TrialMatrixError):
    """Raised when a trial matrix lists neither allowed nor disallowed requesters."""

    pass


class NoPublicSubnetError(VerifierError):
    """Raised when a behavioral probe needs a public subnet and none exists."""

    def __init__(self, network_id: str):
        super().__init__(f"no public subnets found for network {network_id}")
        self.network_id = network_id


class ProbeTimeoutError(VerifierError):
    """Raised when a bounded poll ends before the resource reached the wanted state."""

    def __init__(self, message: str, resource_id: str | None = None, last_state: str | None = None):
        super().__init__(message)
        self.resource_id = resource_id
        self.last_state = last_state


class ResourceStabilizationTimeout(ProbeTimeoutError):
    """Raised when an ephemeral resource does not stabilize after creation."""

    pass
