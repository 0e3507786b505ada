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
Configuration class for VPC Verifier.

Every probe parameter is a named field; values left unset are filled from
environment variables (see ``VerifierConstants.ENV_*``).
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .constants import VerifierConstants

logger = logging.getLogger(__name__)


def _parse_seconds(raw: str | None, default: float) -> float:
    """Parse a seconds value; blank, invalid or non-positive values mean *default*."""
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw.strip())
    except ValueError:
        logger.warning("Ignoring non-numeric seconds value: %r", raw)
        return default
    return value if value > 0 else default


@dataclass
class Config:
    """
    Configuration for VPC Verifier.
    """

    # AWS Configuration
    aws_region_name: str | None = None
    aws_profile_name: str | None = None

    # Behavioral probe
    image_id: str | None = None
    instance_type: str | None = None
    # 0 means fire-and-forget cleanup
    cleanup_wait_timeout: float | None = None
    probe_deadline_seconds: float | None = None

    # Peering allow-list sources, tried in this order
    peer_owner_id: str | None = None
    allowed_requester_ids: str | None = None
    allowed_requester_id_entries: list[str] | None = None
    peer_trial_matrix_file: str | None = None

    def __post_init__(self):
        """Load configuration from environment variables if not provided."""
        C = VerifierConstants

        if self.aws_region_name is None:
            self.aws_region_name = os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION") or C.DEFAULT_REGION

        if self.aws_profile_name is None:
            if env_profile := os.getenv("AWS_PROFILE"):
                self.aws_profile_name = env_profile

        if self.image_id is None:
            self.image_id = (os.getenv(C.ENV_IMAGE_ID) or "").strip() or None

        if self.instance_type is None:
            self.instance_type = (os.getenv(C.ENV_INSTANCE_TYPE) or "").strip() or C.DEFAULT_INSTANCE_TYPE

        if self.cleanup_wait_timeout is None:
            self.cleanup_wait_timeout = _parse_seconds(
                os.getenv(C.ENV_CLEANUP_WAIT_SECONDS), C.DEFAULT_CLEANUP_WAIT_SECONDS
            )

        if self.probe_deadline_seconds is None:
            deadline = _parse_seconds(os.getenv(C.ENV_PROBE_DEADLINE_SECONDS), 0.0)
            self.probe_deadline_seconds = deadline or None

        if self.peer_owner_id is None:
            self.peer_owner_id = (os.getenv(C.ENV_PEER_OWNER_ID) or "").strip() or None

        if self.allowed_requester_ids is None:
            self.allowed_requester_ids = os.getenv(C.ENV_ALLOWED_REQUESTER_IDS)

        if self.allowed_requester_id_entries is None:
            self.allowed_requester_id_entries = self._indexed_env_values(C.ENV_ALLOWED_REQUESTER_ID_PREFIX)

        if self.peer_trial_matrix_file is None:
            self.peer_trial_matrix_file = (os.getenv(C.ENV_PEER_TRIAL_MATRIX_FILE) or "").strip() or None

    @staticmethod
    def _indexed_env_values(prefix: str) -> list[str]:
        """Collect ``<prefix>1`` .. ``<prefix>N`` in index order, skipping gaps."""
        values = []
        for i in range(1, VerifierConstants.MAX_INDEXED_ALLOW_LIST_ENTRIES + 1):
            raw = (os.getenv(f"{prefix}{i}") or "").strip()
            if raw:
                values.append(raw)
        return values

    @classmethod
    def from_env(cls) -> "Config":
        """
        Create configuration from environment variables.

        Returns:
            Config instance with values from environment
        """
        return cls()

    @classmethod
    def from_file(cls, config_file: Path) -> "Config":
        """
        Load configuration from a .env file.

        Values in the file override variables already present in the
        environment.

        Args:
            config_file: Path to .env file

        Returns:
            Config instance
        """
        if Path(config_file).exists():
            load_dotenv(config_file, override=True)
        else:
            logger.warning("Config file not found, using environment only: %s", config_file)

        return cls.from_env()
