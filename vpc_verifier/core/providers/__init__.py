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
Provider capability interfaces and implementations.

The engine never talks to a cloud SDK directly. It depends on three small
capabilities (reading network inventory, attempting peering, managing a test
instance) chosen once at construction time.
"""

from .base import InstanceLifecycle, NetworkReader, PeeringProber

__all__ = [
    "AwsEc2Provider",
    "InstanceLifecycle",
    "NetworkReader",
    "PeeringProber",
]


def __getattr__(name: str):
    # Only import the AWS provider (and boto3) on request
    if name == "AwsEc2Provider":
        from .aws import AwsEc2Provider

        return AwsEc2Provider
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
