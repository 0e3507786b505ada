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
Bounded polling helpers shared by the behavioral probe.

Every wait in the probe goes through :func:`poll_until` or
:func:`bounded_sleep` so that a poll interval, a per-poll timeout and an
optional caller :class:`Deadline` all apply. Sleep and clock are injectable
so tests never wait on wall time.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from .exceptions import ProbeTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], float]
Sleeper = Callable[[float], None]


class Deadline:
    """An absolute point in time after which the caller stops waiting."""

    def __init__(self, expires_at: float, clock: Clock = time.monotonic):
        self.expires_at = expires_at
        self._clock = clock

    @classmethod
    def after(cls, seconds: float, clock: Clock = time.monotonic) -> Deadline:
        return cls(clock() + seconds, clock=clock)

    def remaining(self) -> float:
        return max(0.0, self.expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0

    def __repr__(self) -> str:
        return f"Deadline(remaining={self.remaining():.1f}s)"


def bounded_sleep(
    seconds: float,
    deadline: Deadline | None = None,
    sleep: Sleeper = time.sleep,
) -> bool:
    """Sleep for *seconds*, cut short by *deadline*.

    Returns:
        True if the full delay elapsed, False if the deadline cut it short.
    """
    if seconds <= 0:
        return True
    if deadline is None:
        sleep(seconds)
        return True
    remaining = deadline.remaining()
    if remaining <= 0:
        return False
    sleep(min(seconds, remaining))
    return remaining >= seconds


def poll_until(
    fetch: Callable[[], T],
    is_done: Callable[[T], bool],
    *,
    timeout: float,
    interval: float,
    deadline: Deadline | None = None,
    sleep: Sleeper = time.sleep,
    clock: Clock = time.monotonic,
    description: str = "condition",
    resource_id: str | None = None,
    state_label: Callable[[T], str] | None = None,
    error_cls: type[ProbeTimeoutError] = ProbeTimeoutError,
) -> T:
    """
    Call *fetch* until *is_done* accepts its result.

    The first fetch happens immediately. Between fetches the helper sleeps
    for *interval* seconds, never past the poll timeout or the caller
    deadline, whichever comes first.

    Args:
        fetch: Reads the current value (e.g. describes an instance)
        is_done: Predicate on the fetched value
        timeout: Upper bound for this poll in seconds
        interval: Delay between fetches in seconds
        deadline: Optional caller deadline that also bounds the poll
        description: Used in log and error messages
        resource_id: Attached to the raised error
        state_label: Renders the last fetched value for the raised error
        error_cls: ``ProbeTimeoutError`` subclass to raise on expiry

    Returns:
        The first fetched value accepted by *is_done*

    Raises:
        ProbeTimeoutError: If the timeout or deadline passes first
    """
    started = clock()
    attempts = 0
    while True:
        value = fetch()
        attempts += 1
        if is_done(value):
            logger.debug("%s reached after %d poll(s)", description, attempts)
            return value

        remaining = timeout - (clock() - started)
        if deadline is not None:
            remaining = min(remaining, deadline.remaining())
        if remaining <= 0:
            last_state = state_label(value) if state_label else None
            raise error_cls(
                f"timed out waiting for {description} after {attempts} poll(s)",
                resource_id=resource_id,
                last_state=last_state,
            )
        sleep(min(interval, remaining))
