# Copyright (c) 2019 SUSE LLC.
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

import logging
import time
from collections import namedtuple

import requests

logger = logging.getLogger('testrunner')

HEALTHY = "healthy"
UNHEALTHY = "unhealthy"
UNREACHABLE = "unreachable"

# Responses in [200, 404) count as healthy. Redirects and most client errors are
# tolerated while components restart; do not narrow this window.
STATUS_HEALTHY_MIN = 200
STATUS_HEALTHY_MAX = 404

DEFAULT_TIMEOUT = 2


class Target(namedtuple("Target", ["address", "port"])):
    """Externally reachable endpoint of the service under test"""
    __slots__ = ()

    def __new__(cls, address, port=80):
        if not address:
            raise ValueError("target address must not be empty")
        return super().__new__(cls, address, int(port))

    @property
    def url(self):
        return f"http://{self.address}:{self.port}"

    def __str__(self):
        return f"{self.address}:{self.port}"


class ProbeOutcome(namedtuple("ProbeOutcome", ["status", "reason"])):
    __slots__ = ()

    @property
    def healthy(self):
        return self.status == HEALTHY

    def __str__(self):
        return self.status if self.healthy else f"{self.status} ({self.reason})"


def is_healthy_status(status_code):
    return STATUS_HEALTHY_MIN <= status_code < STATUS_HEALTHY_MAX


class HealthProbe:
    """Single HTTP GET against a target, classified healthy or not. Never retries."""

    def __init__(self, timeout=DEFAULT_TIMEOUT):
        self.timeout = timeout

    def probe(self, target, timeout=None):
        try:
            response = requests.get(target.url, timeout=timeout or self.timeout)
        except requests.RequestException as ex:
            logger.info(f"Error reaching {target}: {ex}")
            return ProbeOutcome(UNREACHABLE, str(ex))

        status_code = response.status_code
        response.close()
        if not is_healthy_status(status_code):
            logger.info(f"Bad response from {target}; status: {status_code}")
            return ProbeOutcome(UNHEALTHY, f"status {status_code}")
        return ProbeOutcome(HEALTHY, f"status {status_code}")


def probe_until_healthy(probe, target, interval, budget, timeout=None):
    """Probes target every interval seconds until healthy or budget seconds elapse.

    Returns the last outcome, which is unhealthy or unreachable only when the
    whole budget was exhausted. At least one probe is always issued.
    """
    deadline = time.monotonic() + budget
    while True:
        outcome = probe.probe(target, timeout=timeout)
        if outcome.healthy:
            return outcome

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return outcome
        time.sleep(min(interval, remaining))
