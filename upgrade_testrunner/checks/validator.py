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

"""
Availability validation that runs in the background while an upgrade action
executes in the foreground.

A run is started right before the upgrade action and stopped right after it
returns, so its probing window always covers the whole action. Callers must
stop() a run before join()-ing it; join() then raises the run's failure, if
any, on the calling thread.
"""

import logging
import threading
from collections import namedtuple

from upgrade_testrunner.checks.probe import (UNREACHABLE, HealthProbe, ProbeOutcome, probe_until_healthy)
from upgrade_testrunner.errors import ValidationError

logger = logging.getLogger('testrunner')

DEFAULT_PERIOD = 0.2

Failure = namedtuple("Failure", ["message", "context", "thread"])


class FailureReporter:
    """Thread-safe sink for fatal failures.

    Every failure is logged as soon as it is reported and kept together with the
    reporting thread and its context, so failures raised off the main thread
    can still be attributed to the check and target that produced them.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._failures = []

    def fail(self, message, **context):
        failure = Failure(message, context, threading.current_thread().name)
        logger.error(f"{message} [{', '.join(f'{k}={v}' for k, v in sorted(context.items()))}]")
        with self._lock:
            self._failures.append(failure)
        return failure

    @property
    def failures(self):
        with self._lock:
            return list(self._failures)


class ValidationRun:

    def __init__(self, target, interval, per_call_timeout, per_call_budget,
                 probe=None, reporter=None, period=DEFAULT_PERIOD):
        self.target = target
        self.interval = interval
        self.per_call_timeout = per_call_timeout
        self.per_call_budget = per_call_budget
        self.period = period
        self.probe = probe or HealthProbe(per_call_timeout)
        self.reporter = reporter or FailureReporter()

        self._stop = threading.Event()
        self._failure = None
        self._thread = threading.Thread(target=self._loop, name=f"validation-{target}", daemon=True)

    @property
    def failure(self):
        return self._failure

    @property
    def running(self):
        return self._thread.is_alive()

    def start(self):
        logger.info(f"Starting async validation of {self.target}")
        self._thread.start()
        return self

    def stop(self):
        """Ask the loop to exit after its current iteration. Idempotent."""
        if self._stop.is_set():
            return
        logger.info("Stopping async validation")
        self._stop.set()

    def join(self):
        """Block until the loop has exited, then raise its failure if it recorded one"""
        if not self._stop.is_set():
            raise RuntimeError("validation run must be stopped before it is joined")
        self._thread.join()
        if self._failure is not None:
            raise ValidationError(self._failure.message)

    def _loop(self):
        while not self._stop.is_set():
            try:
                outcome = probe_until_healthy(self.probe, self.target, self.interval,
                                              self.per_call_budget, timeout=self.per_call_timeout)
            except Exception as ex:
                outcome = ProbeOutcome(UNREACHABLE, f"probe error: {ex}")
            if not outcome.healthy:
                self._fail(outcome)
            self._stop.wait(self.period)

    def _fail(self, outcome):
        if self._failure is not None:
            logger.debug(f"Validation of {self.target} still failing: {outcome}")
            return
        # The failure is only raised to the test once the run is joined, so log
        # it here; otherwise the logs look fine until the very end.
        msg = (f"Failed to contact service at {self.target} during upgrade: "
               f"no healthy response within {self.per_call_budget}s, last result {outcome}")
        self._failure = self.reporter.fail(msg, check="availability", target=str(self.target))


class ConcurrentValidator:

    def __init__(self, probe=None, reporter=None, period=DEFAULT_PERIOD):
        self.probe = probe
        self.reporter = reporter or FailureReporter()
        self.period = period

    def start(self, target, interval, per_call_timeout, per_call_budget):
        """Start probing target in the background and return the run handle"""
        run = ValidationRun(target, interval, per_call_timeout, per_call_budget,
                            probe=self.probe, reporter=self.reporter, period=self.period)
        return run.start()
