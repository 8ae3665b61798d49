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

logger = logging.getLogger('testrunner')


def poll(condition, timeout, interval, description=None):
    """Wait for condition to become true.

    condition is called until it returns a truthy value or timeout seconds
    have elapsed, sleeping interval seconds between attempts. Exceptions raised
    by condition count as a failed attempt and the last one is reported.
    The condition is always attempted at least once.

    Raises AssertionError when the condition is not satisfied in time.
    """
    _description = description or condition.__name__
    deadline = time.monotonic() + timeout
    attempts = 0
    while True:
        attempts += 1
        last_error = None
        try:
            if condition():
                return True
        except Exception as ex:
            last_error = ex
            logger.debug(f'"{_description}" attempt {attempts} failed: {ex}')

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            msg = (f'condition "{_description}" not satisfied after {timeout} seconds'
                   f'{". Last error: "+str(last_error) if last_error else ""}')
            raise AssertionError(msg)

        time.sleep(min(interval, remaining))
