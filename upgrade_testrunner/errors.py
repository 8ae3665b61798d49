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


class ValidationError(AssertionError):
    """The service stayed unreachable for a whole probe budget during an upgrade"""


class ClusterValidationError(AssertionError):
    """Live cluster state does not match the expected workload"""

    def __init__(self, check, expected, observed, message):
        super().__init__(message)
        self.check = check
        self.expected = expected
        self.observed = observed


class UpgradeError(Exception):
    """An upgrade action failed"""


class RollingUpdateError(UpgradeError):
    """A step of the rolling node update failed"""

    def __init__(self, step, template, cause):
        super().__init__(f"rolling update step '{step}' to template {template} failed: {cause}")
        self.step = step
        self.template = template
        self.cause = cause


class UpgradePhaseError(Exception):
    """Fatal failure of an upgrade cycle, attributed to the phase it happened in"""

    def __init__(self, phase, cause):
        super().__init__(f"{phase}: {cause}")
        self.phase = phase
        self.cause = cause
