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

from upgrade_testrunner.utils.config import BaseConfig
from upgrade_testrunner.utils.format import Format
from upgrade_testrunner.utils.logger import Logger
from upgrade_testrunner.utils.timeit import timed
from upgrade_testrunner.utils.utils import (step, Utils)
from upgrade_testrunner.utils.wait import poll
