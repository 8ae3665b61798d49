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

from upgrade_testrunner.utils import Utils

logger = logging.getLogger('testrunner')


class Platform:
    def __init__(self, conf):
        self.conf = conf
        self.utils = Utils(conf)

    def get_node_template(self):
        """
        Get the identifier of the template new nodes are created from
        :return: template name
        """
        raise NotImplementedError(f"{self.__class__.__name__} does not manage node templates")

    def rolling_update(self, template, per_node_timeout):
        """
        Replace every node with one built from template
        :param template: the template to roll the node pool to
        :param per_node_timeout: seconds each node may take to be replaced
        """
        raise NotImplementedError(f"{self.__class__.__name__} does not support rolling updates")

    def delete_node_template(self, template):
        """
        Delete a template that is no longer referenced
        :param template: template name
        """
        raise NotImplementedError(f"{self.__class__.__name__} does not manage node templates")
