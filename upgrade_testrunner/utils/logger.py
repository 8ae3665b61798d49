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

FORMAT = '%(asctime)s %(levelname)s] %(threadName)s %(message)s'
DATEFMT = '%Y-%m-%d %H:%M:%S'


class Logger:

    @staticmethod
    def config_logger(conf, level=None):
        logging.basicConfig(format=FORMAT, level=logging.WARNING, datefmt=DATEFMT)
        formatter = logging.Formatter(FORMAT, datefmt=DATEFMT)

        logger = logging.getLogger("testrunner")
        # handlers below do the filtering; the file always gets debug output
        logger.setLevel(logging.DEBUG)
        logger.propagate = False

        if conf.log.file:
            file_handler = logging.FileHandler(conf.log.file)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

        if not conf.log.quiet:
            if not level:
                level = conf.log.level
            console = logging.StreamHandler()
            console.setLevel(logging.getLevelName(level.upper()))
            console.setFormatter(formatter)
            logger.addHandler(console)
