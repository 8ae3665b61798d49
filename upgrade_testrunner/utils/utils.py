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
import os
import shlex
import subprocess
from functools import wraps
from threading import Thread

from upgrade_testrunner.utils.format import Format

logger = logging.getLogger('testrunner')

_stepdepth = 0


def step(f):
    @wraps(f)
    def wrapped(*args, **kwargs):
        global _stepdepth
        _stepdepth += 1
        logger.debug("{} entering {} {}".format(Format.DOT * _stepdepth, f.__name__,
                                                f.__doc__ or ""))
        try:
            return f(*args, **kwargs)
        finally:
            logger.debug("{}  exiting {}".format(
                Format.DOT_EXIT * _stepdepth, f.__name__))
            _stepdepth -= 1

    return wrapped


class Utils:

    def __init__(self, conf):
        self.conf = conf

    def run_script(self, script, *args):
        """Runs script from the repository root using args and returns stdout.

        Raises RuntimeError carrying the script, its arguments and both output
        channels when the script fails.
        """
        script_path = os.path.join(self.conf.repo_root, script)
        cmd = " ".join(shlex.quote(part) for part in [script_path] + list(args))
        logger.info(f"Running {script} {list(args)}")
        try:
            stdout = self.runshellcommand(cmd, cwd=self.conf.repo_root)
        except RuntimeError as ex:
            raise RuntimeError(f"error running {script} {list(args)}; got error {ex}") from ex
        logger.debug(f"stdout: {stdout}")
        return stdout

    def runshellcommand(self, cmd, cwd=None):
        """Running shell command in {workspace} if cwd == None
           Eg) cwd is "kubernetes", cmd will run shell in {workspace}/kubernetes/
               cwd is None, cmd will run in {workspace}
               cwd is abs path, cmd will run in cwd
        Keyword arguments:
        cmd -- command to run
        cwd -- dir to run the cmd
        """
        if not cwd:
            cwd = self.conf.workspace

        if not os.path.isabs(cwd):
            cwd = os.path.join(self.conf.workspace, cwd)

        if not os.path.exists(cwd):
            raise FileNotFoundError(Format.alert("Directory {} does not exists".format(cwd)))

        if logging.DEBUG >= logger.getEffectiveLevel():
            logger.debug("Executing command\n"
                         "    cwd: {} \n"
                         "    cmd: {}".format(cwd, cmd))
        else:
            logger.info("Executing command {}".format(cmd))

        stdout, stderr = [], []
        p = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, shell=True, cwd=cwd)
        stdoutStreamer = Thread(target=self.read_fd, args=(p, p.stdout, logger.debug, stdout))
        stderrStreamer = Thread(target=self.read_fd, args=(p, p.stderr, logger.error, stderr))
        stdoutStreamer.start()
        stderrStreamer.start()
        stdoutStreamer.join()
        stderrStreamer.join()
        p.wait()
        stdout, stderr = "".join(stdout), "".join(stderr)

        if p.returncode != 0:
            raise RuntimeError("Error executing command {}: exit code {}, stdout {!r}, stderr {!r}".format(
                cmd, p.returncode, stdout, stderr))
        return stdout

    def read_fd(self, proc, fd, logger_func, output):
        """Read from fd, logging using logger_func

        Read from fd, until proc is finished. All contents will
        also be appended onto output. Undecodable bytes are replaced so
        the pipe keeps being drained."""
        while True:
            contents = fd.readline().decode(errors="replace")
            if contents == '' and proc.poll() is not None:
                return
            if contents:
                output.append(contents)
                logger_func(contents.strip())
