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

import os
import string

import yaml

from upgrade_testrunner.utils.format import Format


class ConfigSection:
    """Attribute holder that becomes read-only once frozen"""

    def __setattr__(self, key, value):
        if self.__dict__.get("_frozen", False):
            raise AttributeError(f"configuration is read-only, cannot set '{key}'")
        super().__setattr__(key, value)

    def freeze(self):
        for value in self.__dict__.values():
            if isinstance(value, ConfigSection):
                value.freeze()
        self.__dict__["_frozen"] = True


class BaseConfig(ConfigSection):

    def __new__(cls, yaml_path, *args, **kwargs):
        obj = super().__new__(cls, *args, **kwargs)
        obj.yaml_path = yaml_path
        obj.workspace = "$HOME/workspace"
        obj.repo_root = "$HOME/workspace/kubernetes"
        obj.provider = "gce"
        obj.namespace = "default"

        obj.kubectl = BaseConfig.Kubectl()
        obj.gce = BaseConfig.GCE()
        obj.upgrade = BaseConfig.Upgrade()
        obj.validation = BaseConfig.Validation()
        obj.log = BaseConfig.Log()

        config_classes = (
            BaseConfig.Kubectl,
            BaseConfig.GCE,
            BaseConfig.Upgrade,
            BaseConfig.Validation,
            BaseConfig.Log
        )

        # vars get the values from yaml file
        vars = BaseConfig.get_var_dict(yaml_path)
        # conf.objects will be overriden by the values from vars and matching ENV variables
        conf = BaseConfig.inject_attrs_from_yaml(obj, vars, config_classes)
        conf = BaseConfig.verify(conf)
        conf.freeze()
        return conf

    class Kubectl(ConfigSection):
        def __init__(self):
            super().__init__()
            self.binpath = "/usr/bin/kubectl"
            self.kubeconfig = "$HOME/.kube/config"
            self.workload_kind = "replicationcontrollers"

    class GCE(ConfigSection):
        def __init__(self):
            super().__init__()
            self.project_id = None
            self.zone = None
            self.instance_group = None

    class Upgrade(ConfigSection):
        def __init__(self):
            super().__init__()
            # upgrades go to this version; kube-push always pushes local binaries
            self.version = "latest_ci"
            self.num_nodes = 3
            self.per_node_timeout = 300
            self.node_ready_timeout = 300
            self.pod_ready_timeout = 300
            self.poll_interval = 5

    class Validation(ConfigSection):
        def __init__(self):
            super().__init__()
            self.period = 0.2
            self.interval = 5
            self.timeout = 2
            self.budget = 30
            self.port = 80

    class Log(ConfigSection):
        def __init__(self):
            super().__init__()
            self.level = "INFO"
            self.quiet = False
            self.file = "testrunner.log"

    @staticmethod
    def get_yaml_path(yaml_path):
        return os.path.abspath(os.path.expanduser(yaml_path))

    @staticmethod
    def get_var_dict(yaml_path):
        config_yaml_file_path = BaseConfig.get_yaml_path(yaml_path)
        with open(config_yaml_file_path, 'r') as stream:
            _conf = yaml.safe_load(stream)
        return _conf or {}

    @staticmethod
    def inject_attrs_from_yaml(obj, vars, config_classes):
        """ Set values for configuration attributes
        The order of precedence is:
        - An environment variable exists with the fully qualified name of the
          attribute
        - The attribute from vars
        - default value for configuration

        After the attribute's value is set, a environement variables in the
        value are expanded.
        """
        for key, value in list(obj.__dict__.items()):
            if key == "yaml_path":
                continue

            if isinstance(value, config_classes):
                BaseConfig._set_config_class_attrs(value, key, vars)
                continue

            env_value = os.getenv(key.upper())
            if env_value:
                value = BaseConfig._convert(obj.__dict__[key], env_value)
            elif key in vars:
                value = vars[key]

            obj.__dict__[key] = BaseConfig._expand(value)

        return obj

    @staticmethod
    def verify(conf):
        if not conf.workspace:
            raise ValueError(Format.alert("You should set the workspace value in a configured yaml file e.g. vars.yaml"
                                          " or set env var WORKSPACE before using testrunner"))

        if not conf.repo_root:
            raise ValueError(Format.alert("repo_root must point to the checkout holding the upgrade scripts"))

        for key in ("per_node_timeout", "node_ready_timeout", "pod_ready_timeout", "num_nodes"):
            if conf.upgrade.__dict__[key] < 0:
                raise ValueError(Format.alert(f"upgrade.{key} must not be negative"))

        if conf.validation.interval <= 0 or conf.validation.period <= 0:
            raise ValueError(Format.alert("validation.interval and validation.period must be positive"))

        return conf

    @staticmethod
    def _set_config_class_attrs(config_class, class_name, variables):
        config_obj = variables.get(class_name) or {}

        for k, default in list(config_class.__dict__.items()):
            env_var = os.getenv(f"{class_name.upper()}_{k.upper()}")
            if env_var is not None:
                value = BaseConfig._convert(default, env_var)
            elif config_obj.get(k) is not None:
                value = config_obj[k]
            else:
                value = default
            config_class.__dict__[k] = BaseConfig._expand(value)

        unknown = set(config_obj) - set(config_class.__dict__)
        if unknown:
            raise ValueError(Format.alert(f"unknown {class_name} settings: {', '.join(sorted(unknown))}"))

    @staticmethod
    def _convert(default, value):
        """Environment values are strings; parse them like yaml unless the setting is a string"""
        if default is None or isinstance(default, str):
            return value
        return yaml.safe_load(value)

    @staticmethod
    def _expand(value):
        # subtitute environment variables in the value of the attribute
        if isinstance(value, str):
            return string.Template(value).safe_substitute(os.environ)
        return value
