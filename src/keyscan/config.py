#!/usr/bin/env python3
# Copyright 2023 Cisco Systems, Inc. and its affiliates
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
"""Configuration loading for Keyscan"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .errors import ConfigError, AccountNotFound
from .owners import resolve_account_id
from .scan import ScanParams
from .types import StrPath

__all__ = ["DEFAULT_CONFIG_PATH", "load_config", "load_config_file", "params_from_config"]

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("/etc/keyscan/config.yaml")

LIST_KEYS = ("target_globs", "permitted_key_files", "forbidden_key_files", "ignored_owners")
KNOWN_KEYS = LIST_KEYS + ("lower_uid_bound", "log_level")


def load_config_file(path: StrPath) -> Dict[str, Any]:
    """Load a YAML config file. An empty file is an empty config."""
    try:
        with open(path, encoding="utf-8") as inf:
            data = yaml.safe_load(inf)
    except OSError as err:
        raise ConfigError(f"cannot read config file {path}: {err.strerror or err}") from err
    except yaml.YAMLError as err:
        raise ConfigError(f"invalid YAML in config file {path}: {err}") from err

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    return data


def load_config(path: Optional[StrPath]=None, default_path: StrPath=DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """Load the config file at path, which must exist. Without a path, load
    default_path if it exists, or return an empty config so the built-in
    defaults apply."""

    if path is not None:
        return load_config_file(path)
    if Path(default_path).is_file():
        return load_config_file(default_path)
    return {}


def _string_list(name: str, value: Any) -> List[str]:
    # A single string is allowed for convenience
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigError(f"{name} must be a list of strings")
    return value


def params_from_config(config: Dict[str, Any], log: Optional[logging.Logger]=None) -> ScanParams:
    """Build ScanParams from a config mapping, falling back to the defaults
    for anything missing."""

    log = log or logger
    values: Dict[str, Any] = {}

    for name in sorted(set(config) - set(KNOWN_KEYS)):
        log.warning("Ignoring unknown config key %s", name)

    for name in LIST_KEYS:
        if config.get(name) is not None:
            values[name] = tuple(_string_list(name, config[name]))

    if config.get("lower_uid_bound") is not None:
        bound = config["lower_uid_bound"]
        # bool is an int subclass
        if isinstance(bound, bool) or not isinstance(bound, int):
            raise ConfigError("lower_uid_bound must be an integer")
        values["lower_uid_bound"] = bound

    params = ScanParams(**values)

    for name in params.ignored_owners:
        try:
            resolve_account_id(name)
        except AccountNotFound:
            log.warning("Ignored owner %s is not an account on this system", name)

    return params
