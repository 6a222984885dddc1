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
"""Utility functions"""

import os
import glob
import logging
from pathlib import Path
from typing import Iterable, List, Optional

from .errors import GlobSyntaxError, FileUnreadable
from .types import StrPath

logger = logging.getLogger(__name__)


def check_glob_syntax(pattern: str) -> None:
    """Raises GlobSyntaxError if pattern has an unterminated character
    class. glob would otherwise quietly treat the bracket as a literal and
    match nothing."""

    index = 0
    while index < len(pattern):
        if pattern[index] == "[":
            end = index + 1
            if end < len(pattern) and pattern[end] == "!":
                end += 1
            # A leading ] is part of the class
            if end < len(pattern) and pattern[end] == "]":
                end += 1
            end = pattern.find("]", end)
            if end == -1:
                raise GlobSyntaxError(pattern, f"unterminated character class at position {index}")
            index = end
        index += 1


def expand_globs(patterns: Iterable[str], log: Optional[logging.Logger]=None) -> List[str]:
    """Expands each pattern and returns the matches as absolute, normalized
    paths, in pattern order. Malformed patterns are logged and skipped. Since
    glob can't tell IO errors from a lack of matches, zero matches is not an
    error."""

    log = log or logger
    patterns = list(patterns)
    paths: List[str] = []

    log.info("Expanding %d globs", len(patterns))

    for pattern in patterns:
        try:
            check_glob_syntax(pattern)
        except GlobSyntaxError as err:
            log.error("%s", err)
            continue

        matches = sorted(glob.glob(os.path.expanduser(pattern)))
        log.debug("Glob %s matched %d paths", pattern, len(matches))

        paths.extend(os.path.abspath(match) for match in matches)

    log.info("Expansion complete, %d paths", len(paths))
    return paths


def read_key_file(path: StrPath) -> bytes:
    """Returns the contents of the file at path. Raises FileUnreadable on any
    IO error."""

    try:
        with open(path, "rb") as inf:
            return inf.read()
    except OSError as err:
        raise FileUnreadable(str(path), err) from err


def remove_path_prefix(path: StrPath, prefix: StrPath="") -> str:
    """Removes the prefix from the provided path if applicable. Returns a
    string so that the resulting object is JSON-serializable."""

    path, prefix = Path(path), Path(os.path.expanduser(prefix))

    if str(prefix) not in ("", ".") and path.is_relative_to(prefix):
        return str(path.relative_to(prefix))
    return str(path)
