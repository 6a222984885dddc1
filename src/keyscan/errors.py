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
"""Exceptions raised by Keyscan"""

from typing import Optional


class KeyscanError(Exception):
    """Base class for all Keyscan errors."""


class MalformedKeyEntry(KeyscanError):
    """A key line could not be decoded. Carries the byte offset and 1-based
    line number of the offending line."""

    def __init__(self, offset: int, line: int, reason: str=""):
        self.offset = offset
        self.line = line
        self.reason = reason
        super().__init__(f"malformed key entry at offset {offset} (line {line}){': ' + reason if reason else ''}")


class OwnerLookupFailed(KeyscanError):
    """The owner of a file could not be determined."""

    def __init__(self, path: str, reason: str=""):
        self.path = path
        super().__init__(f"cannot determine owner of {path}{': ' + reason if reason else ''}")


class AccountNotFound(KeyscanError):
    """No account exists with the given name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"no such account: {name}")


class GlobSyntaxError(KeyscanError):
    """A target glob pattern is malformed."""

    def __init__(self, pattern: str, reason: str=""):
        self.pattern = pattern
        super().__init__(f"bad glob pattern {pattern!r}{': ' + reason if reason else ''}")


class FileUnreadable(KeyscanError):
    """A key file exists but its contents could not be read."""

    def __init__(self, path: str, cause: Optional[OSError]=None):
        self.path = path
        self.cause = cause
        super().__init__(f"cannot read {path}{': ' + cause.strerror if cause and cause.strerror else ''}")


class ConfigError(KeyscanError):
    """The configuration file is missing, unparseable or has bad values."""
