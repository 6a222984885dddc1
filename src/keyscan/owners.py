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
"""File owner and account lookups"""

import os
from typing import Tuple

from .errors import OwnerLookupFailed, AccountNotFound
from .types import StrPath

try:
    import pwd
except ImportError:
    # No account database on this platform
    pwd = None  # type: ignore[assignment]

__all__ = ["resolve_file_owner", "resolve_account_id"]


def resolve_file_owner(path: StrPath) -> Tuple[str, int]:
    """Returns the account name and uid owning the file at path. Raises
    OwnerLookupFailed if ownership can't be read or the uid has no
    account."""

    if pwd is None:
        raise OwnerLookupFailed(str(path), "this platform does not provide file ownership information")

    try:
        uid = os.stat(path).st_uid
    except OSError as err:
        raise OwnerLookupFailed(str(path), err.strerror or str(err)) from err

    try:
        return pwd.getpwuid(uid).pw_name, uid
    except KeyError as err:
        raise OwnerLookupFailed(str(path), f"uid {uid} has no account") from err


def resolve_account_id(name: str) -> int:
    """Returns the uid of the named account. Raises AccountNotFound if there
    is no such account."""

    if pwd is None:
        raise AccountNotFound(name)

    try:
        return pwd.getpwnam(name).pw_uid
    except KeyError as err:
        raise AccountNotFound(name) from err
