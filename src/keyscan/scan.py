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
"""Scan context, key gathering and problem classification for Keyscan"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from .errors import KeyscanError, MalformedKeyEntry, OwnerLookupFailed
from .keyscan_utility import expand_globs, read_key_file
from .owners import resolve_file_owner
from .pubkey import OwnedKey, parse_keys, key_in, matching_keys
from .types import ProblemType, OwnerResolver, StrPath

__all__ = ["ScanParams", "ScanContext", "Problem", "ProblemSet", "classify", "classify_key"]

logger = logging.getLogger(__name__)

DEFAULT_TARGET_GLOBS = ("/home/*/.ssh/authorized_keys", "/home/*/.ssh/authorized_keys2")
DEFAULT_PERMITTED_KEY_FILES = ("/etc/keyscan/permitted_keys",)
DEFAULT_FORBIDDEN_KEY_FILES = ("/etc/keyscan/forbidden_keys",)
DEFAULT_LOWER_UID_BOUND = 500

# Provenance for reference keys whose file owner can't be determined
UNKNOWN_OWNER = ""
UNKNOWN_OWNER_ID = -1


@dataclass(frozen=True)
class ScanParams():
    """Everything a scan needs to know about what to read and what to
    exempt."""
    target_globs: Tuple[str, ...] = DEFAULT_TARGET_GLOBS
    permitted_key_files: Tuple[str, ...] = DEFAULT_PERMITTED_KEY_FILES
    forbidden_key_files: Tuple[str, ...] = DEFAULT_FORBIDDEN_KEY_FILES
    ignored_owners: Tuple[str, ...] = ()
    # Accounts with uids below this are system accounts and are not scanned
    lower_uid_bound: int = DEFAULT_LOWER_UID_BOUND

    def is_ignored_owner(self, key: OwnedKey) -> bool:
        """True if the owner of key is exempt from scanning. An unresolved
        owner id is never exempt."""
        if key.owner in self.ignored_owners:
            return True
        return 0 <= key.owner_id < self.lower_uid_bound


@dataclass(frozen=True)
class Problem():
    """A problem with one found key, with the keys that caused it."""
    type: ProblemType
    subject: OwnedKey
    related: Tuple[OwnedKey, ...] = ()


NO_PROBLEM = ProblemType.NO_PROBLEM


@dataclass
class ProblemSet():
    """Problems bucketed by type. Iterates forbidden keys, then duplicates,
    each in the order they were found."""
    forbidden: List[Problem] = field(default_factory=list)
    duplicate: List[Problem] = field(default_factory=list)

    def add(self, problem: Problem) -> None:
        """Add a problem to the bucket for its type."""
        if problem.type is ProblemType.KEY_FORBIDDEN:
            self.forbidden.append(problem)
        elif problem.type is ProblemType.DUPLICATE_KEY:
            self.duplicate.append(problem)
        else:
            raise ValueError(f"not a problem: {problem.type.text}")

    def __iter__(self) -> Iterator[Problem]:
        yield from self.forbidden
        yield from self.duplicate

    def __len__(self) -> int:
        return len(self.forbidden) + len(self.duplicate)


def classify_key(key: OwnedKey, found: Sequence[OwnedKey], permitted: Sequence[OwnedKey],
                 forbidden: Sequence[OwnedKey], params: ScanParams) -> Problem:
    """Decides what, if anything, is wrong with a single found key. The
    permitted list and owner exemptions are checked first and suppress
    both forbidden and duplicate findings."""

    if key_in(key, permitted):
        return Problem(NO_PROBLEM, key)

    if params.is_ignored_owner(key):
        return Problem(NO_PROBLEM, key)

    forbidding = matching_keys(key, forbidden)
    if forbidding:
        return Problem(ProblemType.KEY_FORBIDDEN, key, tuple(forbidding))

    duplicates = [other for other in matching_keys(key, found)
                  if not key.is_same_record_as(other) and not params.is_ignored_owner(other)]
    if duplicates:
        return Problem(ProblemType.DUPLICATE_KEY, key, tuple(duplicates) + (key,))

    return Problem(NO_PROBLEM, key)


def classify(found: Sequence[OwnedKey], permitted: Sequence[OwnedKey], forbidden: Sequence[OwnedKey],
             params: ScanParams, log: Optional[logging.Logger]=None) -> Tuple[bool, ProblemSet]:
    """Classifies every found key, in order. Returns whether any problem was
    found, and the problems. Does not modify its inputs, so running it
    again over the same pools gives the same result."""

    log = log or logger
    problems = ProblemSet()

    log.debug("Starting scan of %d keys for problems", len(found))

    for key in found:
        log.debug("Checking key from %s line %d (owner %s)", key.source_file, key.source_line, key.owner)
        problem = classify_key(key, found, permitted, forbidden, params)
        if problem.type is NO_PROBLEM:
            continue
        log.debug("Problem detected: %s", problem.type.text)
        problems.add(problem)

    log.info("Problem scan complete: %d forbidden keys, %d duplicate keys",
             len(problems.forbidden), len(problems.duplicate))

    return len(problems) > 0, problems


class ScanContext():
    """Holds the keys found by a single scan and the problems found in
    them. Fill the pools with the gather methods, then call classify()."""

    def __init__(self, params: Optional[ScanParams]=None, owner_resolver: OwnerResolver=resolve_file_owner,
                 jobs: int=1, log: Optional[logging.Logger]=None):
        self.params = params or ScanParams()
        self.owner_resolver = owner_resolver
        self.jobs = max(1, jobs)
        self.log = log or logger

        self.found_keys: List[OwnedKey] = []
        self.permitted_keys: List[OwnedKey] = []
        self.forbidden_keys: List[OwnedKey] = []
        self.problems = ProblemSet()

    def run(self) -> bool:
        """Gather every file named by the scan parameters and classify the
        found keys. Returns True if there were any problems."""
        self.gather_found_keys_from_globs(self.params.target_globs)
        self.gather_permitted_keys(self.params.permitted_key_files)
        self.gather_forbidden_keys(self.params.forbidden_key_files)
        return self.classify()

    def gather_found_keys_from_globs(self, globs: Iterable[str]) -> None:
        """Expand globs and add the keys in the matching files to the found
        pool."""
        self.gather_found_keys(expand_globs(globs, log=self.log))

    def gather_found_keys(self, paths: Iterable[StrPath]) -> None:
        """Add the keys in paths to the pool of keys to be checked."""
        self.found_keys.extend(self.gather(paths))

    def gather_permitted_keys(self, paths: Iterable[StrPath]) -> None:
        """Add the keys in paths to the pool of keys that may be shared."""
        self.permitted_keys.extend(self.gather(paths, require_owner=False))

    def gather_forbidden_keys(self, paths: Iterable[StrPath]) -> None:
        """Add the keys in paths to the pool of keys nobody may use."""
        self.forbidden_keys.extend(self.gather(paths, require_owner=False))

    def gather(self, paths: Iterable[StrPath], require_owner: bool=True) -> List[OwnedKey]:
        """Read every file in paths and return their keys, in path order. A
        file that can't be read, owned or parsed is logged and skipped, and
        contributes no keys."""

        paths = [str(path) for path in paths]

        if self.jobs > 1 and len(paths) > 1:
            # map() yields results in submission order, whatever order they finish in
            with ThreadPoolExecutor(max_workers=self.jobs) as pool:
                results = list(pool.map(lambda path: self._gather_file(path, require_owner), paths))
        else:
            results = [self._gather_file(path, require_owner) for path in paths]

        keys = [key for file_keys in results for key in file_keys]
        self.log.info("Gathered %d keys from %d files", len(keys), len(paths))
        return keys

    def _gather_file(self, path: str, require_owner: bool) -> List[OwnedKey]:
        """Return the keys in a single file, or none if it can't be used."""

        self.log.debug("Getting keys from %s", path)
        try:
            keys = self.read_owned_keys(path, require_owner)
        except MalformedKeyEntry as err:
            self.log.error("Skipping %s: %s", path, err)
            return []
        except KeyscanError as err:
            self.log.warning("Skipping %s: %s", path, err)
            return []

        for key in keys:
            self.log.debug("Adding key %s (owner %s, line %d)", key.key.fingerprint, key.owner, key.source_line)
        self.log.debug("Key gathering from %s complete, %d keys", path, len(keys))
        return keys

    def read_owned_keys(self, path: str, require_owner: bool=True) -> List[OwnedKey]:
        """Parse every key in path and tag it with the file's owner. Raises
        FileUnreadable, OwnerLookupFailed or MalformedKeyEntry. With
        require_owner=False, an unknown owner is logged instead of raised."""

        data = read_key_file(path)

        try:
            owner, owner_id = self.owner_resolver(path)
        except OwnerLookupFailed as err:
            if require_owner:
                raise
            self.log.warning("%s; keeping its keys with an unknown owner", err)
            owner, owner_id = UNKNOWN_OWNER, UNKNOWN_OWNER_ID

        return [OwnedKey(key=parsed.key, owner=owner, owner_id=owner_id, source_file=path,
                         source_line=parsed.line, comment=parsed.comment, options=parsed.options)
                for parsed in parse_keys(data)]

    def classify(self) -> bool:
        """Classify the found keys, replacing any earlier results. Returns
        True if there were any problems."""
        any_problem, self.problems = classify(self.found_keys, self.permitted_keys,
                                              self.forbidden_keys, self.params, log=self.log)
        return any_problem
