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
"""Problem report rendering"""

import io
import csv
import json
from typing import Callable, Dict, IO, Iterable

from .keyscan_utility import remove_path_prefix
from .pubkey import OwnedKey
from .scan import Problem
from .types import KeyRecord, ProblemRecord, ProblemType, StrPath

__all__ = ["FORMATS", "key_record", "problem_record", "to_json", "to_text", "to_csv", "write_report"]


def key_record(key: OwnedKey, path_prefix: StrPath="") -> KeyRecord:
    """Report entry for a single key."""
    return {
        "owner": key.owner,
        "owner_id": key.owner_id,
        "source_file": remove_path_prefix(key.source_file, path_prefix),
        "source_line": key.source_line,
        "comment": key.comment,
        "algorithm": key.key.algorithm,
        "fingerprint": key.key.fingerprint,
    }


def problem_record(problem: Problem, path_prefix: StrPath="") -> ProblemRecord:
    """Report entry for a single problem."""
    return {
        "type": problem.type.text,
        "subject": key_record(problem.subject, path_prefix),
        "related": [key_record(key, path_prefix) for key in problem.related],
    }


def to_json(problems: Iterable[Problem], path_prefix: StrPath="") -> str:
    """Problems as a JSON object with forbidden and duplicate keys listed
    separately."""

    report: Dict[str, list] = {"forbidden_keys": [], "duplicate_keys": []}
    for problem in problems:
        bucket = "forbidden_keys" if problem.type is ProblemType.KEY_FORBIDDEN else "duplicate_keys"
        report[bucket].append(problem_record(problem, path_prefix))

    return json.dumps(report, indent=4)


def _location(key: OwnedKey, path_prefix: StrPath) -> str:
    owner = key.owner or "unknown owner"
    return f"{remove_path_prefix(key.source_file, path_prefix)}:{key.source_line} ({owner}) {key.key.fingerprint}"


def to_text(problems: Iterable[Problem], path_prefix: StrPath="") -> str:
    """One line per problem, followed by an indented line for each related
    key."""
    lines = []
    for problem in problems:
        lines.append(f"{problem.type.text}: {_location(problem.subject, path_prefix)}")
        for key in problem.related:
            lines.append(f"    {_location(key, path_prefix)}")

    return "\n".join(lines) + "\n" if lines else ""


def to_csv(problems: Iterable[Problem], path_prefix: StrPath="") -> str:
    """One row per problem."""
    outf = io.StringIO()
    key_writer = csv.writer(outf, delimiter=",", quotechar='"', quoting=csv.QUOTE_MINIMAL)
    key_writer.writerow(["problem", "sha256", "owner", "source file", "source line", "number of related keys"])
    for problem in problems:
        subject = problem.subject
        key_writer.writerow([problem.type.text, subject.key.fingerprint, subject.owner,
                             remove_path_prefix(subject.source_file, path_prefix),
                             subject.source_line, len(problem.related)])
    return outf.getvalue()


FORMATS: Dict[str, Callable[[Iterable[Problem], StrPath], str]] = {
    "json": to_json,
    "text": to_text,
    "csv": to_csv,
}


def write_report(problems: Iterable[Problem], outf: IO[str], fmt: str="json", path_prefix: StrPath="") -> None:
    """Render problems in the named format and write them to outf."""
    try:
        render = FORMATS[fmt]
    except KeyError as err:
        raise ValueError(f"unknown report format: {fmt}") from err

    rendered = render(problems, path_prefix)
    outf.write(rendered)
    if fmt == "json":
        outf.write("\n")
