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
"""Finds duplicated and forbidden keys in authorized_keys files"""

import sys
import argparse
import logging
from keyscan.config import load_config, params_from_config
from keyscan.errors import ConfigError
from keyscan.report import FORMATS, write_report
from keyscan.scan import ScanContext


LOG_LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


def build_parser():
    """Command line options for keyscan."""

    parser = argparse.ArgumentParser(description="""Scans authorized_keys
    files and reports keys that are forbidden or that are shared between
    users. Exits 1 if any problems were found.""")

    parser.add_argument("--config", metavar="file", default=None,
                        help="""Read settings from this YAML file (default:
                        /etc/keyscan/config.yaml, if it exists).""")

    parser.add_argument("--loglevel", choices=sorted(LOG_LEVELS), default=None,
                        help="""Logging level (default: warning, or log_level
                        from the config file).""")

    parser.add_argument("-t", "--target", metavar="glob", action="append", default=None,
                        help="""Scan files matching this glob instead of the
                        configured target_globs. May be used multiple times.""")

    parser.add_argument("--permitted", metavar="file", action="append", default=None,
                        help="""Read keys that may be shared from this file
                        instead of the configured permitted_key_files. May be
                        used multiple times.""")

    parser.add_argument("--forbidden", metavar="file", action="append", default=None,
                        help="""Read keys nobody may use from this file instead
                        of the configured forbidden_key_files. May be used
                        multiple times.""")

    parser.add_argument("--ignore-owner", metavar="user", dest="ignore_owner", action="append", default=None,
                        help="""Don't report keys in files owned by this user.
                        May be used multiple times.""")

    parser.add_argument("--lower-uid-bound", metavar="uid", dest="lower_uid_bound", type=int, default=None,
                        help="""Don't report keys in files owned by accounts
                        with uids below this (default: 500).""")

    parser.add_argument("--format", choices=sorted(FORMATS), default="json",
                        help="Report format (default: json).")

    parser.add_argument("-o", "--output", metavar="file", default=None,
                        help="Write the report here instead of stdout.")

    parser.add_argument("-s", metavar="string", action="store", type=str,
                        default="", help="""Strip this leading string from the
                        reported key location paths. '~' will be expanded.""")

    parser.add_argument("-j", "--jobs", metavar="n", type=int, default=1,
                        help="Read this many files at once (default: 1).")

    return parser


def main(argv=None):
    """Scan authorized_keys files for problem keys."""

    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as err:
        parser.exit(2, f"keyscan: {err}\n")

    overrides = {
        "target_globs": args.target,
        "permitted_key_files": args.permitted,
        "forbidden_key_files": args.forbidden,
        "ignored_owners": args.ignore_owner,
        "lower_uid_bound": args.lower_uid_bound,
    }
    config.update({name: value for name, value in overrides.items() if value is not None})

    level = str(args.loglevel or config.get("log_level") or "warning").lower()
    if level not in LOG_LEVELS:
        parser.exit(2, f"keyscan: unknown log_level {level}\n")

    logging.basicConfig(level=LOG_LEVELS[level], format="%(asctime)s - %(levelname)s  - %(message)s")

    try:
        params = params_from_config(config)
    except ConfigError as err:
        parser.exit(2, f"keyscan: {err}\n")

    findings = ScanContext(params, jobs=args.jobs)
    any_problem = findings.run()

    if args.output:
        logging.info("Writing report to %s", args.output)
        try:
            with open(args.output, "w", encoding="utf-8") as outf:
                write_report(findings.problems, outf, fmt=args.format, path_prefix=args.s)
        except OSError as err:
            parser.exit(2, f"keyscan: cannot write report to {args.output}: {err.strerror or err}\n")
    else:
        write_report(findings.problems, sys.stdout, fmt=args.format, path_prefix=args.s)

    return 1 if any_problem else 0

if __name__ == "__main__":
    sys.exit(main())
