#!/usr/bin/env python3
"""Command line tests"""

import json
import os
import pwd

import pytest
from keyscan import cli
from keyscan.keyscan_utility import expand_globs, check_glob_syntax
from keyscan.errors import GlobSyntaxError


@pytest.fixture
def scan_files(tmp_path, ed25519_lines):
    """Two users' authorized_keys sharing a key, plus a config file pointing
    at them. All files are owned by the user running the tests."""
    try:
        pwd.getpwuid(os.getuid())
    except KeyError:
        pytest.skip("running as a uid with no account")

    for user in ("alice", "bob"):
        path = tmp_path / "home" / user / ".ssh" / "authorized_keys"
        path.parent.mkdir(parents=True)
        path.write_text(f"{ed25519_lines[0]} {user}@host\n", encoding="utf-8")

    config = tmp_path / "config.yaml"
    config.write_text("\n".join([
        "target_globs:",
        f"  - {tmp_path}/home/*/.ssh/authorized_keys",
        f"permitted_key_files: [{tmp_path}/permitted_keys]",
        f"forbidden_key_files: [{tmp_path}/forbidden_keys]",
        "lower_uid_bound: 0",
    ]), encoding="utf-8")
    return config

def test_duplicates_reported(scan_files, tmp_path, capsys):
    """Shared keys are reported as JSON and the exit status is 1."""
    assert cli.main(["--config", str(scan_files)]) == 1

    report = json.loads(capsys.readouterr().out)
    assert report["forbidden_keys"] == []
    assert [p["subject"]["source_file"] for p in report["duplicate_keys"]] == [
        str(tmp_path / "home" / "alice" / ".ssh" / "authorized_keys"),
        str(tmp_path / "home" / "bob" / ".ssh" / "authorized_keys"),
    ]

def test_permitted_override(scan_files, tmp_path, ed25519_lines, capsys):
    """A permitted shared key is not reported and the exit status is 0."""
    (tmp_path / "permitted_keys").write_text(ed25519_lines[0] + "\n", encoding="utf-8")

    assert cli.main(["--config", str(scan_files), "--format", "text"]) == 0
    assert capsys.readouterr().out == ""

def test_forbidden_flag_and_output_file(scan_files, tmp_path, ed25519_lines):
    """Command line flags override the config file, and -s strips paths."""
    forbidden = tmp_path / "leaked"
    forbidden.write_text(ed25519_lines[0] + "\n", encoding="utf-8")
    out = tmp_path / "report.json"

    status = cli.main(["--config", str(scan_files), "--forbidden", str(forbidden),
                       "-o", str(out), "-s", str(tmp_path / "home"), "-j", "2"])

    assert status == 1
    report = json.loads(out.read_text(encoding="utf-8"))
    assert [p["subject"]["source_file"] for p in report["forbidden_keys"]] == [
        "alice/.ssh/authorized_keys", "bob/.ssh/authorized_keys"]
    assert report["duplicate_keys"] == []

def test_uid_bound_flag(scan_files, capsys):
    """Raising the uid bound above every account exempts everything."""
    assert cli.main(["--config", str(scan_files), "--lower-uid-bound", str(2**32)]) == 0
    assert json.loads(capsys.readouterr().out)["duplicate_keys"] == []

def test_bad_config(tmp_path):
    """A missing config file exits with status 2."""
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--config", str(tmp_path / "absent.yaml")])
    assert excinfo.value.code == 2

def test_expand_globs(tmp_path):
    """Matches come back absolute, and a bad pattern doesn't stop the
    others."""
    (tmp_path / "b").write_text("", encoding="utf-8")
    (tmp_path / "a").write_text("", encoding="utf-8")

    paths = expand_globs([str(tmp_path / "[ab"), str(tmp_path / "*"), str(tmp_path / "none*")])

    assert paths == [str(tmp_path / "a"), str(tmp_path / "b")]
    assert all(os.path.isabs(path) for path in paths)

@pytest.mark.parametrize("pattern", ["/home/[abc", "/home/[!", "/home/[]"])
def test_bad_glob_syntax(pattern):
    """Unterminated character classes are glob syntax errors."""
    with pytest.raises(GlobSyntaxError):
        check_glob_syntax(pattern)

@pytest.mark.parametrize("pattern", ["/home/*/.ssh/authorized_keys", "/home/[ab]*", "/home/[]]x", "/home/[!a]"])
def test_good_glob_syntax(pattern):
    """Well formed patterns pass."""
    check_glob_syntax(pattern)

def test_unwritable_output(scan_files, tmp_path):
    """A report file that can't be opened exits with status 2."""
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--config", str(scan_files), "-o", str(tmp_path / "no-such-dir" / "report.json")])
    assert excinfo.value.code == 2
