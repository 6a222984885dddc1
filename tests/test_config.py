#!/usr/bin/env python3
"""Configuration loading tests"""

import logging

import pytest
from keyscan.config import load_config, params_from_config
from keyscan.errors import ConfigError
from keyscan.scan import ScanParams, DEFAULT_TARGET_GLOBS


def test_defaults(tmp_path):
    """With no config file, the built-in defaults apply."""
    config = load_config(default_path=tmp_path / "absent.yaml")
    params = params_from_config(config)

    assert config == {}
    assert params == ScanParams()
    assert params.target_globs == DEFAULT_TARGET_GLOBS
    assert params.lower_uid_bound == 500

def test_load_file(tmp_path):
    """Values from the config file replace the defaults."""
    path = tmp_path / "config.yaml"
    path.write_text("\n".join([
        "target_globs:",
        "  - /srv/*/authorized_keys",
        "forbidden_key_files: /etc/keyscan/leaked",
        "ignored_owners: [root]",
        "lower_uid_bound: 1000",
    ]), encoding="utf-8")

    params = params_from_config(load_config(path))

    assert params.target_globs == ("/srv/*/authorized_keys",)
    assert params.forbidden_key_files == ("/etc/keyscan/leaked",)
    assert params.permitted_key_files == ScanParams().permitted_key_files
    assert params.ignored_owners == ("root",)
    assert params.lower_uid_bound == 1000

def test_default_path_is_used(tmp_path):
    """The default config file is read when it exists."""
    path = tmp_path / "config.yaml"
    path.write_text("lower_uid_bound: 10\n", encoding="utf-8")

    assert load_config(default_path=path) == {"lower_uid_bound": 10}

def test_empty_file(tmp_path):
    """An empty config file is an empty config."""
    path = tmp_path / "config.yaml"
    path.write_text("", encoding="utf-8")
    assert load_config(path) == {}

def test_missing_explicit_file(tmp_path):
    """A config file named explicitly must exist."""
    with pytest.raises(ConfigError):
        load_config(tmp_path / "absent.yaml")

@pytest.mark.parametrize("text", ["target_globs: [unclosed", "- just\n- a list\n"])
def test_invalid_file(tmp_path, text):
    """Unparseable YAML and non-mapping documents are config errors."""
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path)

@pytest.mark.parametrize("config", [
    {"target_globs": [1, 2]},
    {"ignored_owners": {"root": True}},
    {"lower_uid_bound": "500"},
    {"lower_uid_bound": True},
])
def test_bad_values(config):
    """Values of the wrong type are config errors."""
    with pytest.raises(ConfigError):
        params_from_config(config)

def test_unknown_keys_and_owners(caplog):
    """Unknown keys and ignored owners without accounts are warned about."""
    with caplog.at_level(logging.WARNING):
        params = params_from_config({"target_glob": ["/typo"], "ignored_owners": ["no-such-user-keyscan-test"]})

    assert params.target_globs == DEFAULT_TARGET_GLOBS
    assert params.ignored_owners == ("no-such-user-keyscan-test",)
    messages = [record.getMessage() for record in caplog.records]
    assert any("target_glob" in message for message in messages)
    assert any("no-such-user-keyscan-test" in message for message in messages)
