"""Shared fixtures for Keyscan tests"""

import base64
import struct
from pathlib import Path

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa

from keyscan.errors import OwnerLookupFailed
from keyscan.pubkey import OwnedKey, parse_public_key


def _openssh(private_key) -> str:
    return private_key.public_key().public_bytes(serialization.Encoding.OpenSSH,
                                                 serialization.PublicFormat.OpenSSH).decode("ascii")


def ssh_string(data: bytes) -> bytes:
    """SSH wire format string: length prefixed bytes."""
    return struct.pack(">I", len(data)) + data


@pytest.fixture
def ed25519_lines():
    """Three distinct ed25519 public keys in authorized_keys form, without
    comments."""
    return [_openssh(ed25519.Ed25519PrivateKey.generate()) for _ in range(3)]


@pytest.fixture
def rsa_line():
    """An RSA public key in authorized_keys form."""
    return _openssh(rsa.generate_private_key(public_exponent=65537, key_size=2048))


@pytest.fixture
def ecdsa_line():
    """An ECDSA P-256 public key in authorized_keys form."""
    return _openssh(ec.generate_private_key(ec.SECP256R1()))


@pytest.fixture
def sk_ed25519_line():
    """A security key backed ed25519 public key, with the same public point
    as the returned plain ed25519 key."""
    private_key = ed25519.Ed25519PrivateKey.generate()
    raw = private_key.public_key().public_bytes(serialization.Encoding.Raw, serialization.PublicFormat.Raw)
    blob = ssh_string(b"sk-ssh-ed25519@openssh.com") + ssh_string(raw) + ssh_string(b"ssh:")
    return "sk-ssh-ed25519@openssh.com " + base64.b64encode(blob).decode("ascii"), _openssh(private_key)


@pytest.fixture
def owned_key():
    """Factory for OwnedKeys built straight from a key line."""

    def make(line, owner="alice", owner_id=1000, source_file=None, source_line=1, comment=""):
        key, _ = parse_public_key(line)
        if source_file is None:
            source_file = f"/home/{owner}/.ssh/authorized_keys"
        return OwnedKey(key=key, owner=owner, owner_id=owner_id, source_file=source_file,
                        source_line=source_line, comment=comment)

    return make


@pytest.fixture
def fake_owners():
    """Owner resolver for files laid out as <root>/<user>/<file>. Users are
    given uids from the returned dict, and users missing from it can't be
    resolved."""

    uids = {"alice": 1000, "bob": 1001, "carol": 1002, "daemon": 2, "admin": 0}

    def resolve(path):
        owner = Path(path).parent.name
        if owner not in uids:
            raise OwnerLookupFailed(str(path), "no such user")
        return owner, uids[owner]

    resolve.uids = uids
    return resolve


@pytest.fixture
def write_keys(tmp_path):
    """Writes lines to <tmp_path>/<user>/<name> and returns the path."""

    def write(user, lines, name="authorized_keys"):
        path = tmp_path / user / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return write
