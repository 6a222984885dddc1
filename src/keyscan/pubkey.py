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
"""Public key parsing and comparison for Keyscan"""

import base64
import hashlib
import struct
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, NamedTuple, Tuple

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization

from .errors import MalformedKeyEntry

__all__ = ["PublicKey", "OwnedKey", "ParsedKey", "parse_keys", "parse_public_key",
           "keys_equal", "key_in", "matching_keys"]


@dataclass(frozen=True)
class PublicKey():
    """An SSH public key. Identity is the canonical wire encoding only, so
    comments and options never make two keys differ."""
    algorithm: str = field(compare=False)
    blob: bytes

    @property
    def fingerprint(self) -> str:
        """OpenSSH style SHA256 fingerprint, as printed by ssh-keygen -l."""
        digest = base64.b64encode(hashlib.sha256(self.blob).digest()).decode("ascii")
        return "SHA256:" + digest.rstrip("=")

    def openssh(self) -> str:
        """The key as it would appear in an authorized_keys file, without
        options or comment."""
        return f"{self.algorithm} {base64.b64encode(self.blob).decode('ascii')}"


@dataclass(frozen=True)
class OwnedKey():
    """A public key along with where it was found and who owns that file.
    Two OwnedKeys compare equal when they are the same record: the same key
    from the same line of the same file under the same owner."""
    key: PublicKey
    owner: str
    owner_id: int
    source_file: str
    source_line: int
    comment: str = field(default="", compare=False)
    options: str = field(default="", compare=False)

    def has_same_key_as(self, other: "OwnedKey") -> bool:
        """True if both records hold the same public key."""
        return keys_equal(self.key, other.key)

    def is_same_record_as(self, other: "OwnedKey") -> bool:
        """True if other is a re-listing of this exact record."""
        return self == other


class ParsedKey(NamedTuple):
    """A key entry read from authorized_keys data"""
    key: PublicKey
    line: int
    comment: str
    options: str


def keys_equal(a: PublicKey, b: PublicKey) -> bool:
    """Compare two keys by their canonical wire encoding."""
    return len(a.blob) == len(b.blob) and a.blob == b.blob


def key_in(key: OwnedKey, pool: Iterable[OwnedKey]) -> bool:
    """Returns True if the key held by key occurs anywhere in pool."""
    return any(key.has_same_key_as(other) for other in pool)


def matching_keys(key: OwnedKey, pool: Iterable[OwnedKey]) -> List[OwnedKey]:
    """Returns the entries of pool holding the same key as key, in pool
    order."""
    return [other for other in pool if key.has_same_key_as(other)]


def _blob_algorithm(blob: bytes) -> str:
    """Reads the key type string at the start of a wire encoded key."""
    if len(blob) < 4:
        raise ValueError("key data too short")
    (length,) = struct.unpack(">I", blob[:4])
    name = blob[4:4 + length]
    if len(name) != length:
        raise ValueError("truncated key type")
    return name.decode("ascii", errors="replace")


def _canonical_blob(algorithm: str, blob: bytes) -> bytes:
    """Loads the key with cryptography and returns its re-serialized wire
    encoding. Key types cryptography can't load (security key types) are
    returned as decoded, after the key type check."""

    if _blob_algorithm(blob) != algorithm:
        raise ValueError(f"key type {algorithm} does not match encoded key data")

    line = algorithm.encode("ascii") + b" " + base64.b64encode(blob)
    try:
        identity = serialization.load_ssh_public_identity(line)
    except UnsupportedAlgorithm:
        return blob

    if isinstance(identity, serialization.SSHCertificate):
        encoded = identity.public_bytes()
    else:
        encoded = identity.public_bytes(serialization.Encoding.OpenSSH, serialization.PublicFormat.OpenSSH)

    encoded_algorithm, body = encoded.split(b" ")[:2]

    # Security key types may load as their plain counterparts, losing the
    # application field
    if encoded_algorithm.decode("ascii") != algorithm:
        return blob
    return base64.b64decode(body)


def parse_public_key(text: str) -> Tuple[PublicKey, str]:
    """Parses "<algorithm> <base64> [comment]" into a key and its comment.
    Raises ValueError if the key can't be decoded."""

    fields = text.split(None, 2)
    if len(fields) < 2:
        raise ValueError("missing key data")

    algorithm, encoded = fields[0], fields[1]
    comment = fields[2].strip() if len(fields) > 2 else ""

    # binascii.Error is a ValueError
    blob = base64.b64decode(encoded, validate=True)

    return PublicKey(algorithm=algorithm, blob=_canonical_blob(algorithm, blob)), comment


def _split_options(line: str) -> Tuple[str, str]:
    """Splits the leading options field off an authorized_keys line. Spaces
    and commas inside double quotes don't end the field."""
    in_quotes = False
    escaped = False

    for index, char in enumerate(line):
        if escaped:
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == '"':
            in_quotes = not in_quotes
        elif char in " \t" and not in_quotes:
            return line[:index], line[index:].lstrip()

    return line, ""


def _parse_entry(line: str) -> Tuple[PublicKey, str, str]:
    """Parses a single non-blank, non-comment authorized_keys line."""

    try:
        key, comment = parse_public_key(line)
        return key, comment, ""
    except ValueError as no_options_error:
        options, rest = _split_options(line)
        if not rest:
            raise
        try:
            key, comment = parse_public_key(rest)
        except ValueError:
            # Report why the line failed as a bare key
            raise no_options_error from None
        return key, comment, options


def parse_keys(data: bytes) -> Iterator[ParsedKey]:
    """Lazily parses authorized_keys data, yielding one ParsedKey per key
    line. Blank lines and # comments are skipped. Stops by raising
    MalformedKeyEntry at the first line that isn't a valid key."""

    offset = 0

    # Line number is the count of newlines consumed before the entry, plus one
    for line_number, raw_line in enumerate(data.split(b"\n"), start=1):
        line_offset = offset
        offset += len(raw_line) + 1

        line = raw_line.strip()
        if not line or line.startswith(b"#"):
            continue

        # Comments may be in any encoding. Undecodable bytes in the key
        # fields still fail, as base64 and key type names are ASCII
        try:
            key, comment, options = _parse_entry(line.decode("utf-8", errors="replace"))
        except ValueError as err:
            raise MalformedKeyEntry(line_offset, line_number, str(err)) from err

        yield ParsedKey(key=key, line=line_number, comment=comment, options=options)
