"""
Scans SSH authorized_keys files and reports keys that are forbidden or shared between users.
"""
from .pubkey import PublicKey, OwnedKey, parse_keys, keys_equal
from .scan import ScanParams, ScanContext, Problem, ProblemSet, classify
from .types import ProblemType

__all__ = ["PublicKey", "OwnedKey", "parse_keys", "keys_equal", "ScanParams", "ScanContext",
           "Problem", "ProblemSet", "classify", "ProblemType"]
