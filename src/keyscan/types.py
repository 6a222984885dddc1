"""Types for Keyscan"""

import os
from enum import Enum
from typing import Union, List, Callable, Tuple, TypedDict

StrPath = Union[str, os.PathLike[str]]

# Maps a path to the name and numeric id of the account owning it
OwnerResolver = Callable[[StrPath], Tuple[str, int]]

class ProblemType(Enum):
    """Classification of a single found key"""
    NO_PROBLEM = 0
    KEY_FORBIDDEN = 1
    DUPLICATE_KEY = 2

    @property
    def text(self) -> str:
        """Human readable name of the problem type."""
        return _PROBLEM_TYPE_TEXTS[self]

_PROBLEM_TYPE_TEXTS = {
    ProblemType.NO_PROBLEM: "No Problem",
    ProblemType.KEY_FORBIDDEN: "Forbidden Key",
    ProblemType.DUPLICATE_KEY: "Duplicate Key",
}

class KeyRecord(TypedDict):
    """Report entry for a single key and where it was found"""
    owner: str
    owner_id: int
    source_file: str
    source_line: int
    comment: str
    algorithm: str
    fingerprint: str

class ProblemRecord(TypedDict):
    """Report entry for a single problem"""
    type: str
    subject: KeyRecord
    related: List[KeyRecord]
