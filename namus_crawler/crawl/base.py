from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, List, Tuple, TypeVar

from .errors import error_kind

Partition = str
RecordIdentifier = int
RecordBody = bytes

ItemT = TypeVar("ItemT")
ValueT = TypeVar("ValueT")


def canonical_json(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, sort_keys=True, separators=(",", ":"))


def sha256_hexdigest(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class Category(str, Enum):
    """Record collections exposed by the case-set API.

    The value is the URL segment used by the search and record endpoints.
    """

    MISSING = "MissingPersons"
    UNIDENTIFIED = "UnidentifiedPersons"
    UNCLAIMED = "UnclaimedPersons"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def state_field(self) -> str:
        """Search predicate field holding the state a case belongs to."""
        return _STATE_FIELDS[self]

    @classmethod
    def parse(cls, value: str) -> "Category":
        """Parse a category from its URL segment or short alias, case-insensitively."""
        key = (value or "").strip().lower()
        for member in cls:
            if key in (member.value.lower(), member.name.lower(), member.display_name.lower()):
                return member
        choices = ", ".join(m.name.lower() for m in cls)
        raise ValueError(f"Unknown category {value!r}; expected one of: {choices}")

    def __str__(self) -> str:
        return self.value


_DISPLAY_NAMES: Dict[Category, str] = {
    Category.MISSING: "Missing Persons",
    Category.UNIDENTIFIED: "Unidentified Persons",
    Category.UNCLAIMED: "Unclaimed Persons",
}

_STATE_FIELDS: Dict[Category, str] = {
    Category.MISSING: "stateOfLastContact",
    Category.UNIDENTIFIED: "stateOfRecovery",
    Category.UNCLAIMED: "stateFound",
}


@dataclass(frozen=True)
class StageFailure(Generic[ItemT]):
    item: ItemT
    error: Exception

    @property
    def kind(self) -> str:
        return error_kind(self.error)

    def to_dict(self, key: str = "item") -> Dict[str, Any]:
        return {key: self.item, "kind": self.kind, "error": str(self.error)}


@dataclass
class StageResult(Generic[ItemT, ValueT]):
    """Outcome of one stage: every input item lands in exactly one of the two lists.

    Successes keep the originating item next to its output; neither list is ordered.
    """

    successes: List[Tuple[ItemT, ValueT]] = field(default_factory=list)
    failures: List[StageFailure[ItemT]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.successes) + len(self.failures)

    def values(self) -> List[ValueT]:
        return [value for _, value in self.successes]

    def failed_items(self) -> List[ItemT]:
        return [f.item for f in self.failures]


@dataclass
class CrawlOutput:
    """What a completed run hands to the reporting sink."""

    category: Category
    records: List[Tuple[RecordIdentifier, RecordBody]] = field(default_factory=list)
    failed_records: List[StageFailure[RecordIdentifier]] = field(default_factory=list)
    failed_partitions: List[StageFailure[Partition]] = field(default_factory=list)
    partitions_seen: int = 0
    identifiers_seen: int = 0

    def summary(self) -> Dict[str, int]:
        return {
            "partitions": self.partitions_seen,
            "failed_partitions": len(self.failed_partitions),
            "identifiers": self.identifiers_seen,
            "records": len(self.records),
            "failed_records": len(self.failed_records),
        }
