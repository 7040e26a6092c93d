from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

ADDED = "added"
UPDATED = "updated"
SKIPPED = "skipped"
ERROR = "error"


@dataclass
class ItemResult:
    key: str
    status: str
    reason: Optional[str] = None
    paper_id: Optional[int] = None


@dataclass
class BatchReport:
    """Per-item outcomes of a sync, re-analysis or import run, in processing order."""

    items: List[ItemResult] = field(default_factory=list)

    def add(self, key: str, status: str, reason: Optional[str] = None, paper_id: Optional[int] = None) -> None:
        self.items.append(ItemResult(key=key, status=status, reason=reason, paper_id=paper_id))

    def added(self, key: str, paper_id: int) -> None:
        self.add(key, ADDED, paper_id=paper_id)

    def updated(self, key: str, paper_id: int) -> None:
        self.add(key, UPDATED, paper_id=paper_id)

    def skipped(self, key: str, reason: str) -> None:
        self.add(key, SKIPPED, reason=reason)

    def error(self, key: str, reason: str) -> None:
        self.add(key, ERROR, reason=reason)

    def with_status(self, status: str) -> List[ItemResult]:
        return [item for item in self.items if item.status == status]

    def count(self, status: str) -> int:
        return len(self.with_status(status))

    @property
    def total(self) -> int:
        return len(self.items)

    def keys(self, status: str) -> List[str]:
        return [item.key for item in self.with_status(status)]

    def error_details(self, key_name: str = "name", limit: Optional[int] = None) -> List[Dict[str, Any]]:
        errors = [{key_name: item.key, "error": item.reason} for item in self.with_status(ERROR)]
        return errors if limit is None else errors[:limit]
