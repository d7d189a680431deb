"""Disease record and search criteria models."""
import re
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

# Supabase returns fractional seconds with 1-9 digits; fromisoformat wants exactly 6.
_FRACTION_RE = re.compile(r"\.(\d+)(?=[+-]\d{2}:\d{2}$|$)")


class SortKey(str, Enum):
    """Columns the disease catalog can be ordered by."""
    NAME = "name"
    CREATED_AT = "created_at"


@dataclass(frozen=True)
class DiseaseRecord:
    """A disease entry fetched from the record store."""
    id: str
    name: str
    diagnosis: str
    treatment: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "DiseaseRecord":
        """Build a record from a store row, tolerating missing optional columns."""
        created_at = row.get("created_at")
        return cls(
            id=str(row["id"]),
            name=row["name"],
            diagnosis=row.get("diagnosis") or "",
            treatment=row.get("treatment") or "",
            created_at=parse_timestamp(created_at) if created_at else None,
        )


@dataclass(frozen=True)
class QueryCriteria:
    """Current search term and sort configuration."""
    search_term: str = ""
    sort_key: SortKey = SortKey.NAME
    ascending: bool = True

    def with_changes(
        self,
        search_term: Optional[str] = None,
        sort_key: Optional[SortKey] = None,
        ascending: Optional[bool] = None,
    ) -> "QueryCriteria":
        """Return a copy with the given fields replaced; None keeps the current value."""
        changes: Dict[str, Any] = {}
        if search_term is not None:
            changes["search_term"] = search_term
        if sort_key is not None:
            changes["sort_key"] = SortKey(sort_key)
        if ascending is not None:
            changes["ascending"] = ascending
        return replace(self, **changes)


def parse_timestamp(timestamp_str: str) -> datetime:
    """
    Parse a timestamp string from Supabase.

    Handles the trailing 'Z' suffix and fractional seconds that are shorter or
    longer than the six digits ``datetime.fromisoformat`` accepts.

    Args:
        timestamp_str: Timestamp string such as ``2026-02-21T02:08:26.18976+00:00``

    Returns:
        datetime object
    """
    normalized = timestamp_str.replace("Z", "+00:00")
    normalized = _FRACTION_RE.sub(
        lambda m: "." + m.group(1)[:6].ljust(6, "0"),
        normalized,
        count=1,
    )
    return datetime.fromisoformat(normalized)
