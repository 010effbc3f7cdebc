"""Result data structures for SubScout."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set


@dataclass
class SourceResult:
    """Outcome of running one source: its hostnames, or the reason it failed."""
    source: str
    subdomains: Set[str] = field(default_factory=set)
    error: Optional[str] = None
    duration_seconds: Optional[float] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "count": len(self.subdomains),
            "error": self.error,
            "duration_seconds": self.duration_seconds,
        }


@dataclass
class CacheEntry:
    """Last aggregation result stored for a domain."""
    domain: str
    subdomains: List[str]
    timestamp: datetime

    def age_ms(self, now: datetime) -> float:
        return (now - self.timestamp).total_seconds() * 1000

    def to_dict(self) -> Dict[str, Any]:
        return {
            "domain": self.domain,
            "subdomains": list(self.subdomains),
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheEntry":
        """Create from a persisted record; naive timestamps are taken as UTC."""
        timestamp = data["timestamp"]
        if isinstance(timestamp, str):
            if timestamp.endswith("Z"):
                timestamp = timestamp[:-1] + "+00:00"
            timestamp = datetime.fromisoformat(timestamp)
        if not isinstance(timestamp, datetime):
            raise ValueError(f"timestamp must be an ISO-8601 string, got {type(timestamp).__name__}")
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)

        subdomains = data["subdomains"]
        if not isinstance(subdomains, list) or not all(isinstance(s, str) for s in subdomains):
            raise ValueError("subdomains must be a list of strings")

        return cls(
            domain=str(data["domain"]),
            subdomains=subdomains,
            timestamp=timestamp,
        )


@dataclass
class QueryResult:
    """What a query hands back to the calling layer."""
    domain: str
    subdomains: List[str] = field(default_factory=list)
    from_cache: bool = False
    sources: List[SourceResult] = field(default_factory=list)
    timestamp: Optional[datetime] = None

    @classmethod
    def build(
        cls,
        domain: str,
        subdomains: Iterable[str],
        from_cache: bool,
        sources: Optional[List[SourceResult]] = None,
        timestamp: Optional[datetime] = None,
    ) -> "QueryResult":
        """Create with the subdomains deduplicated and sorted."""
        return cls(
            domain=domain,
            subdomains=sorted(set(subdomains)),
            from_cache=from_cache,
            sources=sources or [],
            timestamp=timestamp,
        )

    @property
    def count(self) -> int:
        return len(self.subdomains)

    @property
    def failed_sources(self) -> List[str]:
        return [s.source for s in self.sources if not s.ok]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "domain": self.domain,
            "count": self.count,
            "subdomains": self.subdomains,
            "from_cache": self.from_cache,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "sources": [s.to_dict() for s in self.sources],
        }
