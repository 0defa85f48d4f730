"""
Query data models.

Represents a user's analysis request and the per-version result it produces.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional, Tuple

from src.models.message import coerce_int
from src.models.topic import AggregatedResult
import config.settings as settings


class QueryType(str, Enum):
    CHANNEL_QUERY = "channel_query"
    USER_ANALYSIS = "user_analysis"
    USERS_ANALYSIS = "users_analysis"
    TIME_WINDOW = "time_window"
    VERSION_EVOLUTION = "version_evolution"
    CUSTOM_QUERY = "custom_query"

    @property
    def description(self) -> str:
        return QUERY_TYPE_DESCRIPTIONS[self]


QUERY_TYPE_DESCRIPTIONS = {
    QueryType.CHANNEL_QUERY: "What topics have users been talking about?",
    QueryType.USER_ANALYSIS: "Tell me about user X",
    QueryType.USERS_ANALYSIS: "Compare these users' behavior",
    QueryType.TIME_WINDOW: "What topics were active in this time period?",
    QueryType.VERSION_EVOLUTION: "How did topics change between versions?",
    QueryType.CUSTOM_QUERY: "Ask a custom question about the topic tree data",
}


def _normalize_user_ids(user_ids: Iterable) -> FrozenSet[int]:
    normalized = set()
    for raw in user_ids:
        user_id = coerce_int(raw)
        if user_id is None:
            raise ValueError(f"Invalid user id: {raw!r}")
        normalized.add(user_id)
    return frozenset(normalized)


def _normalize_versions(versions: Iterable) -> Tuple[int, ...]:
    ordered = []
    for raw in versions:
        if raw is None:
            continue
        version = coerce_int(raw)
        if version is None:
            raise ValueError(f"Invalid version: {raw!r}")
        if version not in ordered:
            ordered.append(version)
    return tuple(ordered)


@dataclass(frozen=True)
class QueryRequest:
    """
    An analysis request against one dataset.

    User ids and versions arriving as strings (CLI, form input) are
    converted to int here so the rest of the pipeline only sees ints.
    """
    query_type: QueryType
    dataset_id: str
    versions: Tuple[int, ...]
    user_ids: FrozenSet[int] = frozenset()
    custom_question: str = ""

    def __post_init__(self):
        object.__setattr__(self, "query_type", QueryType(self.query_type))
        object.__setattr__(self, "dataset_id", str(self.dataset_id))
        object.__setattr__(self, "user_ids", _normalize_user_ids(self.user_ids))
        object.__setattr__(self, "versions", _normalize_versions(self.versions))
        object.__setattr__(self, "custom_question", (self.custom_question or "").strip())

        if not self.dataset_id:
            raise ValueError("dataset_id is required")
        if not self.versions:
            raise ValueError("At least one version is required")
        if len(self.versions) > settings.MAX_VERSIONS:
            raise ValueError(
                f"At most {settings.MAX_VERSIONS} versions can be compared, got {len(self.versions)}"
            )

    @property
    def channel_id(self) -> int:
        channel_id = coerce_int(self.dataset_id)
        if channel_id is None:
            raise ValueError(f"Dataset id is not numeric: {self.dataset_id}")
        return channel_id

    @property
    def question(self) -> Optional[str]:
        """The free-text question, only for custom queries."""
        if self.query_type is QueryType.CUSTOM_QUERY and self.custom_question:
            return self.custom_question
        return None


@dataclass
class VersionedResult:
    """
    Local analysis of one dataset version.
    Keyed by version for display and diffing.
    """
    version: int
    result: AggregatedResult
    insights: List[str]
    summary: str
    ai_summary: Optional[str] = None
    metadata: dict = field(default_factory=dict)
    raw_response: Optional[dict] = None

    @property
    def enhanced(self) -> bool:
        return bool(self.metadata.get("enhanced"))

    def with_changes(self, **changes) -> "VersionedResult":
        return replace(self, **changes)

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        return {
            "version": self.version,
            "summary": self.summary,
            "data": self.result.to_dict(),
            "insights": list(self.insights),
            "aiSummary": self.ai_summary,
            "metadata": dict(self.metadata),
            "rawResponse": self.raw_response
        }


# Design Rationale and Trade-offs:
#
# 1. Why coerce ids in QueryRequest.__post_init__?
#    - CLI and form input arrive as strings, tree payloads as ints
#    - Filtering is a plain membership test after coercion
#    - Trade-off: Invalid ids fail at construction with ValueError
#
# 2. Why frozen QueryRequest but mutable VersionedResult?
#    - A request is shared by all concurrent version pipelines
#    - Results get raw_response attached after processing
#    - Enhancement still returns a copy (with_changes) so local insights survive a failure
