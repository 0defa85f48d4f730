"""
Message data model.

Represents a single message from a topic tree returned by the query service.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

logger = logging.getLogger(__name__)

NO_TOPIC = -1  # Sentinel used by the service for unassigned messages


def coerce_int(value: Any) -> Optional[int]:
    """
    Convert an external id to int.

    Accepts ints and digit strings (optionally signed). Booleans, floats
    with a fractional part and anything else become None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        text = value.strip()
        if text.lstrip("-").isdigit():
            return int(text)
    return None


def _coerce_timestamp(value: Any) -> Optional[float]:
    """Unix seconds, or None for anything datetime cannot represent."""
    if value is None or isinstance(value, bool):
        return None
    try:
        timestamp = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(timestamp) or timestamp <= 0:
        return None

    try:
        datetime.fromtimestamp(timestamp, tz=timezone.utc)
    except (OverflowError, ValueError, OSError):
        logger.debug(f"Dropping out-of-range timestamp {value!r}")
        return None
    return timestamp


@dataclass(frozen=True)
class Message:
    """
    A message in the topic tree.
    Ids are normalized to int at construction; the instance is immutable.
    """
    message_id: str
    from_user_id: Optional[int] = None
    from_user_name: Optional[str] = None
    topic_id: Optional[int] = None  # -1 means unassigned
    timestamp: Optional[float] = None  # Unix seconds

    @property
    def has_topic(self) -> bool:
        return self.topic_id is not None and self.topic_id != NO_TOPIC

    @classmethod
    def from_dict(cls, message_id: Any, data: dict) -> "Message":
        """Create Message from a raw tree entry."""
        user_name = data.get("fromUserName")
        if user_name is not None and not isinstance(user_name, str):
            user_name = str(user_name)

        return cls(
            message_id=str(data.get("id", message_id)),
            from_user_id=coerce_int(data.get("fromUserId")),
            from_user_name=user_name or None,
            topic_id=coerce_int(data.get("topicId")),
            timestamp=_coerce_timestamp(data.get("timestamp"))
        )
