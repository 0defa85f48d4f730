"""
Topic Name Resolver - session cache of topic display names.

Names come from the tree's topic definitions when present, then from a
fixed fallback table, then from a generated placeholder.
"""

import logging
from typing import Any, Dict, Mapping

from src.models.message import coerce_int

logger = logging.getLogger(__name__)


FALLBACK_TOPIC_NAMES = {
    0: "General Discussion",
    1: "Technical Implementation",
    2: "Community Governance",
    3: "Market Analysis",
    4: "Product Features",
    5: "DeFi Protocols",
    6: "Security & Audits",
    7: "Token Economics",
    8: "Development Updates",
    9: "User Support"
}


class TopicNameResolver:
    """
    Maps topic ids to display names for the lifetime of a session.

    The cache only grows: names extracted from later trees are added,
    nothing is evicted. Concurrent version pipelines share one instance;
    since writes are additive the cache converges regardless of order.
    """

    def __init__(self):
        self._names: Dict[int, str] = {}

    def __len__(self) -> int:
        return len(self._names)

    def extract_names(self, tree: Any) -> int:
        """
        Record topic names defined in a tree.

        Args:
            tree: Raw topic tree (untrusted). Topics may be a mapping of
                id -> definition, or a list of definitions carrying an "id".

        Returns:
            Number of names recorded from this tree
        """
        if not isinstance(tree, Mapping):
            return 0

        topics = tree.get("topics")
        if isinstance(topics, Mapping):
            entries = list(topics.items())
        elif isinstance(topics, list):
            entries = [
                (item.get("id"), item) for item in topics
                if isinstance(item, Mapping)
            ]
        else:
            return 0

        recorded = 0
        for raw_id, definition in entries:
            topic_id = coerce_int(raw_id)
            if topic_id is None or not isinstance(definition, Mapping):
                continue

            name = definition.get("name") or definition.get("title")
            if not name:
                continue

            self._names[topic_id] = str(name)
            recorded += 1
            logger.debug(f"Found topic {topic_id}: {name}")

        logger.info(f"Extracted {recorded} topic names from tree data ({len(self._names)} cached)")
        return recorded

    def resolve(self, topic_id: int) -> str:
        """Return the display name for topic_id."""
        if topic_id in self._names:
            return self._names[topic_id]
        return FALLBACK_TOPIC_NAMES.get(topic_id, f"Topic {topic_id}")

    def known_names(self) -> Dict[int, str]:
        """Copy of the names cached so far."""
        return dict(self._names)


# Design Rationale and Trade-offs:
#
# 1. Why an append-only cache?
#    - Concurrent version pipelines write to it in any order
#    - Names from one version resolve topic ids seen in another
#    - Trade-off: A renamed topic keeps its latest extracted name for every version
#
# 2. Why a fixed fallback table for ids 0-9?
#    - Many trees ship without topic definitions
#    - Readable names for the common low ids, "Topic {id}" for the rest
