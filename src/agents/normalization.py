"""
Tree Normalizer.

Validates the raw topic tree returned by the query service and flattens
its message mapping into an ordered list of Message objects, applying
the optional user filter.
"""

import logging
from typing import Any, FrozenSet, List, Mapping

from src.models.message import Message

logger = logging.getLogger(__name__)


class TreeNormalizer:
    """
    Converts an untrusted topic tree into Message objects.

    Never raises on malformed input: a missing tree or message map
    yields an empty list and the caller reports "no data".
    """

    @staticmethod
    def has_messages(tree: Any) -> bool:
        """True if the tree carries a message mapping at all."""
        return isinstance(tree, Mapping) and isinstance(tree.get("messages"), Mapping)

    def normalize(
        self,
        tree: Any,
        user_ids: FrozenSet[int] = frozenset()
    ) -> List[Message]:
        """
        Flatten and filter the tree's messages.

        Args:
            tree: Raw tree ({"messages": {...}, "topics": {...}}), may be None
            user_ids: Keep only messages from these users (empty = all users)

        Returns:
            Messages in the mapping's insertion order
        """
        if not self.has_messages(tree):
            logger.warning("Tree has no message mapping, nothing to normalize")
            return []

        messages = []
        skipped = 0
        for message_id, data in tree["messages"].items():
            if not isinstance(data, Mapping):
                skipped += 1
                continue
            messages.append(Message.from_dict(message_id, data))

        if skipped:
            logger.warning(f"Skipped {skipped} malformed message entries")

        if user_ids:
            messages = self._filter_by_users(messages, user_ids)
            logger.info(
                f"Applied user filtering: {len(messages)} messages "
                f"for users {sorted(user_ids)}"
            )
        else:
            logger.info(f"No user filtering applied: {len(messages)} total messages")

        return messages

    @staticmethod
    def _filter_by_users(messages: List[Message], user_ids: FrozenSet[int]) -> List[Message]:
        return [m for m in messages if m.from_user_id in user_ids]


# Design Rationale and Trade-offs:
#
# 1. Why return an empty list instead of raising on malformed trees?
#    - The service payload is untrusted
#    - The orchestrator turns "no messages" into a normal result with one insight
#    - Trade-off: Malformed entries are only visible in the warning log
#
# 2. Why filter users locally instead of using the user endpoints?
#    - One code path for every query type
#    - The same tree can be re-analyzed with a different filter
#    - Trade-off: Full trees are always downloaded
