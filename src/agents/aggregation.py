"""
Topic Aggregator.

Builds per-topic and per-user statistics from a filtered message list.
"""

import logging
from collections import Counter
from typing import Dict, List, Set

from src.models.message import Message
from src.models.topic import AggregatedResult, Contributor, TopicStats, UserEngagement
from src.registry.topic_names import TopicNameResolver
from src.utils.stats import safe_average

logger = logging.getLogger(__name__)


class TopicAggregator:
    """
    Counts messages per topic and per user.

    Sorting relies on Python's stable sort: entries with equal counts
    keep the order in which they were first seen.
    """

    def __init__(self, resolver: TopicNameResolver, popularity_limit: int = 5):
        """
        Initialize aggregator.

        Args:
            resolver: Session topic name resolver
            popularity_limit: Number of topics in topics_by_popularity
        """
        self.resolver = resolver
        self.popularity_limit = popularity_limit

    def aggregate(self, messages: List[Message]) -> AggregatedResult:
        """
        Aggregate messages into topic and user statistics.

        Args:
            messages: Normalized (and possibly user-filtered) messages

        Returns:
            AggregatedResult; all zeros for an empty list
        """
        user_names: Dict[int, str] = {}
        user_message_counts: Counter = Counter()
        user_topics: Dict[int, Set[int]] = {}
        topic_message_counts: Counter = Counter()
        topic_users: Dict[int, Counter] = {}

        for message in messages:
            user_id = message.from_user_id

            if user_id is not None:
                user_message_counts[user_id] += 1
                if message.from_user_name:
                    user_names[user_id] = message.from_user_name

            if not message.has_topic:
                continue

            topic_id = message.topic_id
            topic_message_counts[topic_id] += 1
            per_topic = topic_users.setdefault(topic_id, Counter())

            if user_id is not None:
                per_topic[user_id] += 1
                user_topics.setdefault(user_id, set()).add(topic_id)

        topics = [
            self._build_topic(topic_id, count, topic_users[topic_id], user_names)
            for topic_id, count in topic_message_counts.items()
        ]
        topics = sorted(topics, key=lambda t: t.message_count, reverse=True)

        active_users = len(user_message_counts)
        total_topic_memberships = sum(len(t) for t in user_topics.values())

        result = AggregatedResult(
            message_count=len(messages),
            active_users=active_users,
            topics=topics,
            user_engagement=UserEngagement(
                average_messages_per_user=safe_average(len(messages), active_users),
                average_topics_per_user=safe_average(total_topic_memberships, active_users)
            ),
            user_names=user_names,
            popularity_limit=self.popularity_limit
        )

        logger.info(
            f"Aggregated {result.message_count} messages into "
            f"{result.topic_count} topics from {result.active_users} users"
        )
        return result

    def _build_topic(
        self,
        topic_id: int,
        message_count: int,
        users: Counter,
        user_names: Dict[int, str]
    ) -> TopicStats:
        contributors = [
            Contributor(
                user_id=user_id,
                username=f"@{user_names.get(user_id, f'User {user_id}')}",
                message_count=count
            )
            for user_id, count in users.items()
        ]
        contributors = sorted(contributors, key=lambda c: c.message_count, reverse=True)

        return TopicStats(
            topic_id=topic_id,
            name=self.resolver.resolve(topic_id),
            message_count=message_count,
            contributors=contributors
        )

    @staticmethod
    def build_summary(result: AggregatedResult) -> str:
        """One-line description of the result."""
        return (
            f"Users discussing {result.topic_count} topics "
            f"with {result.message_count} total messages"
        )


# Design Rationale and Trade-offs:
#
# 1. Why a single pass with Counters?
#    - Topic counts, contributor counts and user counts come from one loop
#    - Counter keeps first-seen order, which the stable sort preserves for ties
#
# 2. Why count unassigned messages in message_count but not in topics?
#    - message_count is the size of the (filtered) conversation
#    - Topic statistics only describe classified messages
#    - Trade-off: Topic counts can sum to less than message_count
#
# 3. Why round averages half up?
#    - Displayed values match the web dashboard for .5 cases
