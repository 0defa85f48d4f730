"""
Topic data model.

Represents per-topic statistics and the aggregated result of one
topic tree (one dataset version).
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class Contributor:
    """A user who sent at least one message within a topic."""
    user_id: int
    username: str  # Always "@"-prefixed
    message_count: int

    def to_dict(self) -> dict:
        return {
            "userId": self.user_id,
            "username": self.username,
            "messageCount": self.message_count
        }


@dataclass
class TopicStats:
    """
    Aggregated statistics for one topic.
    Contributors are sorted descending by message count.
    """
    topic_id: int
    name: str
    message_count: int
    contributors: List[Contributor] = field(default_factory=list)

    @property
    def contributor_count(self) -> int:
        return len(self.contributors)

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        return {
            "id": self.topic_id,
            "name": self.name,
            "messageCount": self.message_count,
            "contributorCount": self.contributor_count,
            "contributors": [c.to_dict() for c in self.contributors]
        }


@dataclass
class UserEngagement:
    average_messages_per_user: int = 0
    average_topics_per_user: int = 0

    def to_dict(self) -> dict:
        return {
            "averageMessagesPerUser": self.average_messages_per_user,
            "averageTopicsPerUser": self.average_topics_per_user
        }


@dataclass
class AggregatedResult:
    """
    Statistics derived from one (possibly user-filtered) topic tree.

    Messages without a topic count toward message_count and users,
    but never appear in topics.
    """
    message_count: int = 0
    active_users: int = 0
    topics: List[TopicStats] = field(default_factory=list)
    user_engagement: UserEngagement = field(default_factory=UserEngagement)
    user_names: Dict[int, str] = field(default_factory=dict)  # user_id -> bare username
    popularity_limit: int = 5

    @property
    def topic_count(self) -> int:
        return len(self.topics)

    @property
    def topics_by_popularity(self) -> List[TopicStats]:
        return self.topics[:self.popularity_limit]

    @property
    def most_discussed_topic(self) -> Optional[TopicStats]:
        return self.topics[0] if self.topics else None

    def get_topic(self, topic_id: int) -> Optional[TopicStats]:
        for topic in self.topics:
            if topic.topic_id == topic_id:
                return topic
        return None

    @classmethod
    def empty(cls) -> "AggregatedResult":
        """Well-formed result for trees with no messages."""
        return cls()

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        most_discussed = self.most_discussed_topic
        return {
            "messageCount": self.message_count,
            "topicCount": self.topic_count,
            "activeUsers": self.active_users,
            "topics": [t.to_dict() for t in self.topics],
            "topicsByPopularity": [t.to_dict() for t in self.topics_by_popularity],
            "mostDiscussedTopic": most_discussed.to_dict() if most_discussed else None,
            "userEngagement": self.user_engagement.to_dict()
        }


# Design Rationale and Trade-offs:
#
# 1. Why camelCase keys in to_dict?
#    - JSON output matches the field names of the query service payloads
#    - Python attributes stay snake_case
#
# 2. Why store only contributors, not a separate contributor count?
#    - contributor_count is derived, so it cannot drift from the list
#    - Trade-off: len() on every access, negligible for topic-sized lists
#
# 3. Why keep user_names on AggregatedResult?
#    - Custom question analyzers match usernames mentioned in the question
#    - Trade-off: Slightly larger result object, excluded from to_dict
