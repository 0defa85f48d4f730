"""
Insight Generator.

Turns aggregated statistics into an ordered list of human-readable
findings. Order is part of the output contract.
"""

import logging
from typing import List, Optional, Tuple

from src.agents.custom_query import AnalysisContext, answer_question
from src.models.message import Message
from src.models.query import QueryRequest, QueryType
from src.models.topic import AggregatedResult, Contributor
from src.registry.topic_names import TopicNameResolver
from src.utils.stats import safe_average

logger = logging.getLogger(__name__)

NO_MESSAGES_INSIGHT = "No messages found in the tree data"
NO_TOPICS_INSIGHT = "No topics identified in the conversation data"
NO_QUESTION_INSIGHT = "Custom query selected but no question provided"


class InsightGenerator:
    """
    Generates base insights, then any query-type-specific block.

    Pure: the same messages, result and request always produce the same
    list of strings.
    """

    def __init__(self, resolver: TopicNameResolver):
        """
        Initialize insight generator.

        Args:
            resolver: Session topic name resolver (used by custom analyzers)
        """
        self.resolver = resolver

    def generate(
        self,
        messages: List[Message],
        result: AggregatedResult,
        request: QueryRequest
    ) -> List[str]:
        """
        Build the insight list for one version.

        Args:
            messages: Filtered messages the result was built from
            result: Aggregated statistics
            request: The originating query

        Returns:
            Ordered insight strings
        """
        if not result.topics:
            return [NO_TOPICS_INSIGHT]

        insights = self._base_insights(messages, result)
        insights.extend(self._query_insights(messages, result, request))

        logger.debug(f"Generated {len(insights)} insights for {request.query_type.value}")
        return insights

    def _base_insights(self, messages: List[Message], result: AggregatedResult) -> List[str]:
        top = result.topics[0]
        insights = [
            f"Most discussed: \"{top.name}\" with {top.message_count} messages "
            f"from {top.contributor_count} contributors",
            f"{result.topic_count} distinct topics identified across all conversations",
            f"{result.active_users} users actively participating with an average of "
            f"{safe_average(len(messages), result.active_users)} messages each",
            f"Topic engagement: Average "
            f"{safe_average(len(messages), result.topic_count)} messages per topic"
        ]

        leader = self.most_active_contributor(result)
        if leader:
            contributor, total, topic_count = leader
            insights.append(
                f"Most active contributor: {contributor.username} "
                f"({total} messages across {topic_count} topics)"
            )
        return insights

    @staticmethod
    def most_active_contributor(
        result: AggregatedResult
    ) -> Optional[Tuple[Contributor, int, int]]:
        """
        Find the user with the most messages summed over all topics.

        Returns:
            (contributor, total messages, topics contributed to), or None
            when no topic has contributors. Ties go to the user seen first.
        """
        totals = {}
        for topic in result.topics:
            for contributor in topic.contributors:
                entry = totals.setdefault(contributor.user_id, [contributor, 0, 0])
                entry[1] += contributor.message_count
                entry[2] += 1

        if not totals:
            return None

        contributor, total, topic_count = max(totals.values(), key=lambda e: e[1])
        return contributor, total, topic_count

    def _query_insights(
        self,
        messages: List[Message],
        result: AggregatedResult,
        request: QueryRequest
    ) -> List[str]:
        query_type = request.query_type

        if query_type is QueryType.CUSTOM_QUERY:
            if not request.custom_question:
                return [NO_QUESTION_INSIGHT]
            context = AnalysisContext(
                messages=messages,
                result=result,
                resolver=self.resolver,
                question=request.custom_question
            )
            return [f"Custom analysis for question: \"{request.custom_question}\""] + answer_question(context)

        if query_type is QueryType.USER_ANALYSIS:
            return ["Analysis focused on single user behavior and topic preferences"]
        if query_type is QueryType.USERS_ANALYSIS:
            selected = len(request.user_ids) or result.active_users
            return [f"Comparative analysis across {selected} selected users"]
        if query_type is QueryType.TIME_WINDOW:
            return ["Time-based analysis showing topic trends and activity patterns"]
        if query_type is QueryType.VERSION_EVOLUTION:
            return ["Evolution analysis tracking topic changes over time"]
        return []


# Design Rationale and Trade-offs:
#
# 1. Why plain strings instead of structured insight objects?
#    - The CLI, JSON output and the Gemini prompt all consume text
#    - Order is the contract, so a list is enough
#    - Trade-off: Callers cannot filter insights by kind
#
# 2. Why sum a contributor's messages across all topics?
#    - The top contributor of the top topic is not the most active user overall
