"""
Unit tests for the Insight Generator.
"""

import pytest

from src.agents.aggregation import TopicAggregator
from src.agents.insights import (
    NO_QUESTION_INSIGHT,
    NO_TOPICS_INSIGHT,
    InsightGenerator
)
from src.agents.normalization import TreeNormalizer
from src.models.query import QueryType


@pytest.fixture
def generate(resolver, make_request):
    """Run normalize -> aggregate -> insights for a tree."""
    normalizer = TreeNormalizer()
    aggregator = TopicAggregator(resolver)
    generator = InsightGenerator(resolver)

    def _generate(tree, **request_args):
        request = make_request(**request_args)
        messages = normalizer.normalize(tree, request.user_ids)
        result = aggregator.aggregate(messages)
        return generator.generate(messages, result, request)
    return _generate


BASE_INSIGHTS = [
    "Most discussed: \"General Discussion\" with 2 messages from 2 contributors",
    "2 distinct topics identified across all conversations",
    "2 users actively participating with an average of 2 messages each",
    "Topic engagement: Average 2 messages per topic",
    "Most active contributor: @alice (2 messages across 2 topics)",
]


def test_channel_query_insights(generate, round_trip_tree):
    """Channel queries get exactly the five base insights, in order."""
    insights = generate(round_trip_tree)

    assert insights == BASE_INSIGHTS


def test_channel_query_single_message(generate, make_tree, msg):
    insights = generate(make_tree([msg(1, "alice", 0)]))

    assert len(insights) == 5
    assert insights[-1] == "Most active contributor: @alice (1 messages across 1 topics)"


@pytest.mark.parametrize("query_type,sentence", [
    (QueryType.USER_ANALYSIS, "Analysis focused on single user behavior and topic preferences"),
    (QueryType.TIME_WINDOW, "Time-based analysis showing topic trends and activity patterns"),
    (QueryType.VERSION_EVOLUTION, "Evolution analysis tracking topic changes over time"),
])
def test_query_type_sentence(generate, round_trip_tree, query_type, sentence):
    insights = generate(round_trip_tree, query_type=query_type)

    assert insights[:5] == BASE_INSIGHTS
    assert insights[5:] == [sentence]


def test_users_analysis_counts_selected_users(generate, round_trip_tree):
    insights = generate(round_trip_tree, query_type=QueryType.USERS_ANALYSIS, user_ids=(1, 2))

    assert insights[-1] == "Comparative analysis across 2 selected users"


def test_users_analysis_without_filter_uses_active_users(generate, make_tree, msg):
    tree = make_tree([msg(1, "alice", 0), msg(2, "bob", 0), msg(3, "carol", 1)])

    insights = generate(tree, query_type=QueryType.USERS_ANALYSIS)

    assert insights[-1] == "Comparative analysis across 3 selected users"


def test_no_topics(generate, make_tree, msg):
    """Messages exist but none is assigned to a topic."""
    tree = make_tree([msg(1, "alice", -1), msg(2, "bob")])

    assert generate(tree) == [NO_TOPICS_INSIGHT]


def test_custom_query_without_question(generate, round_trip_tree):
    insights = generate(round_trip_tree, query_type=QueryType.CUSTOM_QUERY, question="   ")

    assert insights == BASE_INSIGHTS + [NO_QUESTION_INSIGHT]


def test_custom_query_appends_router_output(generate, round_trip_tree):
    insights = generate(
        round_trip_tree,
        query_type=QueryType.CUSTOM_QUERY,
        question="What is trending?"
    )

    assert insights[:5] == BASE_INSIGHTS
    assert insights[5] == "Custom analysis for question: \"What is trending?\""
    assert insights[6] == "Most trending topic: \"General Discussion\" with 2 recent messages"


def test_no_contributor_line_without_users(generate, make_tree, msg):
    """Topic messages without senders give zero averages and no leader."""
    tree = make_tree([msg(topic=0), msg(topic=0)])

    insights = generate(tree)

    assert "0 users actively participating with an average of 0 messages each" in insights
    assert not any(i.startswith("Most active contributor") for i in insights)


def test_most_active_contributor_sums_across_topics(resolver, make_tree, msg):
    """bob leads no single topic but has the most messages overall."""
    tree = make_tree([
        msg(1, "alice", 0),
        msg(1, "alice", 0),
        msg(1, "alice", 0),
        msg(2, "bob", 0),
        msg(2, "bob", 1),
        msg(2, "bob", 2),
        msg(2, "bob", 3),
    ])
    result = TopicAggregator(resolver).aggregate(TreeNormalizer().normalize(tree))

    contributor, total, topic_count = InsightGenerator.most_active_contributor(result)

    assert contributor.username == "@bob"
    assert total == 4
    assert topic_count == 4


def test_deterministic(generate, round_trip_tree):
    assert generate(round_trip_tree) == generate(round_trip_tree)


# Run tests if executed directly
if __name__ == "__main__":
    pytest.main([__file__, "-v"])
