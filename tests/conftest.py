"""
Shared fixtures for TopicLens tests.
"""

import pytest

from src.agents.aggregation import TopicAggregator
from src.agents.normalization import TreeNormalizer
from src.models.query import QueryRequest, QueryType, VersionedResult
from src.registry.topic_names import TopicNameResolver


def _message(user_id=None, name=None, topic=None, timestamp=None):
    data = {}
    if user_id is not None:
        data["fromUserId"] = user_id
    if name is not None:
        data["fromUserName"] = name
    if topic is not None:
        data["topicId"] = topic
    if timestamp is not None:
        data["timestamp"] = timestamp
    return data


@pytest.fixture
def msg():
    """Build one raw message dict: msg(user_id, name, topic, timestamp)."""
    return _message


@pytest.fixture
def make_tree():
    """Build a raw tree from a list of raw message dicts (ids m1, m2, ...)."""
    def _make(messages, topics=None):
        tree = {"messages": {f"m{i + 1}": m for i, m in enumerate(messages)}}
        if topics is not None:
            tree["topics"] = topics
        return tree
    return _make


@pytest.fixture
def round_trip_tree(make_tree):
    """alice and bob in topic 0, alice again in topic 1."""
    return make_tree([
        _message(1, "alice", 0),
        _message(2, "bob", 0),
        _message(1, "alice", 1),
    ])


@pytest.fixture
def resolver():
    return TopicNameResolver()


@pytest.fixture
def make_request():
    def _make(query_type=QueryType.CHANNEL_QUERY, versions=(1,), user_ids=(), question=""):
        return QueryRequest(
            query_type=query_type,
            dataset_id="2148778849",
            versions=versions,
            user_ids=frozenset(user_ids),
            custom_question=question
        )
    return _make


@pytest.fixture
def make_versioned(resolver):
    """Aggregate a raw tree into a VersionedResult for the given version."""
    normalizer = TreeNormalizer()
    aggregator = TopicAggregator(resolver)

    def _make(tree, version):
        result = aggregator.aggregate(normalizer.normalize(tree))
        return VersionedResult(
            version=version,
            result=result,
            insights=[],
            summary=aggregator.build_summary(result)
        )
    return _make
