"""
Tests for the Query Orchestrator using an in-memory query client.
"""

import asyncio

import pytest

from src.agents.enhancement import EnhancementAdapter, EnhancementError
from src.agents.insights import NO_MESSAGES_INSIGHT
from src.models.query import QueryType
from src.orchestrator import QueryOrchestrator, describe_response
from src.utils.query_client import QueryServiceError, TREE_BY_CHANNEL_AND_VERSION


class FakeClient:
    """Serves trees from a dict keyed by version, with optional delays."""

    def __init__(self, trees, delays=None, failing=()):
        self.trees = trees
        self.delays = delays or {}
        self.failing = set(failing)
        self.calls = []

    def url_for(self, endpoint):
        return f"https://query.example.test/{endpoint}"

    async def fetch_tree(self, channel_id, version):
        self.calls.append((channel_id, version))
        await asyncio.sleep(self.delays.get(version, 0))
        if version in self.failing:
            raise QueryServiceError(
                TREE_BY_CHANNEL_AND_VERSION,
                {"channelId": channel_id, "version": version},
                "API call failed: 503"
            )
        return {
            "channelId": channel_id,
            "version": version,
            "tree": self.trees[version],
            "metadata": {"executedAt": "2025-09-12T10:00:00Z", "operation": {"name": "query"}}
        }

    async def list_versions(self, channel_id):
        return [{"version": v} for v in sorted(self.trees)]


class FailingEnhancer:
    should_enhance = staticmethod(EnhancementAdapter.should_enhance)

    async def enhance(self, versioned, request):
        raise EnhancementError("LLM unavailable")


class StubEnhancer:
    should_enhance = staticmethod(EnhancementAdapter.should_enhance)

    async def enhance(self, versioned, request):
        return versioned.with_changes(
            ai_summary="Stub summary",
            metadata={**versioned.metadata, "enhanced": True}
        )


@pytest.fixture
def trees(make_tree, msg):
    base = [msg(1, "alice", 0), msg(2, "bob", 0), msg(1, "alice", 1)]
    return {
        1: make_tree(base),
        2: make_tree(base + [msg(2, "bob", 42)], topics={"42": {"name": "Bridge Fees"}}),
    }


@pytest.mark.asyncio
async def test_single_version_run(trees, make_request):
    orchestrator = QueryOrchestrator(FakeClient(trees))

    run = await orchestrator.execute(make_request(versions=(1,)))

    assert list(run.results) == [1]
    assert run.delta is None
    versioned = run.results[1]
    assert versioned.result.message_count == 3
    assert versioned.summary == "Users discussing 2 topics with 3 total messages"
    assert versioned.metadata["processing_method"] == "local"
    assert versioned.enhanced is False
    assert orchestrator.latest_run is run


@pytest.mark.asyncio
async def test_multi_version_run_builds_delta(trees, make_request):
    orchestrator = QueryOrchestrator(FakeClient(trees))

    run = await orchestrator.execute(make_request(versions=(1, 2)))

    assert set(run.results) == {1, 2}
    assert [t.topic_id for t in run.delta.delta.new_topics] == [42]
    assert run.delta.delta.new_topics[0].name == "Bridge Fees"
    assert run.to_dict()["delta"]["summary"]["messages"] == 1


@pytest.mark.asyncio
async def test_results_keyed_by_version_not_completion_order(trees, make_request):
    """Version 1 finishes last but still lands in its own slot."""
    orchestrator = QueryOrchestrator(FakeClient(trees, delays={1: 0.05}))

    run = await orchestrator.execute(make_request(versions=(1, 2)))

    assert run.results[1].version == 1
    assert run.results[1].result.message_count == 3
    assert run.results[2].result.message_count == 4
    assert [r.version for r in run.ordered_results()] == [1, 2]


@pytest.mark.asyncio
async def test_stale_run_does_not_replace_latest(trees, make_request):
    orchestrator = QueryOrchestrator(FakeClient(trees, delays={1: 0.05}))

    slow = asyncio.create_task(orchestrator.execute(make_request(versions=(1,))))
    await asyncio.sleep(0)
    fast = await orchestrator.execute(make_request(versions=(2,)))
    stale = await slow

    assert orchestrator.latest_run is fast
    assert stale.run_id < fast.run_id


@pytest.mark.asyncio
async def test_empty_tree(make_request):
    orchestrator = QueryOrchestrator(FakeClient({1: {"createdAt": "2025-09-12"}}))

    run = await orchestrator.execute(make_request())

    versioned = run.results[1]
    assert versioned.insights == [NO_MESSAGES_INSIGHT]
    assert versioned.result.message_count == 0
    assert versioned.result.topics == []


def test_process_tree_without_tree(make_request):
    orchestrator = QueryOrchestrator(FakeClient({}))

    versioned = orchestrator.process_tree(None, make_request(), 1)

    assert versioned.insights == ["No messages found in the tree data"]
    assert versioned.summary == "No data available for processing"


def test_process_tree_deterministic(trees, make_request):
    orchestrator = QueryOrchestrator(FakeClient(trees))
    request = make_request()

    first = orchestrator.process_tree(trees[1], request, 1)
    second = orchestrator.process_tree(trees[1], request, 1)

    assert first.insights == second.insights
    assert first.result.to_dict() == second.result.to_dict()


def test_process_tree_applies_user_filter(trees, make_request):
    orchestrator = QueryOrchestrator(FakeClient(trees))

    versioned = orchestrator.process_tree(trees[1], make_request(user_ids=(2,)), 1)

    assert versioned.result.message_count == 1
    assert versioned.result.active_users == 1


@pytest.mark.asyncio
async def test_upstream_failure_propagates(trees, make_request):
    orchestrator = QueryOrchestrator(FakeClient(trees, failing={2}))

    with pytest.raises(QueryServiceError, match="503"):
        await orchestrator.execute(make_request(versions=(1, 2)))

    assert orchestrator.latest_run is None


@pytest.mark.asyncio
async def test_enhancement_failure_falls_back(trees, make_request):
    orchestrator = QueryOrchestrator(FakeClient(trees), enhancer=FailingEnhancer())
    request = make_request(query_type=QueryType.CUSTOM_QUERY, question="What is trending?")

    run = await orchestrator.execute(request)

    versioned = run.results[1]
    assert versioned.ai_summary is None
    assert versioned.enhanced is False
    assert "Custom analysis for question: \"What is trending?\"" in versioned.insights


@pytest.mark.asyncio
async def test_enhancement_applied_to_custom_queries(trees, make_request):
    orchestrator = QueryOrchestrator(FakeClient(trees), enhancer=StubEnhancer())

    custom = await orchestrator.execute(
        make_request(query_type=QueryType.CUSTOM_QUERY, question="Who leads?")
    )
    overview = await orchestrator.execute(make_request())

    assert custom.results[1].ai_summary == "Stub summary"
    assert overview.results[1].ai_summary is None


@pytest.mark.asyncio
async def test_raw_response_excludes_tree(trees, make_request):
    orchestrator = QueryOrchestrator(FakeClient(trees))

    run = await orchestrator.execute(make_request())

    raw = run.results[1].raw_response
    assert raw["query"]["endpoint"] == TREE_BY_CHANNEL_AND_VERSION
    assert raw["query"]["parameters"] == {"channelId": 2148778849, "version": 1}
    assert raw["response"]["dataStructure"]["messageCount"] == 3
    assert raw["metadata"]["operation"] == "query"
    assert "tree" not in raw["response"]


def test_describe_response_tolerates_malformed_payload():
    raw = describe_response(
        {"tree": ["not", "a", "dict"], "metadata": "none"},
        TREE_BY_CHANNEL_AND_VERSION,
        "https://query.example.test/x",
        {"channelId": 1, "version": 1}
    )

    assert raw["response"]["dataStructure"]["messageCount"] == 0
    assert raw["metadata"]["operation"] == "N/A"


@pytest.mark.asyncio
async def test_custom_query_survives_out_of_range_timestamps(make_tree, msg, make_request):
    """Bad timestamps degrade the temporal answer instead of failing the run."""
    tree = make_tree([msg(1, "alice", 0, 1757599557000), msg(2, "bob", 0, "inf")])
    orchestrator = QueryOrchestrator(FakeClient({1: tree}))

    run = await orchestrator.execute(
        make_request(query_type=QueryType.CUSTOM_QUERY, question="When was this recent?")
    )

    assert run.results[1].insights[-1] == (
        "Temporal analysis: 2 messages available for time-based analysis"
    )


@pytest.mark.asyncio
async def test_topic_names_shared_across_versions(trees, make_request):
    """Names extracted from one version resolve in later runs."""
    orchestrator = QueryOrchestrator(FakeClient(trees))

    await orchestrator.execute(make_request(versions=(2,)))

    assert orchestrator.resolver.resolve(42) == "Bridge Fees"


# Run tests if executed directly
if __name__ == "__main__":
    pytest.main([__file__, "-v"])
