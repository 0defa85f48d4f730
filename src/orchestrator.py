"""
Query Orchestrator.

Coordinates fetching, local processing, optional enhancement and delta
analysis for every version of a query.
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from src.agents.aggregation import TopicAggregator
from src.agents.delta import DeltaEngine, DeltaReport
from src.agents.enhancement import EnhancementAdapter, EnhancementError
from src.agents.insights import NO_MESSAGES_INSIGHT, InsightGenerator
from src.agents.normalization import TreeNormalizer
from src.models.query import QueryRequest, VersionedResult
from src.models.topic import AggregatedResult
from src.registry.topic_names import TopicNameResolver
from src.utils.query_client import TREE_BY_CHANNEL_AND_VERSION, TopicTreeClient
import config.settings as settings

logger = logging.getLogger(__name__)


@dataclass
class QueryRun:
    """All results of one executed query, keyed by version."""
    run_id: int
    request: QueryRequest
    results: Dict[int, VersionedResult] = field(default_factory=dict)
    delta: Optional[DeltaReport] = None

    def ordered_results(self) -> List[VersionedResult]:
        """Results in the order the versions were requested."""
        return [self.results[v] for v in self.request.versions if v in self.results]

    def to_dict(self) -> dict:
        return {
            "runId": self.run_id,
            "dataset": self.request.dataset_id,
            "queryType": self.request.query_type.value,
            "results": [r.to_dict() for r in self.ordered_results()],
            "delta": self.delta.to_dict() if self.delta else None
        }


def describe_response(payload: dict, endpoint: str, url: str, params: Dict[str, Any]) -> dict:
    """Summary of a service response for display. Never includes the tree."""
    tree = payload.get("tree")
    if not isinstance(tree, dict):
        tree = {}
    metadata = payload.get("metadata")
    if not isinstance(metadata, dict):
        metadata = {}

    def _size(value: Any) -> int:
        return len(value) if isinstance(value, (dict, list)) else 0

    operation = metadata.get("operation")
    raft = metadata.get("raft")
    return {
        "query": {
            "endpoint": endpoint,
            "url": url,
            "parameters": dict(params)
        },
        "response": {
            "status": "success",
            "channelId": payload.get("channelId"),
            "version": payload.get("version"),
            "createdAt": tree.get("createdAt"),
            "dataStructure": {
                "messageCount": _size(tree.get("messages")),
                "topicCount": _size(tree.get("topics")),
                "conversationThreads": _size(tree.get("conversationThreads")),
                "rootMessageIds": _size(tree.get("rootMessageIds"))
            }
        },
        "metadata": {
            "processingTime": metadata.get("executedAt", "N/A"),
            "operation": operation.get("name", "N/A") if isinstance(operation, dict) else "N/A",
            "raftId": raft.get("id", "N/A") if isinstance(raft, dict) else "N/A"
        }
    }


class QueryOrchestrator:
    """
    Runs the analysis pipeline for a query.

    Per version:
    1. Fetch tree → 2. Normalize/filter → 3. Extract topic names
    → 4. Aggregate → 5. Insights → 6. Optional enhancement

    After all versions: Delta analysis (2+ versions)

    Version pipelines run concurrently. Each writes only to its own
    version's slot; the shared name resolver is append-only.
    """

    def __init__(
        self,
        client: TopicTreeClient,
        enhancer: Optional[EnhancementAdapter] = None,
        resolver: Optional[TopicNameResolver] = None
    ):
        """
        Initialize orchestrator.

        Args:
            client: Query service client
            enhancer: Optional LLM enhancement adapter
            resolver: Session topic name resolver (created if omitted)
        """
        self.client = client
        self.enhancer = enhancer
        self.resolver = resolver or TopicNameResolver()

        self.normalizer = TreeNormalizer()
        self.aggregator = TopicAggregator(self.resolver, popularity_limit=settings.TOP_TOPICS_LIMIT)
        self.insight_generator = InsightGenerator(self.resolver)
        self.delta_engine = DeltaEngine()

        self._run_ids = itertools.count(1)
        self._active_run_id = 0
        self.latest_run: Optional[QueryRun] = None

        logger.info(f"Orchestrator initialized (enhancement={'on' if enhancer else 'off'})")

    def _metadata(self, request: QueryRequest) -> dict:
        return {
            "query_type": request.query_type.value,
            "processing_method": "local",
            "enhanced": False,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    def process_tree(self, tree: Any, request: QueryRequest, version: int) -> VersionedResult:
        """
        Run the local pipeline over one tree.

        Never raises on malformed trees; a tree without messages yields
        an empty result with a single "no messages" insight.
        """
        if not self.normalizer.has_messages(tree):
            logger.warning(f"No messages in tree for version {version}")
            return VersionedResult(
                version=version,
                result=AggregatedResult.empty(),
                insights=[NO_MESSAGES_INSIGHT],
                summary="No data available for processing",
                metadata=self._metadata(request)
            )

        self.resolver.extract_names(tree)
        messages = self.normalizer.normalize(tree, request.user_ids)
        result = self.aggregator.aggregate(messages)
        insights = self.insight_generator.generate(messages, result, request)

        return VersionedResult(
            version=version,
            result=result,
            insights=insights,
            summary=self.aggregator.build_summary(result),
            metadata=self._metadata(request)
        )

    async def run_version(self, request: QueryRequest, version: int) -> VersionedResult:
        """
        Fetch and analyze one version.

        Raises:
            QueryServiceError: If the tree cannot be fetched
        """
        params = {"channelId": request.channel_id, "version": version}
        payload = await self.client.fetch_tree(request.channel_id, version)

        versioned = self.process_tree(payload.get("tree"), request, version)

        if self.enhancer and self.enhancer.should_enhance(request):
            try:
                versioned = await self.enhancer.enhance(versioned, request)
            except EnhancementError as e:
                logger.warning(f"Enhancement failed for version {version}, using local insights: {e}")

        versioned.raw_response = describe_response(
            payload,
            TREE_BY_CHANNEL_AND_VERSION,
            self.client.url_for(TREE_BY_CHANNEL_AND_VERSION),
            params
        )
        logger.info(f"Version {version} results loaded")
        return versioned

    async def execute(self, request: QueryRequest) -> QueryRun:
        """
        Execute a query against all requested versions.

        Returns:
            QueryRun with one result per version and, for 2+ versions,
            a delta report

        Raises:
            QueryServiceError: If any version cannot be fetched
        """
        run = QueryRun(run_id=next(self._run_ids), request=request)
        self._active_run_id = run.run_id
        logger.info(
            f"Starting run {run.run_id}: {request.query_type.value} on dataset "
            f"{request.dataset_id}, versions {list(request.versions)}"
        )

        results = await asyncio.gather(
            *(self.run_version(request, version) for version in request.versions)
        )
        for versioned in results:
            run.results[versioned.version] = versioned

        if len(run.results) > 1:
            run.delta = self.delta_engine.analyze(list(run.results.values()))

        if run.run_id == self._active_run_id:
            self.latest_run = run
        else:
            logger.warning(
                f"Run {run.run_id} finished after newer run {self._active_run_id} started, "
                "not replacing latest results"
            )

        return run

    async def list_versions(self, channel_id: int) -> List[dict]:
        return await self.client.list_versions(channel_id)

    async def list_users(self, channel_id: int) -> List[dict]:
        return await self.client.list_users(channel_id)


# Design Rationale and Trade-offs:
#
# 1. Why key results by version instead of completion order?
#    - asyncio.gather tasks finish in any order
#    - Each pipeline writes only its own version's slot
#    - ordered_results() restores the requested order for display
#
# 2. Why a run id guard on latest_run?
#    - A slow older query must not overwrite a newer one's results
#    - Trade-off: The stale run is still returned to its own caller
#
# 3. Why fail the whole run when one version cannot be fetched?
#    - A delta report with a missing version would be misleading
#    - Trade-off: One bad version hides the others' results
