"""
Topic tree query client.

Async HTTP client for the remote query service that serves topic trees
per channel and version.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

import httpx

from src.models.message import coerce_int

logger = logging.getLogger(__name__)

TREE_BY_CHANNEL_AND_VERSION = "get_topic_tree_by_channel_and_version"
TREE_BY_CHANNEL = "get_topic_tree_by_channel"
TREE_BY_CHANNEL_AND_USER = "get_topic_tree_by_channel_and_user"
TREE_BY_CHANNEL_AND_USERS = "get_topic_tree_by_channel_and_users"
VERSIONS_BY_CHANNEL = "get_topic_tree_versions_by_channel"


class QueryServiceError(Exception):
    """The query service failed or returned an unusable payload."""

    def __init__(self, endpoint: str, params: Dict[str, Any], message: str):
        self.endpoint = endpoint
        self.params = params
        super().__init__(f"{endpoint} {params}: {message}")


class TopicTreeClient:
    """
    Thin wrapper around the query service endpoints.

    Each call is POST {base_url}/{endpoint} with body {"params": {...}}.
    Responses nest their payload under result.result.data on some
    deployments and under result on others; both are unwrapped.
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize client.

        Args:
            base_url: Query service base URL (without endpoint)
            timeout_seconds: Per-request timeout
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._client = httpx.AsyncClient(timeout=timeout_seconds, transport=transport)

    async def __aenter__(self) -> "TopicTreeClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def url_for(self, endpoint: str) -> str:
        return f"{self.base_url}/{endpoint}"

    async def call(self, endpoint: str, params: Dict[str, Any]) -> Any:
        """
        Call an endpoint and return its unwrapped payload.

        Raises:
            QueryServiceError: On transport errors, non-2xx status,
                invalid JSON, or an error field in the body
        """
        url = self.url_for(endpoint)
        logger.info(f"API call: {endpoint} {params}")

        try:
            response = await self._client.post(url, json={"params": params})
        except httpx.HTTPError as e:
            raise QueryServiceError(endpoint, params, f"request failed: {e}") from e

        if response.is_error:
            raise QueryServiceError(
                endpoint, params,
                f"API call failed: {response.status_code} {response.reason_phrase} - {response.text}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise QueryServiceError(endpoint, params, f"invalid JSON response: {e}") from e

        if isinstance(data, dict) and data.get("error"):
            error = data["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise QueryServiceError(endpoint, params, message or "API returned an error")

        return self._unwrap(data)

    @staticmethod
    def _unwrap(data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        result = data.get("result")
        if isinstance(result, dict):
            inner = result.get("result")
            if isinstance(inner, dict) and inner.get("data") is not None:
                return inner["data"]
            return result
        return result if result else data

    async def fetch_tree(self, channel_id: int, version: int) -> dict:
        """
        Fetch the topic tree of one channel version.

        Returns:
            The service payload ({channelId, version, tree: {...}})

        Raises:
            QueryServiceError: If the payload carries no tree
        """
        params = {"channelId": channel_id, "version": version}
        payload = await self.call(TREE_BY_CHANNEL_AND_VERSION, params)
        return self._require_tree(TREE_BY_CHANNEL_AND_VERSION, params, payload)

    async def fetch_latest_tree(self, channel_id: int) -> dict:
        params = {"channelId": channel_id}
        payload = await self.call(TREE_BY_CHANNEL, params)
        return self._require_tree(TREE_BY_CHANNEL, params, payload)

    async def fetch_tree_for_users(self, channel_id: int, user_ids: Iterable[int]) -> dict:
        """Service-side user filtering (the pipeline filters locally instead)."""
        user_ids = sorted(user_ids)
        if len(user_ids) == 1:
            endpoint, params = TREE_BY_CHANNEL_AND_USER, {"channelId": channel_id, "userId": user_ids[0]}
        else:
            endpoint, params = TREE_BY_CHANNEL_AND_USERS, {"channelId": channel_id, "userIds": user_ids}
        payload = await self.call(endpoint, params)
        return self._require_tree(endpoint, params, payload)

    @staticmethod
    def _require_tree(endpoint: str, params: Dict[str, Any], payload: Any) -> dict:
        tree = payload.get("tree") if isinstance(payload, dict) else None
        if not isinstance(tree, dict) or not tree:
            raise QueryServiceError(endpoint, params, "Invalid API response structure")
        return payload

    async def list_versions(self, channel_id: int) -> List[dict]:
        """
        List available versions of a channel, ascending by version.

        Returns:
            Dicts with version, createdAt, messageCount, topicCount
        """
        params = {"channelId": channel_id}
        payload = await self.call(VERSIONS_BY_CHANNEL, params)
        versions = payload.get("versions") if isinstance(payload, dict) else None
        if not isinstance(versions, list):
            raise QueryServiceError(VERSIONS_BY_CHANNEL, params, "Response has no version list")

        versions = [v for v in versions if isinstance(v, dict) and "version" in v]
        return sorted(versions, key=lambda v: v["version"])

    async def list_users(self, channel_id: int) -> List[dict]:
        """
        Users appearing in the channel's latest tree.

        Returns:
            [{"userId": int, "username": str}] in first-seen order
        """
        payload = await self.fetch_latest_tree(channel_id)
        messages = payload["tree"].get("messages")
        if not isinstance(messages, dict):
            messages = {}

        users: Dict[int, str] = {}
        for message in messages.values():
            if not isinstance(message, dict):
                continue
            user_id = coerce_int(message.get("fromUserId"))
            username = message.get("fromUserName")
            if user_id is not None and username:
                users[user_id] = username

        return [{"userId": user_id, "username": name} for user_id, name in users.items()]


# Design Rationale and Trade-offs:
#
# 1. Why httpx.AsyncClient?
#    - Versions are fetched concurrently with asyncio.gather
#    - MockTransport lets tests serve responses without a network
#
# 2. Why wrap every failure in QueryServiceError?
#    - The CLI reports one error type with endpoint and params
#    - Trade-off: The original httpx exception is only available as __cause__
#
# 3. Why validate the tree type here?
#    - Downstream code can rely on payload["tree"] being a mapping
