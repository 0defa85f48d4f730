"""
Enhancement Adapter.

Asks an LLM (Gemini) to answer a custom question from already-aggregated
statistics and merges the answer into the local result.

Only aggregated statistics cross this boundary: topic names, counts,
contributor usernames, engagement averages and computed insights. The
raw topic tree is never passed in.
"""

import asyncio
import logging
from typing import List, Optional

import google.generativeai as genai

from src.models.query import QueryRequest, QueryType, VersionedResult
from src.models.topic import AggregatedResult

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = (
    "You are a professional community intelligence analyst. "
    "Provide clear, actionable insights based on conversation data."
)


def _construct_user_prompt(question: str, context: dict) -> str:
    """Construct user prompt from the question and aggregated context."""
    topic_lines = "\n".join(
        f"- {t['name']}: {t['messageCount']} messages from {t['contributorCount']} contributors"
        for t in context["topics"]
    )
    engagement_lines = "\n".join(
        f"- {t['name']}: " + ", ".join(
            f"{c['username']} ({c['messageCount']})" for c in t["contributors"]
        )
        for t in context["topics"]
    )
    insight_lines = "\n".join(context["insights"])

    return f"""You are an expert community analyst. Based on the topic tree data provided, answer this question with deep insights:

Question: "{question}"

Context:
- Version: {context["version"]}
- Messages: {context["messageCount"]}
- Topics: {context["topicCount"]}
- Users: {context["activeUsers"]}

Topic Analysis:
{topic_lines}

User Engagement:
{engagement_lines}

Local Insights:
{insight_lines}

Please provide a concise, business-focused analysis that directly answers the question. Focus on:
1. Specific patterns and behaviors
2. Actionable insights for community management
3. Clear, professional language
4. Quantified observations where possible

Response format: Provide a single, comprehensive paragraph (maximum 150 words) that directly answers the question."""


class EnhancementError(Exception):
    """Enhancement failed; callers fall back to the local result."""


class EnhancementAdapter:
    """
    Optional LLM post-processor for custom questions.

    Uses Gemini to write a short summary paragraph. Every failure mode
    (API error, timeout, empty or malformed response) surfaces as
    EnhancementError.
    """

    def __init__(
        self,
        api_key: str,
        model_name: str = "gemini-1.5-flash",
        temperature: float = 0.3,
        max_output_tokens: int = 200,
        max_chars: int = 1200,
        max_retries: int = 2,
        timeout_seconds: float = 20
    ):
        """
        Initialize enhancement adapter.

        Args:
            api_key: Gemini API key
            model_name: Gemini model to use
            temperature: LLM temperature
            max_output_tokens: Token cap for the answer
            max_chars: Character cap applied to the returned summary
            max_retries: Attempts per enhancement
            timeout_seconds: Per-attempt timeout
        """
        self.model_name = model_name
        self.max_chars = max_chars
        self.max_retries = max_retries
        self.timeout_seconds = timeout_seconds

        # Configure Gemini
        genai.configure(api_key=api_key)
        self.model = genai.GenerativeModel(
            model_name=model_name,
            generation_config={
                "temperature": temperature,
                "max_output_tokens": max_output_tokens
            },
            system_instruction=SYSTEM_PROMPT
        )

        logger.info(f"Initialized EnhancementAdapter with model={model_name}, temp={temperature}")

    @staticmethod
    def should_enhance(request: QueryRequest) -> bool:
        return request.query_type is QueryType.CUSTOM_QUERY and bool(request.custom_question)

    @staticmethod
    def build_context(version: int, result: AggregatedResult, insights: List[str]) -> dict:
        """
        Aggregated context sent to the model.

        Contains statistics only, never message content.
        """
        return {
            "version": version,
            "messageCount": result.message_count,
            "topicCount": result.topic_count,
            "activeUsers": result.active_users,
            "topics": [t.to_dict() for t in result.topics],
            "userEngagement": result.user_engagement.to_dict(),
            "insights": list(insights)
        }

    async def summarize(self, question: str, context: dict) -> str:
        """
        Ask the model for a summary paragraph.

        Returns:
            Stripped summary, truncated to max_chars

        Raises:
            EnhancementError: If every attempt fails
        """
        prompt = _construct_user_prompt(question, context)
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries):
            try:
                response = await asyncio.wait_for(
                    self.model.generate_content_async(prompt),
                    timeout=self.timeout_seconds
                )
                return self._parse_response(response)

            except asyncio.TimeoutError as e:
                last_error = e
                logger.error(f"Enhancement timed out after {self.timeout_seconds}s (attempt {attempt + 1})")

            except Exception as e:
                last_error = e
                logger.error(f"LLM API error (attempt {attempt + 1}): {e}")

        raise EnhancementError(f"Enhancement failed after {self.max_retries} attempts: {last_error}")

    def _parse_response(self, response) -> str:
        """Extract and bound the response text."""
        try:
            text = response.text
        except (AttributeError, ValueError) as e:
            raise EnhancementError(f"Malformed LLM response: {e}") from e

        if not isinstance(text, str) or not text.strip():
            raise EnhancementError("LLM returned an empty response")

        text = text.strip()
        if len(text) > self.max_chars:
            logger.debug(f"Truncating summary from {len(text)} to {self.max_chars} chars")
            text = text[:self.max_chars].rstrip()
        return text

    async def enhance(self, versioned: VersionedResult, request: QueryRequest) -> VersionedResult:
        """
        Return a copy of versioned with an AI summary and labeled insights.

        Args:
            versioned: Local result for one version
            request: Originating query (must be a custom query with a question)

        Raises:
            EnhancementError: On any failure, including non-applicable requests
        """
        if not self.should_enhance(request):
            raise EnhancementError("Enhancement only applies to custom queries with a question")

        context = self.build_context(versioned.version, versioned.result, versioned.insights)
        summary = await self.summarize(request.custom_question, context)

        logger.info(f"Enhanced version {versioned.version} with AI summary ({len(summary)} chars)")

        return versioned.with_changes(
            ai_summary=summary,
            insights=[
                f"AI-Enhanced Analysis for: \"{request.custom_question}\"",
                "Local Analysis:",
                *versioned.insights
            ],
            metadata={
                **versioned.metadata,
                "enhanced": True,
                "enhancement_method": self.model_name
            }
        )


# Design Rationale and Trade-offs:
#
# 1. Why send only aggregated statistics to Gemini?
#    - Message content and user ids never leave the process
#    - Prompt size is bounded by topic count, not message count
#    - Trade-off: The model cannot quote or summarize individual messages
#
# 2. Why raise EnhancementError instead of returning None?
#    - One exception type for API errors, timeouts and empty responses
#    - The orchestrator catches it and keeps the local result
#
# 3. Why truncate to ENHANCEMENT_MAX_CHARS?
#    - max_output_tokens is a soft limit across models
