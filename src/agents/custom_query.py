"""
Custom Question Router.

Routes a free-text question to one keyword-matched analyzer. Routes are
evaluated in a fixed order and the first match wins; the last route
always matches.

None of these analyzers do real language understanding. "Sentiment"
and "engagement" are proxies computed from topic and message counts.
"""

import logging
import math
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, NamedTuple, Tuple

from src.models.message import Message
from src.models.topic import AggregatedResult, TopicStats
from src.registry.topic_names import TopicNameResolver
from src.utils.stats import safe_average
import config.settings as settings

logger = logging.getLogger(__name__)

CONCERN_KEYWORDS = ("Governance", "Technical", "Security", "Audit")
PROTOCOL_KEYWORDS = ("DeFi", "Protocol", "Token")


@dataclass(frozen=True)
class AnalysisContext:
    """Everything an analyzer may look at."""
    messages: List[Message]
    result: AggregatedResult
    resolver: TopicNameResolver
    question: str

    @property
    def lowered(self) -> str:
        return self.question.lower()

    @property
    def topics(self) -> List[TopicStats]:
        return self.result.topics


Analyzer = Callable[[AnalysisContext], List[str]]


class Route(NamedTuple):
    name: str
    predicate: Callable[[str], bool]
    analyzer: Analyzer


def _contains_any(*keywords: str) -> Callable[[str], bool]:
    return lambda question: any(k in question for k in keywords)


def _asks_about_disagreement(question: str) -> bool:
    return "differ" in question and any(
        k in question for k in ("opinion", "disagree", "preferences")
    )


# Disagreement analysis

def _mentioned_usernames(context: AnalysisContext) -> List[str]:
    question = context.lowered
    mentioned = []
    for username in context.result.user_names.values():
        lowered = username.lower()
        if username in mentioned:
            continue
        if lowered in question or f"@{lowered}" in question:
            mentioned.append(username)
    return mentioned


def _topic_counts_for(messages: List[Message], username: str) -> Counter:
    counts: Counter = Counter()
    for message in messages:
        if message.from_user_name == username and message.has_topic:
            counts[message.topic_id] += 1
    return counts


def _top_topic(counts: Counter) -> Tuple[int, int]:
    return sorted(counts.items(), key=lambda item: item[1], reverse=True)[0]


def analyze_user_disagreements(context: AnalysisContext) -> List[str]:
    mentioned = _mentioned_usernames(context)
    logger.debug(f"Mentioned users found: {mentioned}")

    if len(mentioned) < 2:
        return [
            "To analyze user disagreements, please specify user names in your question "
            "(e.g., \"How do @alice and @bob differ in topic preferences?\")"
        ]

    first, second = mentioned[0], mentioned[1]
    first_counts = _topic_counts_for(context.messages, first)
    second_counts = _topic_counts_for(context.messages, second)

    common = [
        (topic_id, count, second_counts[topic_id], abs(count - second_counts[topic_id]))
        for topic_id, count in first_counts.items()
        if topic_id in second_counts
    ]

    if not common:
        return [f"Users {first} and {second} have not participated in the same topic discussions"]

    insights = [f"Users {first} and {second} both discussed {len(common)} common topics"]

    significant = [c for c in common if c[3] > settings.SIGNIFICANT_DIFFERENCE_THRESHOLD]
    if significant:
        topic_id, first_count, second_count, _ = max(significant, key=lambda c: c[3])
        insights.append(
            f"Biggest engagement difference in \"{context.resolver.resolve(topic_id)}\": "
            f"{first} ({first_count} msgs) vs {second} ({second_count} msgs)"
        )

    first_focus, _ = _top_topic(first_counts)
    second_focus, _ = _top_topic(second_counts)
    if first_focus != second_focus:
        insights.append(
            f"Different focus areas: {first} primarily discusses "
            f"\"{context.resolver.resolve(first_focus)}\", {second} focuses on "
            f"\"{context.resolver.resolve(second_focus)}\""
        )

    return insights


def analyze_trending_topics(context: AnalysisContext) -> List[str]:
    topics = context.topics
    if not topics:
        return []

    top = topics[0]
    insights = [
        f"Most trending topic: \"{top.name}\" with {top.message_count} recent messages",
        f"Trending engagement: {top.contributor_count} active contributors in this topic"
    ]
    if len(topics) > 1:
        runner_up = topics[1]
        gap = top.message_count - runner_up.message_count
        insights.append(
            f"Trend strength: \"{top.name}\" leads by {gap} messages over \"{runner_up.name}\""
        )
    return insights


def analyze_user_engagement(context: AnalysisContext) -> List[str]:
    result = context.result
    average = safe_average(len(context.messages), result.active_users)
    insights = [f"Overall engagement: {average} average messages per user"]

    counts: Counter = Counter()
    for message in context.messages:
        if message.from_user_id is not None and message.from_user_name:
            counts[message.from_user_name] += 1

    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    if ranked:
        insights.append(f"Most engaged user: @{ranked[0][0]} with {ranked[0][1]} messages")
    if len(ranked) > 1:
        insights.append(f"Second most engaged: @{ranked[1][0]} with {ranked[1][1]} messages")
    return insights


def analyze_sentiment_patterns(context: AnalysisContext) -> List[str]:
    diversity = len(context.topics)
    if diversity > settings.HIGH_DIVERSITY_TOPIC_COUNT:
        insights = [
            f"High topic diversity ({diversity} topics) suggests active, varied discussions",
            "Community sentiment: Engaged and diverse conversation patterns"
        ]
    else:
        insights = [
            f"Focused discussions around {diversity} main topics",
            "Community sentiment: Concentrated engagement on key issues"
        ]

    per_topic = safe_average(len(context.messages), diversity)
    if per_topic > settings.HIGH_INTENSITY_MESSAGES_PER_TOPIC:
        insights.append(f"High engagement intensity: {per_topic} average messages per topic")
    else:
        insights.append(f"Moderate engagement: {per_topic} average messages per topic")
    return insights


def _topics_matching(topics: List[TopicStats], keywords: Tuple[str, ...]) -> List[TopicStats]:
    return [t for t in topics if any(k in t.name for k in keywords)]


def analyze_concerns(context: AnalysisContext) -> List[str]:
    matches = _topics_matching(context.topics, CONCERN_KEYWORDS)
    if not matches:
        return ["No major concern topics identified in current discussions"]
    return [
        f"Concern area: \"{t.name}\" - {t.message_count} messages from {t.contributor_count} contributors"
        for t in matches
    ]


def analyze_protocol_discussions(context: AnalysisContext) -> List[str]:
    matches = _topics_matching(context.topics, PROTOCOL_KEYWORDS)
    if not matches:
        return ["Limited protocol-specific discussions in current dataset"]
    return [
        f"Protocol discussion: \"{t.name}\" - {t.message_count} messages from {t.contributor_count} contributors"
        for t in matches
    ]


def _format_date(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d")


def analyze_temporal_patterns(context: AnalysisContext) -> List[str]:
    stamped = sorted(
        (m for m in context.messages if m.timestamp is not None),
        key=lambda m: m.timestamp
    )
    if not stamped:
        return [
            f"Temporal analysis: {len(context.messages)} messages available for time-based analysis"
        ]

    recent_count = math.ceil(len(stamped) * settings.RECENT_ACTIVITY_FRACTION)
    recent = stamped[-recent_count:]
    recent_topics = {m.topic_id for m in recent if m.has_topic}

    return [
        f"Time range: {_format_date(stamped[0].timestamp)} to {_format_date(stamped[-1].timestamp)}",
        f"Recent activity: {len(recent)} messages across {len(recent_topics)} topics"
    ]


def analyze_general_question(context: AnalysisContext) -> List[str]:
    result = context.result
    insights = [
        f"Custom analysis for: \"{context.question}\"",
        f"Analyzing {len(context.messages)} messages across {result.topic_count} topics "
        f"from {result.active_users} users"
    ]
    top = result.most_discussed_topic
    if top:
        insights.append(
            f"Primary topic: \"{top.name}\" with {top.message_count} messages "
            f"from {top.contributor_count} contributors"
        )
    return insights


ROUTES: List[Route] = [
    Route("disagreement", _asks_about_disagreement, analyze_user_disagreements),
    Route("trending", _contains_any("trending", "popular"), analyze_trending_topics),
    Route("engagement", _contains_any("engaged", "active"), analyze_user_engagement),
    Route("sentiment", _contains_any("sentiment", "mood"), analyze_sentiment_patterns),
    Route("concerns", _contains_any("concern", "issue", "problem"), analyze_concerns),
    Route("protocol", _contains_any("defi", "protocol"), analyze_protocol_discussions),
    Route("temporal", _contains_any("when", "time", "recent"), analyze_temporal_patterns),
    Route("general", lambda question: True, analyze_general_question),
]

def select_route(question: str) -> Route:
    """Return the first route whose predicate matches the lowercased question."""
    lowered = question.lower()
    for route in ROUTES:
        if route.predicate(lowered):
            return route
    return ROUTES[-1]


def answer_question(context: AnalysisContext) -> List[str]:
    """Run the analyzer selected for the context's question."""
    route = select_route(context.question)
    logger.info(f"Routing custom question to '{route.name}' analysis")
    return route.analyzer(context)


# Design Rationale and Trade-offs:
#
# 1. Why keyword routing instead of an LLM classifier?
#    - Works offline and returns the same answer for the same question
#    - Gemini enhancement is layered on top when a key is configured
#    - Trade-off: Phrasing that misses every keyword falls through to the general analyzer
#
# 2. Why an ordered list of routes?
#    - First match wins, so precedence is explicit and testable
#    - Adding a route is one Route entry plus its analyzer
