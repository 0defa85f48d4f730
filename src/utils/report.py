"""
Report rendering.

Plain-text view of a query run for the command line.
"""

from typing import List

from src.agents.delta import DeltaReport
from src.models.query import VersionedResult

RULE = "=" * 60
THIN_RULE = "-" * 60
TOPICS_SHOWN = 5
CONTRIBUTORS_SHOWN = 3


def _signed(value: int) -> str:
    return f"+{value}" if value >= 0 else str(value)


def render_version(versioned: VersionedResult) -> str:
    """Summary, AI analysis, insights and top topics of one version."""
    lines = [f"Version {versioned.version}", THIN_RULE, f"Summary: {versioned.summary}"]

    if versioned.ai_summary:
        lines += ["", "AI Analysis:", versioned.ai_summary]

    if versioned.insights:
        lines += ["", "Key Insights:"]
        lines += [f"  - {insight}" for insight in versioned.insights]

    topics = versioned.result.topics[:TOPICS_SHOWN]
    if topics:
        lines += ["", "Topics Analysis:"]
        for topic in topics:
            lines.append(
                f"  {topic.name}: {topic.message_count} messages, "
                f"{topic.contributor_count} contributors"
            )
            shown = [
                f"{c.username} ({c.message_count})"
                for c in topic.contributors[:CONTRIBUTORS_SHOWN]
            ]
            hidden = topic.contributor_count - CONTRIBUTORS_SHOWN
            if hidden > 0:
                shown.append(f"+{hidden} more")
            if shown:
                lines.append(f"    {', '.join(shown)}")

    return "\n".join(lines)


def render_delta(report: DeltaReport) -> str:
    """Statistics table, evolution summary and topic changes."""
    delta = report.delta
    summary = report.summary

    lines = [
        "Multi-Version Comparison Analysis",
        THIN_RULE,
        f"Comparing {len(report.versions)} versions: "
        + " -> ".join(str(v) for v in report.versions),
        "",
        report.table.to_string(index=False),
        "",
        "Evolution Summary:",
        f"  Messages: {_signed(summary.message_delta)}",
        f"  Topics:   {_signed(summary.topic_delta)}",
        f"  Users:    {_signed(summary.user_delta)}",
        "",
        f"New Topics ({len(delta.new_topics)}):"
    ]
    if delta.new_topics:
        lines += [f"  {t.name} - {t.message_count} messages" for t in delta.new_topics]
    else:
        lines.append("  No new topics appeared")

    lines.append(f"Removed Topics ({len(delta.removed_topics)}):")
    if delta.removed_topics:
        lines += [f"  {t.name} - had {t.message_count} messages" for t in delta.removed_topics]
    else:
        lines.append("  No topics were removed")

    lines.append(f"Changed Topics ({len(delta.changed_topics)}):")
    if delta.changed_topics:
        for change in delta.changed_topics:
            percent = "n/a" if change.change_percent is None else f"{_signed(change.change_percent)}%"
            lines.append(
                f"  {change.name} - {change.previous_count} -> {change.message_count} "
                f"messages ({percent})"
            )
    else:
        lines.append("  No topics changed")

    return "\n".join(lines)


def render_run(results: List[VersionedResult], delta: DeltaReport = None) -> str:
    """Full report: every version, then the delta section if present."""
    sections = [render_version(r) for r in results]
    if delta is not None:
        sections.append(render_delta(delta))
    return f"\n\n{RULE}\n".join(sections)
