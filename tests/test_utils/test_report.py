"""
Unit tests for plain-text report rendering.
"""

import pytest

from src.agents.delta import DeltaEngine
from src.utils.report import render_delta, render_run, render_version


def test_render_version(make_tree, make_versioned, msg):
    tree = make_tree([msg(user, f"user{user}", 0) for user in range(1, 5)])
    versioned = make_versioned(tree, 7).with_changes(
        insights=["first insight"],
        ai_summary="Short AI paragraph."
    )

    text = render_version(versioned)

    assert text.startswith("Version 7")
    assert "Summary: Users discussing 1 topics with 4 total messages" in text
    assert "AI Analysis:\nShort AI paragraph." in text
    assert "  - first insight" in text
    assert "General Discussion: 4 messages, 4 contributors" in text
    assert "+1 more" in text


def test_render_delta(make_tree, make_versioned, msg):
    base = [msg(1, "alice", 0), msg(2, "bob", 1)]
    report = DeltaEngine().analyze([
        make_versioned(make_tree(base), 1),
        make_versioned(make_tree(base + [msg(2, "bob", 1), msg(3, "carol", 42)]), 2),
    ])

    text = render_delta(report)

    assert "Comparing 2 versions: 1 -> 2" in text
    assert "Most Discussed" in text
    assert "Messages: +2" in text
    assert "Topic 42 - 1 messages" in text
    assert "No topics were removed" in text
    assert "Technical Implementation - 1 -> 2 messages (+100%)" in text


def test_render_run_without_delta(make_tree, make_versioned, round_trip_tree):
    text = render_run([make_versioned(round_trip_tree, 1)])

    assert "Version 1" in text
    assert "Multi-Version Comparison Analysis" not in text


def test_render_run_with_delta(make_tree, make_versioned, round_trip_tree):
    results = [make_versioned(round_trip_tree, 1), make_versioned(round_trip_tree, 2)]

    text = render_run(results, DeltaEngine().analyze(results))

    assert text.index("Version 1") < text.index("Version 2")
    assert "Multi-Version Comparison Analysis" in text
    assert "No topics changed" in text


# Run tests if executed directly
if __name__ == "__main__":
    pytest.main([__file__, "-v"])
