"""Tests for the per-file explanation cache."""

from __future__ import annotations

import pytest
from conftest import SAMPLE_DIFF, ScriptedExecutor
from pr_scout.context import extract_file_diff
from pr_scout.explanations import ExplanationCache
from pr_scout.gateway import AI_UNAVAILABLE_MESSAGE, AnalysisGateway
from pr_scout.schema import AnalysisTask


@pytest.mark.unit
def test_extract_file_diff_returns_only_the_requested_segment() -> None:
    segment = extract_file_diff(SAMPLE_DIFF, "src/auth/session.py")

    assert segment.startswith("diff --git a/src/auth/session.py b/src/auth/session.py")
    assert "+TTL = 3600" in segment
    assert "audit(user)" not in segment
    assert "docs/auth.md" not in segment


@pytest.mark.unit
def test_extract_file_diff_handles_last_segment_and_missing_paths() -> None:
    assert "Sessions now last an hour." in extract_file_diff(SAMPLE_DIFF, "docs/auth.md")
    assert extract_file_diff(SAMPLE_DIFF, "missing.py") == ""
    assert extract_file_diff(SAMPLE_DIFF, "src/auth") == ""


@pytest.mark.unit
def test_extract_file_diff_accepts_crlf_line_endings() -> None:
    segment = extract_file_diff(SAMPLE_DIFF.replace("\n", "\r\n"), "src/auth/session.py")

    assert segment.startswith("diff --git a/src/auth/session.py b/src/auth/session.py\r\n")
    assert "+TTL = 3600" in segment
    assert "docs/auth.md" not in segment


@pytest.mark.unit
def test_explain_twice_calls_gateway_once() -> None:
    executor = ScriptedExecutor({AnalysisTask.EXPLAIN_FILE: "• Extends the TTL"})
    cache = ExplanationCache(AnalysisGateway(executor))

    first = cache.explain("src/auth/session.py", title="PR", diff=SAMPLE_DIFF)
    second = cache.explain("src/auth/session.py", title="PR", diff=SAMPLE_DIFF)

    assert first == second == "• Extends the TTL"
    assert executor.count(AnalysisTask.EXPLAIN_FILE) == 1
    assert "src/auth/session.py" in cache


@pytest.mark.unit
def test_explain_sends_only_the_file_segment() -> None:
    executor = ScriptedExecutor({AnalysisTask.EXPLAIN_FILE: "ok"})
    cache = ExplanationCache(AnalysisGateway(executor))

    cache.explain("src/auth/login.py", title="PR", diff=SAMPLE_DIFF)

    assert "audit(user)" in executor.prompts[0]
    assert "TTL = 3600" not in executor.prompts[0]


@pytest.mark.unit
def test_unavailable_explanation_is_cached_too() -> None:
    executor = ScriptedExecutor()
    store: dict[str, str] = {}
    cache = ExplanationCache(AnalysisGateway(executor), store)

    cache.explain("docs/auth.md", title="PR", diff=SAMPLE_DIFF)
    cache.explain("docs/auth.md", title="PR", diff=SAMPLE_DIFF)

    assert store == {"docs/auth.md": AI_UNAVAILABLE_MESSAGE}
    assert len(executor.prompts) == 1
