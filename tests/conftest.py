"""Shared pytest fixtures and test-run configuration."""

from __future__ import annotations

import json
import os

import pytest
from pr_scout.errors import RepositoryLookupError, SubmissionError
from pr_scout.gateway import AnalysisGateway
from pr_scout.models import ChangeSetDetails
from pr_scout.orchestrator import ReviewOrchestrator
from pr_scout.prompts import (
    EXPLANATION_SYSTEM_PROMPT,
    GROUPING_SYSTEM_PROMPT,
    QUIZ_SYSTEM_PROMPT,
    SUMMARY_SYSTEM_PROMPT,
)
from pr_scout.schema import AnalysisTask

TASK_SYSTEM_PROMPTS = {
    AnalysisTask.SUMMARIZE: SUMMARY_SYSTEM_PROMPT,
    AnalysisTask.GROUP_FILES: GROUPING_SYSTEM_PROMPT,
    AnalysisTask.GENERATE_QUIZ: QUIZ_SYSTEM_PROMPT,
    AnalysisTask.EXPLAIN_FILE: EXPLANATION_SYSTEM_PROMPT,
}

SAMPLE_FILES = ["src/auth/login.py", "src/auth/session.py", "docs/auth.md"]

SAMPLE_DIFF = "\n".join(
    [
        "diff --git a/src/auth/login.py b/src/auth/login.py",
        "--- a/src/auth/login.py",
        "+++ b/src/auth/login.py",
        "@@ -1,2 +1,3 @@",
        " def login(user):",
        "+    audit(user)",
        "     return True",
        "diff --git a/src/auth/session.py b/src/auth/session.py",
        "--- a/src/auth/session.py",
        "+++ b/src/auth/session.py",
        "@@ -5 +5 @@",
        "-TTL = 60",
        "+TTL = 3600",
        "diff --git a/docs/auth.md b/docs/auth.md",
        "--- a/docs/auth.md",
        "+++ b/docs/auth.md",
        "@@ -1 +1,2 @@",
        " # Auth",
        "+Sessions now last an hour.",
        "",
    ]
)

SAMPLE_GROUPING = json.dumps(
    {
        "groups": [
            {
                "name": "Login Auditing",
                "emoji": "🔐",
                "description": "Audit every login",
                "files": ["src/auth/login.py", "src/auth/session.py"],
            },
            {
                "name": "Documentation",
                "emoji": "📝",
                "description": "Docs for the new TTL",
                "files": ["docs/auth.md"],
            },
        ]
    }
)


def make_question(question: str, correct: str) -> dict[str, object]:
    return {
        "question": question,
        "options": ["A) First", "B) Second", "C) Third", "D) Fourth"],
        "correct": correct,
        "explanation": f"{correct} is right.",
    }


SAMPLE_QUIZ = json.dumps(
    {
        "questions": [
            make_question("What does the PR add to login?", "A"),
            make_question("What is the new session TTL?", "C"),
            make_question("Which file documents the change?", "B"),
        ]
    }
)


def make_details(**overrides: object) -> ChangeSetDetails:
    values: dict[str, object] = {
        "title": "Audit logins and extend sessions",
        "body": "Adds login auditing.",
        "author_login": "octocat",
        "state": "open",
        "additions": 3,
        "deletions": 1,
        "changed_files": 3,
        "commit_count": 2,
        "base_ref": "main",
        "head_ref": "feature/audit",
        "html_url": "https://github.com/acme/rocket/pull/42",
    }
    values.update(overrides)
    return ChangeSetDetails(**values)  # type: ignore[arg-type]


class ScriptedExecutor:
    """AI executor that answers per task and records every prompt."""

    def __init__(self, responses: dict[AnalysisTask, str | None] | None = None) -> None:
        self.responses: dict[AnalysisTask, str | None] = dict(responses or {})
        self.prompts: list[str] = []
        self.tasks: list[AnalysisTask] = []

    def generate(self, prompt: str) -> str | None:
        task = next(
            task for task, system in TASK_SYSTEM_PROMPTS.items() if prompt.startswith(system)
        )
        self.prompts.append(prompt)
        self.tasks.append(task)
        return self.responses.get(task)

    def count(self, task: AnalysisTask) -> int:
        return self.tasks.count(task)


class FakeSourceControl:
    """In-memory source-control adapter that records calls."""

    def __init__(
        self,
        *,
        details: ChangeSetDetails | None = None,
        diff: str = SAMPLE_DIFF,
        files: list[str] | None = None,
        repository: str | None = "acme/rocket",
        login: str = "octocat",
    ) -> None:
        self.details = details or make_details()
        self.diff = diff
        self.files = list(SAMPLE_FILES if files is None else files)
        self.repository = repository
        self.login = login
        self.calls: list[tuple[object, ...]] = []
        self.fetch_error: Exception | None = None
        self.submit_error: Exception | None = None

    def _fetch(self, name: str, *args: object) -> None:
        self.calls.append((name, *args))
        if self.fetch_error is not None:
            raise self.fetch_error

    def fetch_details(self, owner: str, repo: str, number: int) -> ChangeSetDetails:
        self._fetch("fetch_details", owner, repo, number)
        return self.details

    def fetch_diff(self, owner: str, repo: str, number: int) -> str:
        self._fetch("fetch_diff", owner, repo, number)
        return self.diff

    def fetch_files(self, owner: str, repo: str, number: int) -> list[str]:
        self._fetch("fetch_files", owner, repo, number)
        return list(self.files)

    def approve(self, owner: str, repo: str, number: int) -> None:
        self.calls.append(("approve", owner, repo, number))
        if self.submit_error is not None:
            raise self.submit_error

    def request_changes(self, owner: str, repo: str, number: int, comment: str) -> None:
        self.calls.append(("request_changes", owner, repo, number, comment))
        if self.submit_error is not None:
            raise self.submit_error

    def check_auth(self) -> str:
        self.calls.append(("check_auth",))
        return self.login

    def ambient_repository(self) -> str:
        self.calls.append(("ambient_repository",))
        if self.repository is None:
            raise RepositoryLookupError("No git remote.")
        return self.repository

    def call_names(self) -> list[object]:
        return [call[0] for call in self.calls]

    def fail_submissions(self) -> None:
        self.submit_error = SubmissionError("GitHub said no.")


@pytest.fixture
def executor() -> ScriptedExecutor:
    return ScriptedExecutor(
        {
            AnalysisTask.SUMMARIZE: "This PR audits logins and extends sessions.",
            AnalysisTask.GROUP_FILES: SAMPLE_GROUPING,
            AnalysisTask.GENERATE_QUIZ: SAMPLE_QUIZ,
            AnalysisTask.EXPLAIN_FILE: "• Adds an audit call",
        }
    )


@pytest.fixture
def gateway(executor: ScriptedExecutor) -> AnalysisGateway:
    return AnalysisGateway(executor)


@pytest.fixture
def source_control() -> FakeSourceControl:
    return FakeSourceControl()


@pytest.fixture
def orchestrator(
    source_control: FakeSourceControl, gateway: AnalysisGateway
) -> ReviewOrchestrator:
    return ReviewOrchestrator(source_control, gateway)


def pytest_addoption(parser: pytest.Parser) -> None:
    """Add custom pytest options for integration test execution."""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run tests marked as integration (external dependencies).",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip integration tests unless explicitly enabled."""
    run_integration = config.getoption("--run-integration")
    env_enabled = os.getenv("RUN_INTEGRATION_TESTS") == "1"
    if run_integration or env_enabled:
        return

    skip_marker = pytest.mark.skip(
        reason=(
            "Integration tests are disabled by default. "
            "Use --run-integration or set RUN_INTEGRATION_TESTS=1."
        )
    )
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_marker)
