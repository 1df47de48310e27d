"""Source-control adapter contract consumed by the orchestrator."""

from __future__ import annotations

from typing import Protocol

from pr_scout.models import ChangeSetDetails


class SourceControlAdapter(Protocol):
    """Operations the review workflow needs from a code host.

    Implementations raise ``AuthenticationError`` when not authenticated,
    ``FetchError`` for failed reads, ``SubmissionError`` for failed reviews,
    and ``RepositoryLookupError`` when the ambient repository is unknown.
    """

    def fetch_details(self, owner: str, repo: str, number: int) -> ChangeSetDetails: ...

    def fetch_diff(self, owner: str, repo: str, number: int) -> str: ...

    def fetch_files(self, owner: str, repo: str, number: int) -> list[str]: ...

    def approve(self, owner: str, repo: str, number: int) -> None: ...

    def request_changes(self, owner: str, repo: str, number: int, comment: str) -> None: ...

    def check_auth(self) -> str: ...

    def ambient_repository(self) -> str: ...
