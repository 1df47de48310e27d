"""Resolve user-supplied pull request references."""

from __future__ import annotations

import re
from collections.abc import Callable

from pr_scout.errors import (
    AmbiguousReferenceError,
    InvalidReferenceError,
    RepositoryLookupError,
)
from pr_scout.models import ChangeSetIdentifier

PULL_REQUEST_URL_PATTERN = re.compile(
    r"^(?:https?://)?(?:www\.)?github\.com/"
    r"(?P<owner>[^/\s]+)/(?P<repo>[^/\s]+)/pull/(?P<number>\d+)(?:[/?#]\S*)?$"
)
PR_NUMBER_PATTERN = re.compile(r"^\d+$")
REPO_FULL_NAME_PATTERN = re.compile(r"^(?P<owner>[^/\s]+)/(?P<repo>[^/\s]+)$")


def _positive_number(value: str, *, reference: str) -> int:
    number = int(value)
    if number <= 0:
        raise InvalidReferenceError(
            f"Invalid PR reference '{reference}'. PR numbers start at 1."
        )
    return number


def resolve_reference(
    reference: str,
    *,
    ambient_repository: Callable[[], str],
) -> ChangeSetIdentifier:
    """Turn a PR URL or bare number into a change-set identifier.

    A bare number is resolved against ``ambient_repository()``, which must
    return ``owner/repo`` and may raise ``RepositoryLookupError``.
    """
    candidate = reference.strip()

    url_match = PULL_REQUEST_URL_PATTERN.match(candidate)
    if url_match is not None:
        return ChangeSetIdentifier(
            owner=url_match.group("owner"),
            repo=url_match.group("repo"),
            number=_positive_number(url_match.group("number"), reference=reference),
        )

    if PR_NUMBER_PATTERN.fullmatch(candidate):
        number = _positive_number(candidate, reference=reference)
        try:
            full_name = ambient_repository()
        except RepositoryLookupError as error:
            raise AmbiguousReferenceError(
                "Could not determine repo. Please provide full PR URL."
            ) from error
        repo_match = REPO_FULL_NAME_PATTERN.match(full_name.strip())
        if repo_match is None:
            raise AmbiguousReferenceError(
                f"Tracked repository '{full_name}' is not in owner/repo form. "
                "Please provide full PR URL."
            )
        return ChangeSetIdentifier(
            owner=repo_match.group("owner"),
            repo=repo_match.group("repo"),
            number=number,
        )

    raise InvalidReferenceError(f"Invalid PR URL or number: '{reference}'.")
