"""GitHub API wrapper, auth helpers, and the GitHub source-control adapter."""

from __future__ import annotations

import os
import re
import subprocess
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import httpx
from dotenv import load_dotenv

from pr_scout.errors import (
    AuthenticationError,
    FetchError,
    RepositoryLookupError,
    ReviewError,
    SubmissionError,
)
from pr_scout.models import ChangeSetDetails

GITHUB_API_BASE_URL = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
GITHUB_MAX_RETRIES = 3
DEFAULT_RETRY_BACKOFF_SECONDS = 0.5
FILES_PER_PAGE = 100
REPOSITORY_ENV_VARS = ("PR_SCOUT_REPO", "GITHUB_REPOSITORY")
GIT_REMOTE_TIMEOUT_SECONDS = 10
GITHUB_REMOTE_PATTERN = re.compile(
    r"github\.com[:/](?P<owner>[^/\s:]+)/(?P<repo>[^/\s]+?)(?:\.git)?/?$"
)
REVIEW_EVENT_APPROVE = "APPROVE"
REVIEW_EVENT_REQUEST_CHANGES = "REQUEST_CHANGES"


class GitHubAuthError(RuntimeError):
    """Raised when required GitHub authentication is missing."""


class GitHubInputError(ValueError):
    """Raised when repository or PR input values are invalid."""


class GitHubApiError(RuntimeError):
    """Raised when a GitHub API request fails."""

    def __init__(self, message: str, *, status_code: int, endpoint: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.endpoint = endpoint


class GitHubRateLimitError(GitHubApiError):
    """Raised when GitHub API rate limiting prevents request completion."""


def _ensure_mapping(value: object, *, context: str) -> dict[str, Any]:
    """Ensure a response fragment is a JSON object."""
    if not isinstance(value, dict):
        raise GitHubApiError(
            f"Expected JSON object for {context}.",
            status_code=500,
            endpoint=context,
        )
    return value


def _require_str(payload: dict[str, Any], *, key: str, endpoint: str) -> str:
    """Read a required string field from payload."""
    value = payload.get(key)
    if not isinstance(value, str):
        raise GitHubApiError(
            f"Expected string field '{key}' in GitHub response.",
            status_code=500,
            endpoint=endpoint,
        )
    return value


def _require_int(payload: dict[str, Any], *, key: str, endpoint: str) -> int:
    """Read a required integer field from payload."""
    value = payload.get(key)
    if not isinstance(value, int) or isinstance(value, bool):
        raise GitHubApiError(
            f"Expected integer field '{key}' in GitHub response.",
            status_code=500,
            endpoint=endpoint,
        )
    return value


def _require_object(payload: dict[str, Any], *, key: str, endpoint: str) -> dict[str, Any]:
    """Read a required object field from payload."""
    value = payload.get(key)
    if not isinstance(value, dict):
        raise GitHubApiError(
            f"Expected object field '{key}' in GitHub response.",
            status_code=500,
            endpoint=endpoint,
        )
    return value


def _decode_json(response: httpx.Response, endpoint: str) -> Any:
    """Decode a response body, treating non-JSON bodies as API errors."""
    try:
        return response.json()
    except ValueError as error:
        raise GitHubApiError(
            "GitHub returned a response body that is not JSON.",
            status_code=response.status_code,
            endpoint=endpoint,
        ) from error


def _request_json(client: httpx.Client, endpoint: str) -> dict[str, Any]:
    """Perform a JSON request against GitHub API."""
    response = _request_with_retries(
        client,
        endpoint,
        accept_header="application/vnd.github+json",
    )
    return _ensure_mapping(_decode_json(response, endpoint), context=endpoint)


def _request_json_list(client: httpx.Client, endpoint: str) -> list[dict[str, Any]]:
    """Perform a JSON request that returns an array of objects."""
    response = _request_with_retries(
        client,
        endpoint,
        accept_header="application/vnd.github+json",
    )
    payload = _decode_json(response, endpoint)
    if not isinstance(payload, list):
        raise GitHubApiError(
            "Expected JSON array in GitHub response.",
            status_code=500,
            endpoint=endpoint,
        )
    rows: list[dict[str, Any]] = []
    for item in payload:
        if not isinstance(item, dict):
            raise GitHubApiError(
                "Expected all array items to be JSON objects in GitHub response.",
                status_code=500,
                endpoint=endpoint,
            )
        rows.append(item)
    return rows


def _is_retryable_status(status_code: int) -> bool:
    """Return whether a status code is retryable under policy."""
    return status_code == 429 or 500 <= status_code < 600


def _parse_retry_after_seconds(response: httpx.Response) -> float | None:
    """Parse Retry-After header as seconds if present and valid."""
    retry_after = response.headers.get("Retry-After")
    if retry_after is None:
        return None
    try:
        parsed_value = float(retry_after)
    except ValueError:
        return None
    if parsed_value < 0:
        return None
    return parsed_value


def _compute_retry_delay_seconds(response: httpx.Response, *, attempt_number: int) -> float:
    """Compute retry delay from Retry-After header or exponential backoff."""
    retry_after_seconds = _parse_retry_after_seconds(response)
    if retry_after_seconds is not None:
        return retry_after_seconds
    return DEFAULT_RETRY_BACKOFF_SECONDS * (2 ** (attempt_number - 1))


def _sleep_for_retry(seconds: float) -> None:
    """Sleep helper for retry delays (wrapped for deterministic tests)."""
    time.sleep(seconds)


def _raise_http_error(response: httpx.Response, endpoint: str) -> None:
    """Raise a typed error for a non-success GitHub API response."""
    message = f"GitHub API request failed with status {response.status_code} for '{endpoint}'."
    if response.status_code == 429:
        raise GitHubRateLimitError(
            message,
            status_code=response.status_code,
            endpoint=endpoint,
        )
    raise GitHubApiError(
        message,
        status_code=response.status_code,
        endpoint=endpoint,
    )


def _request_with_retries(
    client: httpx.Client,
    endpoint: str,
    *,
    accept_header: str | None = None,
    max_attempts: int = GITHUB_MAX_RETRIES,
) -> httpx.Response:
    """Perform a GET request with retry handling for 429/5xx responses."""
    headers = {"Accept": accept_header} if accept_header else None
    for attempt_number in range(1, max_attempts + 1):
        response = client.get(endpoint, headers=headers)
        if response.status_code < 400:
            return response

        should_retry = _is_retryable_status(response.status_code) and attempt_number < max_attempts
        if not should_retry:
            _raise_http_error(response, endpoint)

        delay_seconds = _compute_retry_delay_seconds(response, attempt_number=attempt_number)
        _sleep_for_retry(delay_seconds)

    raise RuntimeError("Unexpected retry loop exit without a response.")


def _post_json(client: httpx.Client, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
    """Perform a single non-retried POST; reviews are not idempotent."""
    response = client.post(
        endpoint,
        json=payload,
        headers={"Accept": "application/vnd.github+json"},
    )
    if response.status_code >= 400:
        _raise_http_error(response, endpoint)
    return _ensure_mapping(_decode_json(response, endpoint), context=endpoint)


def fetch_pull_request_details(
    *,
    client: httpx.Client,
    repo_full_name: str,
    pr_number: int,
) -> ChangeSetDetails:
    """Fetch pull request metadata from GitHub."""
    owner, repo = parse_repo_full_name(repo_full_name)
    normalized_pr_number = validate_pr_number(pr_number)
    endpoint = f"/repos/{owner}/{repo}/pulls/{normalized_pr_number}"

    payload = _request_json(client, endpoint)
    user_payload = _require_object(payload, key="user", endpoint=endpoint)
    base_payload = _require_object(payload, key="base", endpoint=endpoint)
    head_payload = _require_object(payload, key="head", endpoint=endpoint)

    body = payload.get("body")
    if body is None:
        body = ""
    elif not isinstance(body, str):
        raise GitHubApiError(
            "Expected 'body' to be a string or null in GitHub response.",
            status_code=500,
            endpoint=endpoint,
        )

    return ChangeSetDetails(
        title=_require_str(payload, key="title", endpoint=endpoint),
        body=body,
        author_login=_require_str(user_payload, key="login", endpoint=endpoint),
        state=_require_str(payload, key="state", endpoint=endpoint),
        additions=_require_int(payload, key="additions", endpoint=endpoint),
        deletions=_require_int(payload, key="deletions", endpoint=endpoint),
        changed_files=_require_int(payload, key="changed_files", endpoint=endpoint),
        commit_count=_require_int(payload, key="commits", endpoint=endpoint),
        base_ref=_require_str(base_payload, key="ref", endpoint=endpoint),
        head_ref=_require_str(head_payload, key="ref", endpoint=endpoint),
        html_url=_require_str(payload, key="html_url", endpoint=endpoint),
    )


def fetch_pull_request_file_paths(
    *,
    client: httpx.Client,
    repo_full_name: str,
    pr_number: int,
) -> list[str]:
    """Fetch all changed file paths for a pull request with pagination."""
    owner, repo = parse_repo_full_name(repo_full_name)
    normalized_pr_number = validate_pr_number(pr_number)
    base_endpoint = f"/repos/{owner}/{repo}/pulls/{normalized_pr_number}/files"

    paths: list[str] = []
    page = 1
    while True:
        endpoint = f"{base_endpoint}?per_page={FILES_PER_PAGE}&page={page}"
        rows = _request_json_list(client, endpoint)
        if not rows:
            break
        paths.extend(_require_str(row, key="filename", endpoint=endpoint) for row in rows)
        if len(rows) < FILES_PER_PAGE:
            break
        page += 1

    return paths


def fetch_pull_request_diff(
    *,
    client: httpx.Client,
    repo_full_name: str,
    pr_number: int,
) -> str:
    """Fetch full raw diff for a pull request."""
    owner, repo = parse_repo_full_name(repo_full_name)
    normalized_pr_number = validate_pr_number(pr_number)
    endpoint = f"/repos/{owner}/{repo}/pulls/{normalized_pr_number}"
    response = _request_with_retries(
        client,
        endpoint,
        accept_header="application/vnd.github.diff",
    )
    return response.text


def submit_pull_request_review(
    *,
    client: httpx.Client,
    repo_full_name: str,
    pr_number: int,
    event: str,
    body: str | None = None,
) -> int:
    """Submit a review with ``event`` and optional body; return the review id."""
    owner, repo = parse_repo_full_name(repo_full_name)
    normalized_pr_number = validate_pr_number(pr_number)
    if event not in {REVIEW_EVENT_APPROVE, REVIEW_EVENT_REQUEST_CHANGES}:
        raise GitHubInputError(f"Unsupported review event '{event}'.")
    endpoint = f"/repos/{owner}/{repo}/pulls/{normalized_pr_number}/reviews"
    payload: dict[str, Any] = {"event": event}
    if body:
        payload["body"] = body
    response_payload = _post_json(client, endpoint, payload)
    return _require_int(response_payload, key="id", endpoint=endpoint)


def parse_repo_full_name(repo_full_name: str) -> tuple[str, str]:
    """Parse and validate repository input in owner/repo format."""
    owner, separator, repo = repo_full_name.strip().partition("/")
    if not separator or not owner or not repo or "/" in repo:
        raise GitHubInputError(
            f"Invalid repo '{repo_full_name}'. Expected format is owner/repo."
        )
    return owner, repo


def validate_pr_number(pr_number: int) -> int:
    """Validate and normalize pull request number input."""
    if pr_number <= 0:
        raise GitHubInputError(f"Invalid PR number '{pr_number}'. Expected a positive integer.")
    return pr_number


def parse_github_remote(remote_url: str) -> str:
    """Extract ``owner/repo`` from an SSH or HTTPS GitHub remote URL."""
    match = GITHUB_REMOTE_PATTERN.search(remote_url.strip())
    if match is None:
        raise RepositoryLookupError(f"Remote '{remote_url.strip()}' is not a GitHub repository.")
    return f"{match.group('owner')}/{match.group('repo')}"


def _read_origin_remote(cwd: Path | None = None) -> str:
    """Return the URL of the ``origin`` remote of the working tree."""
    try:
        completed = subprocess.run(
            ["git", "remote", "get-url", "origin"],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=GIT_REMOTE_TIMEOUT_SECONDS,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as error:
        raise RepositoryLookupError(f"Could not run git: {error}") from error
    if completed.returncode != 0 or not completed.stdout.strip():
        raise RepositoryLookupError("Current directory has no 'origin' git remote.")
    return completed.stdout.strip()


def detect_ambient_repository(
    *,
    read_remote: Callable[[], str] = _read_origin_remote,
) -> str:
    """Return the tracked repository from the environment or the git remote."""
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    for env_var in REPOSITORY_ENV_VARS:
        configured = os.getenv(env_var)
        if configured:
            try:
                owner, repo = parse_repo_full_name(configured)
            except GitHubInputError as error:
                raise RepositoryLookupError(f"{env_var}: {error}") from error
            return f"{owner}/{repo}"
    return parse_github_remote(read_remote())


def get_github_token() -> str:
    """Read GitHub token from environment and fail fast if missing."""
    token, _source = get_github_token_with_source()
    return token


def get_github_token_with_source() -> tuple[str, str]:
    """Read GitHub token and return token value with environment source key."""
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    github_token = os.getenv("GITHUB_TOKEN")
    if github_token:
        return github_token, "GITHUB_TOKEN"

    gh_token = os.getenv("GH_TOKEN")
    if gh_token:
        return gh_token, "GH_TOKEN"

    message = "Missing GitHub token. Set GITHUB_TOKEN (preferred) or GH_TOKEN."
    raise GitHubAuthError(message)


def fetch_authenticated_user_login(*, client: httpx.Client) -> str:
    """Fetch authenticated GitHub user login for token validation."""
    endpoint = "/user"
    payload = _request_json(client, endpoint)
    return _require_str(payload, key="login", endpoint=endpoint)


def build_github_client(
    timeout_seconds: int = 20,
    *,
    trust_env: bool = True,
) -> httpx.Client:
    """Build an authenticated GitHub HTTP client."""
    token = get_github_token()
    headers = {
        "Accept": "application/vnd.github+json",
        "Authorization": f"Bearer {token}",
        "X-GitHub-Api-Version": GITHUB_API_VERSION,
    }
    return httpx.Client(
        base_url=GITHUB_API_BASE_URL,
        headers=headers,
        timeout=timeout_seconds,
        trust_env=trust_env,
    )


class GitHubSourceControl:
    """Source-control adapter backed by the GitHub REST API."""

    def __init__(
        self,
        client: httpx.Client,
        *,
        repository_lookup: Callable[[], str] = detect_ambient_repository,
    ) -> None:
        self._client = client
        self._repository_lookup = repository_lookup

    @contextmanager
    def _translate_errors(self, error_type: type[ReviewError], action: str) -> Iterator[None]:
        try:
            yield
        except GitHubAuthError as error:
            raise AuthenticationError(str(error)) from error
        except GitHubApiError as error:
            if error.status_code == 401:
                raise AuthenticationError(
                    "GitHub rejected the token. Check GITHUB_TOKEN or GH_TOKEN."
                ) from error
            raise error_type(
                f"{action} failed: status={error.status_code} endpoint={error.endpoint}."
            ) from error
        except GitHubInputError as error:
            raise error_type(f"{action} failed: {error}") from error
        except httpx.HTTPError as error:
            raise error_type(f"{action} failed: network error ({error}).") from error

    def fetch_details(self, owner: str, repo: str, number: int) -> ChangeSetDetails:
        with self._translate_errors(FetchError, "Fetching PR details"):
            return fetch_pull_request_details(
                client=self._client,
                repo_full_name=f"{owner}/{repo}",
                pr_number=number,
            )

    def fetch_diff(self, owner: str, repo: str, number: int) -> str:
        with self._translate_errors(FetchError, "Fetching PR diff"):
            return fetch_pull_request_diff(
                client=self._client,
                repo_full_name=f"{owner}/{repo}",
                pr_number=number,
            )

    def fetch_files(self, owner: str, repo: str, number: int) -> list[str]:
        with self._translate_errors(FetchError, "Fetching PR files"):
            return fetch_pull_request_file_paths(
                client=self._client,
                repo_full_name=f"{owner}/{repo}",
                pr_number=number,
            )

    def approve(self, owner: str, repo: str, number: int) -> None:
        with self._translate_errors(SubmissionError, "Approving PR"):
            submit_pull_request_review(
                client=self._client,
                repo_full_name=f"{owner}/{repo}",
                pr_number=number,
                event=REVIEW_EVENT_APPROVE,
            )

    def request_changes(self, owner: str, repo: str, number: int, comment: str) -> None:
        with self._translate_errors(SubmissionError, "Requesting changes"):
            submit_pull_request_review(
                client=self._client,
                repo_full_name=f"{owner}/{repo}",
                pr_number=number,
                event=REVIEW_EVENT_REQUEST_CHANGES,
                body=comment,
            )

    def check_auth(self) -> str:
        with self._translate_errors(AuthenticationError, "GitHub auth check"):
            return fetch_authenticated_user_login(client=self._client)

    def ambient_repository(self) -> str:
        return self._repository_lookup()
