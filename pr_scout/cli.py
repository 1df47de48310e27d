"""Typer CLI for guided pull request reviews."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Annotated, TypeVar

import httpx
import typer

from pr_scout.config import ScoutSettings, load_settings
from pr_scout.errors import ReviewError
from pr_scout.executor import CommandLineExecutor
from pr_scout.gateway import AnalysisGateway
from pr_scout.github_client import (
    GitHubApiError,
    GitHubAuthError,
    GitHubInputError,
    GitHubSourceControl,
    build_github_client,
    fetch_authenticated_user_login,
    fetch_pull_request_details,
    fetch_pull_request_file_paths,
    get_github_token_with_source,
)
from pr_scout.models import Envelope
from pr_scout.observability import configure_logging
from pr_scout.orchestrator import ReviewOrchestrator
from pr_scout.output import (
    render_feedback,
    render_file_view,
    render_groups,
    render_question,
    render_receipt,
    render_result,
    render_summary,
    render_summary_card,
)
from pr_scout.service import ReviewService
from pr_scout.session import ReviewStage

T = TypeVar("T")

app = typer.Typer(help="Walk through a GitHub pull request and pass a quiz before reviewing it.")

ReferenceArgument = Annotated[
    str, typer.Argument(help="Pull request URL, or a PR number in the current repository.")
]
VerboseOption = Annotated[bool, typer.Option(help="Print progress and debug logs.")]
TrustEnvOption = Annotated[
    bool,
    typer.Option(
        "--trust-env/--no-trust-env",
        help="Use proxy/SSL environment variables from the current shell.",
    ),
]


class _ReviewAborted(Exception):
    """Raised when a boundary operation fails and the walkthrough cannot continue."""


@contextmanager
def open_review_service(settings: ScoutSettings, *, trust_env: bool) -> Iterator[ReviewService]:
    """Wire the GitHub adapter and the AI gateway into a review service."""
    with build_github_client(
        timeout_seconds=settings.github_timeout_seconds,
        trust_env=trust_env,
    ) as client:
        gateway = AnalysisGateway(CommandLineExecutor.from_settings(settings))
        orchestrator = ReviewOrchestrator(GitHubSourceControl(client), gateway)
        yield ReviewService(orchestrator)


def _unwrap(envelope: Envelope[T], action: str) -> T:
    if not envelope.ok:
        typer.echo(f"{action} failed: {envelope.error}")
        raise _ReviewAborted(envelope.error)
    return envelope.data  # type: ignore[return-value]


def _load_settings_or_exit() -> ScoutSettings:
    try:
        return load_settings()
    except ValueError as error:
        typer.echo(f"Invalid configuration: {error}")
        raise typer.Exit(code=1) from error


@contextmanager
def _service_or_exit(settings: ScoutSettings, *, trust_env: bool) -> Iterator[ReviewService]:
    try:
        with open_review_service(settings, trust_env=trust_env) as service:
            yield service
    except GitHubAuthError as error:
        typer.echo(f"GitHub auth check failed: {error}")
        raise typer.Exit(code=1) from error
    except _ReviewAborted as error:
        raise typer.Exit(code=1) from error


def _load_pull_request(service: ReviewService, reference: str) -> None:
    fetched = _unwrap(service.resolve_and_fetch(reference), "Fetching pull request")
    typer.echo(render_summary_card(fetched.identifier, fetched.details))
    typer.echo("Generating summary...")
    typer.echo(render_summary(_unwrap(service.summarize(), "Summarizing")))
    typer.echo("Grouping files by feature...")
    _unwrap(service.group_files(), "Grouping files")


def _walkthrough(service: ReviewService) -> None:
    """Drive group overview and per-file navigation until the quiz is due."""
    orchestrator = service.orchestrator
    while True:
        stage = orchestrator.state.stage
        if stage is ReviewStage.QUIZ_PENDING:
            return

        if stage is ReviewStage.GROUPING:
            typer.echo(render_groups(orchestrator.session.groups))
            choice = typer.prompt("[w]alk files, group number, or [q]uiz", default="w")
            choice = choice.strip().lower()
            try:
                if choice == "q":
                    orchestrator.skip_to_quiz()
                elif choice.isdigit():
                    orchestrator.open_group(int(choice) - 1)
                else:
                    orchestrator.begin_walk()
            except ReviewError as error:
                typer.echo(str(error))
            continue

        state = orchestrator.state
        path = orchestrator.current_file()
        if path is None:
            raise _ReviewAborted("No file is selected in the walkthrough.")
        explanation = _unwrap(service.explain_file(path), "Explaining file")
        typer.echo(
            render_file_view(
                orchestrator.session.groups,
                group_index=state.group_index,
                file_index=state.file_index,
                explanation=explanation,
            )
        )
        choice = typer.prompt("[n]ext, [p]revious, [g]roups, [q]uiz", default="n")
        choice = choice.strip().lower()
        if choice == "p":
            orchestrator.previous_file()
        elif choice == "g":
            orchestrator.show_groups()
        elif choice == "q":
            orchestrator.show_groups()
            orchestrator.skip_to_quiz()
        else:
            orchestrator.next_file()


def _take_quiz(service: ReviewService) -> None:
    questions = _unwrap(service.generate_quiz(), "Generating quiz")
    orchestrator = service.orchestrator
    while orchestrator.state.stage is ReviewStage.QUIZ_IN_PROGRESS:
        index = orchestrator.state.question_index
        typer.echo(render_question(questions[index], index=index, total=len(questions)))
        envelope = service.answer(typer.prompt("Your answer"))
        if not envelope.ok:
            typer.echo(str(envelope.error))
            continue
        if envelope.data is not None:
            typer.echo(render_feedback(envelope.data))


def _decide(service: ReviewService) -> None:
    while True:
        choice = typer.prompt("[a]pprove, [r]equest changes, or [q]uit", default="q")
        choice = choice.strip().lower()
        if choice == "a":
            typer.echo(render_receipt(_unwrap(service.approve(), "Approving")))
            return
        if choice == "r":
            comment = typer.prompt("Comment", default="", show_default=False)
            envelope = service.request_changes(comment)
            if envelope.ok and envelope.data is not None:
                typer.echo(render_receipt(envelope.data))
                return
            typer.echo(f"Requesting changes failed: {envelope.error}")
            if envelope.error_type != "EmptyCommentError":
                raise _ReviewAborted(envelope.error)
            continue
        typer.echo("Leaving without submitting a review.")
        return


@app.command("review")
def review_command(
    reference: ReferenceArgument,
    verbose: VerboseOption = False,
    trust_env: TrustEnvOption = True,
) -> None:
    """Guided review: summary, per-file walkthrough, quiz, then approve or request changes."""
    configure_logging(verbose)
    settings = _load_settings_or_exit()
    with _service_or_exit(settings, trust_env=trust_env) as service:
        login = _unwrap(service.check_authentication(), "GitHub auth check")
        typer.echo(f"Authenticated as GitHub user '{login}'.")
        _load_pull_request(service, reference)

        orchestrator = service.orchestrator
        while True:
            _walkthrough(service)
            _take_quiz(service)
            result = orchestrator.session.quiz_result
            if result is None:
                raise _ReviewAborted("The quiz finished without a result.")
            typer.echo(render_result(result))
            if result.passed:
                _decide(service)
                return
            if not typer.confirm("Review the changes again?", default=True):
                return
            orchestrator.retry()


@app.command("summarize")
def summarize_command(
    reference: ReferenceArgument,
    verbose: VerboseOption = False,
    trust_env: TrustEnvOption = True,
) -> None:
    """Print the summary card, AI summary, and feature groups without prompting."""
    configure_logging(verbose)
    settings = _load_settings_or_exit()
    with _service_or_exit(settings, trust_env=trust_env) as service:
        _load_pull_request(service, reference)
        typer.echo(render_groups(service.orchestrator.session.groups))
        telemetry = service.orchestrator.telemetry
        if telemetry.degraded:
            typer.echo(f"Note: {len(telemetry.warnings)} AI step(s) used fallback output.")


@app.command("auth-check")
def auth_check_command(
    repo: Annotated[
        str | None,
        typer.Option(help="Optional repository in owner/repo format for permission check."),
    ] = None,
    pr: Annotated[
        int | None,
        typer.Option(help="Optional pull request number used with --repo for permission check."),
    ] = None,
    timeout_seconds: Annotated[
        int, typer.Option(help="GitHub API timeout in seconds for the validation call.")
    ] = 20,
    trust_env: TrustEnvOption = True,
) -> None:
    """Validate GitHub token setup and optional PR read access."""
    if (repo is None) != (pr is None):
        raise typer.BadParameter("Provide both --repo and --pr together, or neither.")

    try:
        _token, token_source = get_github_token_with_source()
    except GitHubAuthError as error:
        typer.echo(f"GitHub auth check failed: {error}")
        raise typer.Exit(code=1) from error

    typer.echo(f"Token detected in {token_source}.")

    try:
        with build_github_client(timeout_seconds=timeout_seconds, trust_env=trust_env) as client:
            login = fetch_authenticated_user_login(client=client)
            typer.echo(f"Authenticated as GitHub user '{login}'.")

            if repo is not None and pr is not None:
                fetch_pull_request_details(client=client, repo_full_name=repo, pr_number=pr)
                fetch_pull_request_file_paths(client=client, repo_full_name=repo, pr_number=pr)
                typer.echo(f"Repository/PR access check passed for {repo}#{pr}.")
    except GitHubApiError as error:
        typer.echo(
            "GitHub auth check failed: "
            f"status={error.status_code} endpoint={error.endpoint}."
        )
        raise typer.Exit(code=1) from error
    except GitHubInputError as error:
        typer.echo(f"GitHub auth check failed: {error}")
        raise typer.Exit(code=1) from error
    except httpx.HTTPError as error:
        typer.echo(f"GitHub auth check failed: network error ({error}).")
        raise typer.Exit(code=1) from error

    typer.echo("GitHub token setup is valid.")
