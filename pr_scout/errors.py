"""Error taxonomy for the review workflow."""

from __future__ import annotations


class ReviewError(Exception):
    """Base class for errors surfaced by the review workflow."""


class InvalidReferenceError(ReviewError, ValueError):
    """Raised when a pull request reference is neither a URL nor a number."""


class AmbiguousReferenceError(ReviewError):
    """Raised when a bare PR number cannot be tied to a repository."""


class RepositoryLookupError(ReviewError):
    """Raised when the ambient repository cannot be determined."""


class AuthenticationError(ReviewError):
    """Raised when the source-control adapter is not authenticated."""


class FetchError(ReviewError):
    """Raised when PR metadata, diff, or file list retrieval fails."""


class SubmissionError(ReviewError):
    """Raised when approving or requesting changes fails."""


class AIUnavailableError(ReviewError):
    """Raised inside the executor when a backend produced no usable output."""


class SessionStateError(ReviewError):
    """Raised when an operation is not valid for the current session stage."""


class InvalidTransitionError(SessionStateError):
    """Raised when an event is not accepted by the current state."""


class SessionBusyError(ReviewError):
    """Raised when a collaborator call is already outstanding for the session."""


class EmptyCommentError(ReviewError, ValueError):
    """Raised when a change request is submitted without a comment."""


class UnknownTaskError(ReviewError, ValueError):
    """Raised when the gateway is asked to run a task it does not know."""
