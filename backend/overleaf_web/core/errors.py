"""Exception hierarchy shared by the proxy, import and learn layers.

Errors are grouped so that the HTTP layer can map a failure to a status code
without knowing which stage raised it. Internal functions wrap failures with
:func:`tag` to record the stage ("download file", "move target", ...); the
original error stays reachable through :func:`get_cause`.
"""

from __future__ import annotations

from typing import Iterable

__all__ = [
    "OverleafError",
    "PublicError",
    "ValidationError",
    "UnprocessableEntityError",
    "BodyTooLargeError",
    "UpstreamError",
    "NotFoundError",
    "NotAuthorizedError",
    "InvalidStateError",
    "CancelledError",
    "MergedError",
    "TaggedError",
    "tag",
    "get_cause",
    "merge",
    "public_message",
    "is_validation_error",
    "is_unprocessable_entity",
    "is_body_too_large",
    "is_not_found",
]


class OverleafError(Exception):
    """Base exception for backend failures."""


class PublicError(OverleafError):
    """Failure whose message may be shown to the user verbatim."""


class ValidationError(PublicError):
    """Raised for malformed or missing request fields."""


class UnprocessableEntityError(PublicError):
    """Raised when an upstream explicitly rejected the request."""

    def __init__(self, msg: str) -> None:
        super().__init__(f"unprocessable entity: {msg}")
        self.msg = msg


class BodyTooLargeError(PublicError):
    """Raised when a response exceeds the configured size ceiling."""

    def __init__(self, msg: str = "body too large") -> None:
        super().__init__(msg)


class NotFoundError(PublicError):
    def __init__(self, msg: str = "not found") -> None:
        super().__init__(msg)


class NotAuthorizedError(PublicError):
    def __init__(self, msg: str = "not authorized") -> None:
        super().__init__(msg)


class InvalidStateError(PublicError):
    def __init__(self, msg: str) -> None:
        super().__init__(f"invalid state: {msg}")
        self.msg = msg


class UpstreamError(OverleafError):
    """Generic non-success from the proxy or a network failure."""

    def __init__(self, msg: str, *, status_code: int | None = None) -> None:
        super().__init__(msg)
        self.status_code = status_code


class CancelledError(OverleafError):
    """Raised when work observes a cancelled token."""

    def __init__(self, msg: str = "operation cancelled") -> None:
        super().__init__(msg)


class TaggedError(OverleafError):
    """Wraps a cause with a short description of the failing stage."""

    def __init__(self, stage: str, cause: BaseException) -> None:
        super().__init__(f"{stage}: {cause}")
        self.stage = stage
        self.cause = cause
        self.__cause__ = cause


class MergedError(OverleafError):
    """Aggregate of independent failures, e.g. from a cache sweep."""

    def __init__(self, errors: Iterable[BaseException]) -> None:
        self.errors = list(errors)
        if len(self.errors) == 1:
            message = str(self.errors[0])
        else:
            message = "merged: " + " + ".join(str(err) for err in self.errors)
        super().__init__(message)


def tag(err: BaseException, stage: str) -> TaggedError:
    """Return ``err`` wrapped with ``stage``; use as ``raise tag(exc, "stage") from exc``."""
    return TaggedError(stage, err)


def get_cause(err: BaseException | None) -> BaseException | None:
    """Unwrap tagged errors down to the originating exception."""
    while isinstance(err, TaggedError):
        err = err.cause
    return err


def merge(errors: Iterable[BaseException | None]) -> BaseException | None:
    """Collapse a collection of optional errors into none, one, or a MergedError."""
    collected = [err for err in errors if err is not None]
    if not collected:
        return None
    if len(collected) == 1:
        return collected[0]
    return MergedError(collected)


def public_message(err: BaseException) -> str:
    """Message safe to expose to the client."""
    if isinstance(err, PublicError):
        return str(err)
    if isinstance(err, TaggedError):
        return public_message(err.cause)
    return "internal server error"


def is_validation_error(err: BaseException) -> bool:
    return isinstance(get_cause(err), ValidationError)


def is_unprocessable_entity(err: BaseException) -> bool:
    return isinstance(get_cause(err), UnprocessableEntityError)


def is_body_too_large(err: BaseException) -> bool:
    return isinstance(get_cause(err), BodyTooLargeError)


def is_not_found(err: BaseException) -> bool:
    return isinstance(get_cause(err), NotFoundError)
