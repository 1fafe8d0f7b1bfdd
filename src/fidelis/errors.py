"""Structured error handling with context + cause + fix pattern.

All Fidelis errors follow the same shape:
- Context: What operation was being attempted
- Cause: Why it failed
- Fix: How to resolve the issue

The CLI renders the three parts separately; library callers can match on
the concrete subclass.
"""

from __future__ import annotations


class FidelisError(Exception):
    """Base error with structured messaging."""

    def __init__(self, context: str, cause: str, fix: str) -> None:
        self.context = context
        self.cause = cause
        self.fix = fix
        message = f"{context}\n\nCause: {cause}\n\nFix: {fix}"
        super().__init__(message)

    def to_dict(self) -> dict:
        """Serialize error to structured dict for JSON output."""
        return {
            "error": True,
            "code": type(self).__name__,
            "context": self.context,
            "cause": self.cause,
            "fix": self.fix,
        }


class ConfigurationError(FidelisError):
    """Configuration file or settings related errors."""

    pass


class ConfigNotFoundError(ConfigurationError):
    """Configuration file not found."""

    def __init__(self, path: str) -> None:
        super().__init__(
            context=f"Loading configuration from '{path}'",
            cause="Configuration file not found",
            fix=f"Create a fidelis.yaml file at '{path}' with at least 'name', 'passcode' and 'store'",
        )


class ConfigValidationError(ConfigurationError):
    """Configuration validation failed."""

    def __init__(self, path: str, details: str) -> None:
        super().__init__(
            context=f"Validating configuration from '{path}'",
            cause=details,
            fix="Check the configuration file matches the expected schema (name, passcode, store, sync, rewards).",
        )


class AuthenticationError(FidelisError):
    """The shared passcode did not match."""

    def __init__(self) -> None:
        super().__init__(
            context="Unlocking the loyalty register",
            cause="The passcode is incorrect",
            fix="Pass the shop passcode with --passcode or set FIDELIS_PASSCODE",
        )


class NotFoundError(FidelisError):
    """A referenced customer, card or transaction does not exist."""

    def __init__(self, kind: str, id: str) -> None:
        self.kind = kind
        self.id = id
        super().__init__(
            context=f"Looking up {kind} '{id}'",
            cause=f"No {kind} with id '{id}' exists",
            fix=f"Run 'fidelis customers' to list existing ids and retry with a valid {kind} id",
        )


class InvalidFormatError(FidelisError):
    """Data being imported or pulled does not have the dataset shape."""

    def __init__(self, details: str, context: str = "Reading loyalty data") -> None:
        super().__init__(
            context=context,
            cause=details,
            fix="Provide a JSON document with 'customers', 'cards' and 'transactions' arrays (as produced by 'fidelis export')",
        )


class SyncFailureError(FidelisError):
    """Network or parse failure while talking to the sync endpoint."""

    def __init__(self, url: str, details: str) -> None:
        self.url = url
        super().__init__(
            context=f"Synchronizing with '{url}'",
            cause=details,
            fix="Check the network connection and the endpoint with 'fidelis sync-url'; local data is unchanged",
        )


class StoreError(FidelisError):
    """Key-value store driver errors."""

    pass
