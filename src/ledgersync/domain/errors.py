"""Shared domain error messages and error types."""


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations."""


class ConcurrencyError(DomainError):
    """Another ingestion attempt-group is already running."""


class PersistenceConflict(ConflictError):
    """Existing rows prevent a stricter uniqueness guarantee from being created."""


class CollectionError(DomainError):
    """The scraping collaborator failed to deliver a usable result.

    Attributes:
        error_type: Collaborator error tag (e.g. ``TIMEOUT``), if one was reported
    """

    retryable = True

    def __init__(self, message: str, error_type: str | None = None):
        super().__init__(message)
        self.error_type = error_type


class TransientCollectionError(CollectionError):
    """Malformed response, navigation/frame failure or timeout. Safe to retry."""

    retryable = True


class TerminalCollectionError(CollectionError):
    """Invalid credentials or a locked account. Retrying cannot help."""

    retryable = False


def credential_not_found(credential_id: int) -> str:
    """Return message for missing credential."""
    return f"Credential {credential_id} not found"


def transaction_not_found(identifier: str, vendor: str) -> str:
    """Return message for missing transaction."""
    return f"Transaction '{identifier}' ({vendor}) not found"


def unknown_vendor(vendor: str) -> str:
    """Return message for a vendor id with no integration."""
    return f"Unknown vendor '{vendor}'"


def scrape_already_running(event_id: int, vendor: str) -> str:
    """Return message when the concurrency guard rejects a run."""
    return (
        f"Another scrape is already running (event {event_id}, vendor '{vendor}'). "
        "Wait for it to finish and try again."
    )
