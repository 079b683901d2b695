"""Error taxonomy shared by the client, the caches and the orchestrator.

  - QueryValidationError: malformed caller input, rejected before any I/O
  - FetchError: anything that went wrong talking to the remote catalog
  - QuotaExceededError: durable storage is full (handled inside the cache store)

A confirmed-absent object is not an error; see ``schemas.NOT_FOUND``.
"""


class ExplorerError(Exception):
    """Base class for all collection explorer errors."""


class QueryValidationError(ExplorerError, ValueError):
    """Caller supplied an empty query, a non-positive id, etc."""


class FetchError(ExplorerError):
    """Remote call failed: transport, non-success status or bad payload."""


class CatalogApiError(FetchError):
    """Remote catalog answered with a non-success HTTP status."""

    def __init__(self, message: str, status: int | None = None, response_body: str = ""):
        super().__init__(message)
        self.status = status
        self.response_body = response_body


class ResponseShapeError(FetchError):
    """Payload did not match the expected response shape."""


class TransportError(FetchError):
    """Network-level failure (timeout, refused connection, ...)."""


class QuotaExceededError(ExplorerError):
    """Durable storage rejected a write because its size limit was reached."""
