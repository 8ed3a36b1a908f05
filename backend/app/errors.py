"""Domain exception taxonomy.

Routes translate these into HTTP status codes (see ``backend.app.main``) and
the protocol endpoint translates them into JSON-RPC error codes.
"""


class InkyError(Exception):
    """Base class for all domain errors."""

    pass


class ValidationError(InkyError):
    """Malformed input, rejected before any side effect."""

    pass


class StaleVersionError(ValidationError):
    """Update targeted a rule version that already has a successor."""

    pass


class AuthError(InkyError):
    """Missing or invalid credentials."""

    pass


class NotFoundError(InkyError):
    """Record absent or not owned by the caller."""

    pass


class RemoteServiceError(InkyError):
    """Embedding, LLM, vector index or GitHub call failed."""

    def __init__(self, service: str, message: str) -> None:
        super().__init__(f"{service}: {message}")
        self.service = service


class GenerationError(InkyError):
    """LLM returned empty content."""

    pass
