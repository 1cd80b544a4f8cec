"""Error taxonomy for the match pipeline.

Every error carries the HTTP status the API layer should answer with.
Nothing in the pipeline retries; callers decide.
"""

from typing import Optional


class PipelineError(Exception):
    """Base class for all pipeline errors."""

    http_status = 500
    label = "Pipeline error"

    def to_dict(self) -> dict:
        return {"error": self.label, "details": str(self)}


class ConfigurationError(PipelineError):
    """Missing credential or identifier configuration. Never retried."""

    http_status = 400
    label = "Configuration error"


class NotFoundError(PipelineError):
    """Remote match or tournament does not exist."""

    http_status = 404
    label = "Not found"

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} '{identifier}' not found")


class TransportError(PipelineError):
    """Remote service answered non-2xx, or the request never completed.

    status_code is 0 for network failures and timeouts.
    """

    http_status = 502
    label = "PUBG API error"

    def __init__(self, status_code: int, body: str = "", endpoint: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        self.endpoint = endpoint
        super().__init__(f"PUBG API {status_code}: {body}")


class PersistenceError(PipelineError):
    """A write failed while normalizing one match document."""

    http_status = 500
    label = "Persistence error"

    def __init__(self, match_id: Optional[str], cause: Exception):
        self.match_id = match_id
        self.cause = cause
        super().__init__(f"Failed to persist match {match_id}: {cause}")
