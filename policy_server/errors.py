"""
Policy Search Server - Errors

Exception taxonomy for the search pipeline and the access gate.
"""

from typing import List, Optional


class PolicySearchError(Exception):
    """Base class for errors raised by the policy search server."""

    status_code = 500
    error_code = "server_error"
    public_message = "An unexpected error occurred. Please try again later."


class Unauthenticated(PolicySearchError):
    """No valid session or API key.

    The message is identical for every cause so callers cannot tell an
    unknown key from an expired or rotated one.
    """

    status_code = 401
    error_code = "unauthenticated"
    public_message = "Unauthorized"

    def __init__(self, reason: str = "missing credentials") -> None:
        super().__init__(self.public_message)
        # Logged server-side only
        self.reason = reason


class InsecureTransport(PolicySearchError):
    """Extension request arrived over plain HTTP while HTTPS is required."""

    status_code = 403
    error_code = "https_required"
    public_message = "HTTPS is required"


class InvalidQuery(PolicySearchError):
    """Search text is missing or blank."""

    status_code = 400
    error_code = "invalid_query"
    public_message = "Query is required"


class PolicyNotFound(PolicySearchError):
    """Requested policy does not exist in the corpus."""

    status_code = 404
    error_code = "policy_not_found"
    public_message = "Policy not found"


class CorpusUnavailable(PolicySearchError):
    """The policy corpus could not be listed."""

    status_code = 503
    error_code = "corpus_unavailable"
    public_message = "Policies are temporarily unavailable. Please try again later."


class ModelUnavailable(PolicySearchError):
    """Every configured model endpoint failed for one invocation.

    Attributes:
        failures: EndpointFailure records, one per attempted endpoint.
    """

    status_code = 503
    error_code = "model_unavailable"
    public_message = (
        "The policy assistant is temporarily unavailable. Please try again later."
    )

    def __init__(self, message: str, failures: Optional[List] = None) -> None:
        super().__init__(message)
        self.failures = list(failures or [])


class MalformedModelOutput(PolicySearchError):
    """Raw model output could not be read as a structured answer.

    Raised and absorbed inside the response normalizer.
    """

    error_code = "malformed_model_output"
