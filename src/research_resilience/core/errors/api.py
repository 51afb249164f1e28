"""API response error classes.

Records of failed upstream responses. Their messages are shaped so the
substring classifier sorts them into the right category.
"""

from typing import Optional

_BODY_EXCERPT_LIMIT = 200


class HttpStatusError(Exception):
    """Non-2xx response from an upstream API.

    Attributes:
        status_code: HTTP status returned by the upstream service.
        body: Response body excerpt (truncated).
        endpoint: Name of the endpoint that answered.
    """

    def __init__(
        self,
        status_code: int,
        body: str = "",
        endpoint: Optional[str] = None,
    ):
        self.status_code = status_code
        self.body = (body or "").strip()[:_BODY_EXCERPT_LIMIT]
        self.endpoint = endpoint
        detail = self.body or "no response body"
        super().__init__(f"API error {status_code}: {detail}")


class ResponseParseError(Exception):
    """A successful response carried a body that could not be parsed.

    Attributes:
        endpoint: Name of the endpoint that answered.
        original_error: The underlying decode error.
    """

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.endpoint = endpoint
        self.original_error = original_error
