"""Azure DevOps API exceptions."""

from typing import Optional


class AzureDevOpsAPIError(Exception):
    """Base exception for Azure DevOps API errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
    ):
        """Initialize Azure DevOps API error.

        Args:
            message: Error message
            status_code: HTTP status code
            response_body: Raw response body from the API
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response_body = response_body

    def describe(self, trace: bool = False) -> str:
        """Operator-facing description.

        The response body may carry sensitive content and is only included
        when ``trace`` is set.
        """
        text = self.message
        if self.status_code is not None and f'HTTP {self.status_code}' not in text:
            text = f'{text} (HTTP {self.status_code})'
        if trace and self.response_body:
            text = f'{text}: {self.response_body}'
        return text


class AzureDevOpsAuthenticationError(AzureDevOpsAPIError):
    """Authentication error; Azure DevOps answers bad credentials with a redirect."""

    pass


class AzureDevOpsPermissionError(AzureDevOpsAPIError):
    """Permission denied error."""

    pass


class AzureDevOpsNotFoundError(AzureDevOpsAPIError):
    """Resource not found error."""

    pass


class AzureDevOpsRateLimitError(AzureDevOpsAPIError):
    """Rate limit exceeded error."""

    def __init__(self, message: str, retry_after: int = 60, **kwargs):
        """Initialize rate limit error.

        Args:
            message: Error message
            retry_after: Seconds to wait before retry
            **kwargs: Additional arguments for base class
        """
        super().__init__(message, **kwargs)
        self.retry_after = retry_after
