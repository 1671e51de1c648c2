"""Azure DevOps REST API client implementation."""

import asyncio
import base64
import json
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import aiohttp
import requests
from loguru import logger
from pydantic import BaseModel, ValidationError

from ..config.config import AzureDevOpsInstanceConfig
from ..migration.interfaces import CatalogClient
from ..models.repository import RepositoryDescriptor, Scope
from ..utils.security import with_credentials
from .exceptions import (
    AzureDevOpsAPIError,
    AzureDevOpsAuthenticationError,
    AzureDevOpsNotFoundError,
    AzureDevOpsPermissionError,
    AzureDevOpsRateLimitError,
)

USER_AGENT = 'azdo-migrate/0.1.0'
REPOSITORIES_PATH = '_apis/git/repositories'

DEFAULT_RETRY_AFTER = 60


class APIResponse(BaseModel):
    """Standard API response wrapper."""

    status_code: int
    data: Any
    headers: Dict[str, str]
    success: bool


def parse_retry_after(headers: Dict[str, str]) -> int:
    """Seconds from a ``Retry-After`` header, matched case-insensitively.

    The HTTP-date form and malformed values fall back to the default.
    """
    for key, value in headers.items():
        if key.lower() == 'retry-after':
            try:
                return max(int(value.strip()), 0)
            except ValueError:
                return DEFAULT_RETRY_AFTER
    return DEFAULT_RETRY_AFTER


def basic_auth(token: str) -> str:
    """Authorization header value for a personal access token."""
    encoded = base64.b64encode(f':{token}'.encode('utf-8')).decode('ascii')
    return f'Basic {encoded}'


class AzureDevOpsClient(CatalogClient):
    """Azure DevOps Git repositories API client with PAT authentication.

    Redirects are never followed: Azure DevOps answers requests carrying an
    invalid or expired token with a redirect to its sign-in page, so a 3xx
    response is reported as an authentication failure.
    """

    def __init__(self, config: AzureDevOpsInstanceConfig, trace: bool = False):
        """Initialize Azure DevOps client.

        Args:
            config: Azure DevOps instance configuration
            trace: Log every request and include response bodies in errors
        """
        if not config.token:
            raise AzureDevOpsAuthenticationError('No personal access token provided')

        self.config = config
        self.trace = trace
        self.base_url = config.url.rstrip('/')
        self.logger = logger.bind(component='AzureDevOpsClient')

        self.headers = {
            'Authorization': basic_auth(config.token),
            'Accept': 'application/json',
            'User-Agent': USER_AGENT,
        }
        self.session = requests.Session()
        self.session.headers.update(self.headers)

    def _build_url(self, scope: Scope, path: str) -> str:
        """Build full API URL for a scope-relative path.

        A project of ``-`` addresses the organization level.
        """
        project = scope.project.strip()
        if not project or project == '-':
            return f'{self.base_url}/{quote(scope.organization, safe="")}/{path}'
        return (
            f'{self.base_url}/{quote(scope.organization, safe="")}/'
            f'{quote(project, safe="")}/{path}'
        )

    def _params(self, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        merged = {'api-version': self.config.api_version}
        if params:
            merged.update(params)
        return merged

    def _check_status(
        self, status: int, headers: Dict[str, str], body: Optional[str]
    ) -> None:
        """Raise the exception matching an unsuccessful status code.

        Raises:
            AzureDevOpsAPIError: For redirects and client/server errors
        """
        if self.trace and status >= 300 and body:
            self.logger.debug(f'Response body (HTTP {status}): {body}')

        if 300 <= status < 400:
            location = headers.get('Location') or headers.get('location') or ''
            raise AzureDevOpsAuthenticationError(
                f'Authentication failed: redirect (HTTP {status}) '
                f'to {location or "unknown location"}, check the personal access token',
                status_code=status,
                response_body=body,
            )

        if status == 401:
            raise AzureDevOpsAuthenticationError(
                'Authentication failed', status_code=status, response_body=body
            )

        if status == 403:
            raise AzureDevOpsPermissionError(
                'Permission denied', status_code=status, response_body=body
            )

        if status == 404:
            raise AzureDevOpsNotFoundError(
                'Resource not found', status_code=status, response_body=body
            )

        if status == 429:
            retry_after = parse_retry_after(headers)
            raise AzureDevOpsRateLimitError(
                f'Rate limit exceeded. Retry after {retry_after} seconds',
                retry_after=retry_after,
                status_code=status,
                response_body=body,
            )

        if status >= 400:
            message = f'HTTP {status}'
            try:
                error_data = json.loads(body) if body else None
                if isinstance(error_data, dict) and error_data.get('message'):
                    message = f'HTTP {status}: {error_data["message"]}'
            except ValueError:
                pass
            raise AzureDevOpsAPIError(
                f'API request failed: {message}', status_code=status, response_body=body
            )

    @staticmethod
    def _parse_body(body: Optional[str]) -> Any:
        if not body:
            return None
        try:
            return json.loads(body)
        except ValueError:
            return body

    def _handle_response(self, response: requests.Response) -> APIResponse:
        """Handle API response and convert to standard format.

        Args:
            response: Raw HTTP response

        Returns:
            Standardized API response

        Raises:
            AzureDevOpsAPIError: For various API errors
        """
        headers = dict(response.headers)
        body = response.text
        self._check_status(response.status_code, headers, body)

        return APIResponse(
            status_code=response.status_code,
            data=self._parse_body(body),
            headers=headers,
            success=200 <= response.status_code < 300,
        )

    def get(self, url: str, params: Optional[Dict[str, Any]] = None) -> APIResponse:
        """Make GET request.

        Args:
            url: Full API URL
            params: Query parameters

        Returns:
            API response
        """
        if self.trace:
            self.logger.debug(f'GET {url}')

        try:
            response = self.session.get(
                url,
                params=self._params(params),
                allow_redirects=False,
                timeout=self.config.timeout,
            )
        except requests.RequestException as e:
            self.logger.error(f'Network error during GET request: {e}')
            raise AzureDevOpsAPIError(f'Network error: {e}')
        return self._handle_response(response)

    async def _make_request_async(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> APIResponse:
        """Make asynchronous API request.

        Args:
            method: HTTP method
            url: Full API URL
            params: Query parameters
            data: Request body data

        Returns:
            API response
        """
        if self.trace:
            self.logger.debug(f'{method} {url}')

        timeout = aiohttp.ClientTimeout(total=self.config.timeout)
        try:
            async with aiohttp.ClientSession(
                headers=self.headers, timeout=timeout
            ) as session:
                async with session.request(
                    method=method,
                    url=url,
                    params=self._params(params),
                    json=data,
                    allow_redirects=False,
                ) as response:
                    response_headers = dict(response.headers)
                    body = await response.text()
                    self._check_status(response.status, response_headers, body)

                    return APIResponse(
                        status_code=response.status,
                        data=self._parse_body(body),
                        headers=response_headers,
                        success=200 <= response.status < 300,
                    )

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.error(f'Network error during {method} request: {e!r}')
            raise AzureDevOpsAPIError(f'Network error: {e!r}')

    async def get_async(
        self, url: str, params: Optional[Dict[str, Any]] = None
    ) -> APIResponse:
        """Make asynchronous GET request."""
        return await self._make_request_async('GET', url, params=params)

    async def post_async(
        self, url: str, data: Optional[Dict[str, Any]] = None
    ) -> APIResponse:
        """Make asynchronous POST request."""
        return await self._make_request_async('POST', url, data=data)

    def _parse_repositories(self, response: APIResponse) -> List[RepositoryDescriptor]:
        data = response.data
        if not isinstance(data, dict) or not isinstance(data.get('value'), list):
            raise AzureDevOpsAPIError(
                'Invalid response: repository list expected',
                status_code=response.status_code,
                response_body=json.dumps(data) if data is not None else None,
            )
        try:
            return [RepositoryDescriptor.model_validate(item) for item in data['value']]
        except ValidationError as e:
            raise AzureDevOpsAPIError(
                f'Invalid response: {e}', status_code=response.status_code
            )

    def list_repositories(self, scope: Scope) -> List[RepositoryDescriptor]:
        """List the repositories of a scope (synchronous).

        Args:
            scope: Organization/project to list

        Returns:
            Repositories in API order
        """
        response = self.get(self._build_url(scope, REPOSITORIES_PATH))
        repositories = self._parse_repositories(response)
        self.logger.info(f'Retrieved {len(repositories)} repositories from {scope}')
        return repositories

    async def list_repositories_async(self, scope: Scope) -> List[RepositoryDescriptor]:
        """List the repositories of a scope.

        Args:
            scope: Organization/project to list

        Returns:
            Repositories in API order
        """
        response = await self.get_async(self._build_url(scope, REPOSITORIES_PATH))
        repositories = self._parse_repositories(response)
        self.logger.info(f'Retrieved {len(repositories)} repositories from {scope}')
        return repositories

    async def create_repository_async(
        self, scope: Scope, name: str
    ) -> RepositoryDescriptor:
        """Create an empty repository.

        Args:
            scope: Organization/project receiving the repository
            name: Repository name

        Returns:
            Descriptor of the created repository
        """
        response = await self.post_async(
            self._build_url(scope, REPOSITORIES_PATH), data={'name': name}
        )
        if response.status_code not in (200, 201):
            raise AzureDevOpsAPIError(
                f'Repository creation failed (HTTP {response.status_code})',
                status_code=response.status_code,
                response_body=json.dumps(response.data)
                if response.data is not None
                else None,
            )

        self.logger.info(f'Created repository {name} in {scope}')
        if isinstance(response.data, dict) and response.data.get('name'):
            try:
                return RepositoryDescriptor.model_validate(response.data)
            except ValidationError:
                pass
        return RepositoryDescriptor(
            name=name,
            clone_url=self.git_url(scope, name),
            web_url=self.web_url(scope, name),
        )

    def web_url(self, scope: Scope, name: str) -> str:
        """Browser URL of a repository."""
        return (
            f'{self.base_url}/{quote(scope.organization, safe="")}/'
            f'{quote(scope.project, safe="")}/_git/{quote(name, safe="")}'
        )

    def git_url(self, scope: Scope, name: str, authenticated: bool = False) -> str:
        """Git remote URL, optionally carrying ``user:<PAT>`` credentials."""
        url = self.web_url(scope, name)
        if authenticated:
            return with_credentials(url, self.config.token)
        return url

    def close(self):
        """Close the client session."""
        self.session.close()
        self.logger.debug('Azure DevOps client session closed')

    async def close_async(self) -> None:
        self.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()


class AzureDevOpsClientFactory:
    """Factory for creating Azure DevOps API clients."""

    @staticmethod
    def create_client(
        config: AzureDevOpsInstanceConfig, trace: bool = False
    ) -> AzureDevOpsClient:
        """Create Azure DevOps client from configuration.

        Args:
            config: Azure DevOps instance configuration
            trace: Enable request tracing

        Returns:
            Configured Azure DevOps client

        Raises:
            AzureDevOpsAuthenticationError: If no token is configured
        """
        if not config.token:
            raise AzureDevOpsAuthenticationError(
                f'Personal access token missing for {config.organization}/{config.project}'
            )

        return AzureDevOpsClient(config, trace=trace)
