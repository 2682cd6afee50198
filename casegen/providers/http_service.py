"""Generation service implementation using direct REST API calls."""

from typing import Any, TypeVar

import httpx
import pydantic
import structlog
from pydantic import BaseModel, ConfigDict, Field

from casegen.enums import Stage
from casegen.exceptions import RemoteOperationError
from casegen.models.domain import FileContent, TestSummary
from casegen.providers.base import GenerationService
from casegen.utils.connection_pool import HTTPConnectionPool, PoolKey, get_pool

log = structlog.get_logger(__name__)

ResponseT = TypeVar("ResponseT", bound=BaseModel)

# Longest response body kept on an error for diagnostics
MAX_ERROR_TEXT = 500


class _FilesResponse(BaseModel):
    files: list[str]


class _ContentResponse(BaseModel):
    content: str


class _SummaryItem(BaseModel):
    id: int | str
    summary: str


class _SummariesResponse(BaseModel):
    summaries: list[_SummaryItem]


class _CodeResponse(BaseModel):
    code: str


class _PullRequestResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    pr_url: str = Field(alias="prUrl")


class HttpGenerationService(GenerationService):
    """Generation service reached over HTTP with JSON bodies.

    Every stage is a ``POST`` to a fixed endpoint under ``base_url``. Failures
    are translated into ``RemoteOperationError``:

    - a non-2xx status keeps ``status_code`` and the response text,
    - a transport failure (connect error, timeout) sets ``transport=True``,
    - a body that is not JSON or does not match the expected shape is
      reported as malformed together with its status code.
    """

    FILES_ENDPOINT = "/api/files"
    CONTENT_ENDPOINT = "/api/file-content"
    SUMMARIES_ENDPOINT = "/api/generate-summaries"
    CODE_ENDPOINT = "/api/generate-code"
    PULL_REQUEST_ENDPOINT = "/api/create-pr"

    def __init__(
        self,
        base_url: str,
        timeout: float = 60.0,
        max_connections: int = 10,
        http2: bool = False,
        headers: dict[str, str] | None = None,
    ):
        """Initialize the HTTP generation service.

        Args:
            base_url: Service base URL (e.g., https://api.example.com)
            timeout: Per-request timeout in seconds
            max_connections: Maximum pooled connections
            http2: Whether to negotiate HTTP/2
            headers: Extra headers sent with every request
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_connections = max_connections
        self.http2 = http2
        self.headers = {"Content-Type": "application/json", **(headers or {})}
        self._pool: HTTPConnectionPool | None = None

    @property
    def pool_key(self) -> PoolKey:
        """Identity of the shared client this service may use."""
        return PoolKey.create(
            self.base_url,
            headers=self.headers,
            timeout=self.timeout,
            max_connections=self.max_connections,
            http2=self.http2,
        )

    async def connect(self) -> None:
        """Attach to the shared connection pool for this service's settings."""
        self._pool = get_pool(self.pool_key)
        log.info("generation_service_connected", base_url=self.base_url)

    async def disconnect(self) -> None:
        """Clear pool reference (close_all_pools handles actual cleanup)."""
        self._pool = None

    async def __aenter__(self) -> "HttpGenerationService":
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit."""
        await self.disconnect()

    async def list_files(self, repository_reference: str) -> list[str]:
        """List repository files via REST API."""
        log.info("list_files", repository=repository_reference)

        data = await self._post(
            Stage.LISTING,
            self.FILES_ENDPOINT,
            {"repoUrl": repository_reference},
            _FilesResponse,
            failure="Failed to fetch files from the repository",
        )
        return data.files

    async def fetch_file_content(self, repository_reference: str, path: str) -> str:
        """Fetch one file's content via REST API."""
        log.debug("fetch_file_content", repository=repository_reference, path=path)

        data = await self._post(
            Stage.CONTENT_FETCH,
            self.CONTENT_ENDPOINT,
            {"repoUrl": repository_reference, "filePath": path},
            _ContentResponse,
            failure="Failed to fetch file content",
            path=path,
        )
        return data.content

    async def generate_summaries(self, contents: list[FileContent]) -> list[TestSummary]:
        """Request test-case summaries via REST API."""
        log.info("generate_summaries", file_count=len(contents))

        data = await self._post(
            Stage.SUMMARY_GENERATION,
            self.SUMMARIES_ENDPOINT,
            {"filesContent": [c.to_payload() for c in contents]},
            _SummariesResponse,
            failure="Failed to generate test case summaries",
        )
        return [TestSummary(id=item.id, summary=item.summary) for item in data.summaries]

    async def generate_code(self, summary: str, contents: list[FileContent]) -> str:
        """Request test code for one summary via REST API."""
        log.info("generate_code", file_count=len(contents))

        data = await self._post(
            Stage.CODE_GENERATION,
            self.CODE_ENDPOINT,
            {"summary": summary, "filesContent": [c.to_payload() for c in contents]},
            _CodeResponse,
            failure="Failed to generate test case code",
        )
        return data.code

    async def create_change_request(self, repository_reference: str, code: str, file_name: str) -> str:
        """Open a pull request with the generated test via REST API."""
        log.info("create_change_request", repository=repository_reference, file_name=file_name)

        data = await self._post(
            Stage.SUBMISSION,
            self.PULL_REQUEST_ENDPOINT,
            {"repoUrl": repository_reference, "testCaseCode": code, "fileName": file_name},
            _PullRequestResponse,
            failure="Failed to create pull request",
        )
        return data.pr_url

    async def _post(
        self,
        stage: Stage,
        endpoint: str,
        payload: dict[str, Any],
        response_model: type[ResponseT],
        failure: str,
        path: str | None = None,
    ) -> ResponseT:
        """POST a JSON body and validate the JSON response.

        Raises:
            RemoteOperationError: On transport failure, non-2xx status, or a
                response body that does not match ``response_model``.
        """
        if self._pool is None:
            await self.connect()
        assert self._pool is not None

        try:
            response = await self._pool.post(endpoint, json=payload)
        except httpx.TransportError as e:
            log.error("service_unreachable", stage=str(stage), endpoint=endpoint, path=path, error=str(e))
            raise RemoteOperationError(
                f"{failure}: {str(e) or type(e).__name__}",
                stage=stage,
                path=path,
                transport=True,
            ) from e

        if not response.is_success:
            log.error(
                "service_request_failed",
                stage=str(stage),
                endpoint=endpoint,
                path=path,
                status_code=response.status_code,
            )
            raise RemoteOperationError(
                failure,
                stage=stage,
                path=path,
                status_code=response.status_code,
                response_text=response.text[:MAX_ERROR_TEXT],
            )

        try:
            return response_model.model_validate(response.json())
        except (ValueError, pydantic.ValidationError) as e:
            log.error(
                "service_response_malformed",
                stage=str(stage),
                endpoint=endpoint,
                path=path,
                status_code=response.status_code,
                error=str(e),
            )
            raise RemoteOperationError(
                f"{failure}: malformed response",
                stage=stage,
                path=path,
                status_code=response.status_code,
                response_text=response.text[:MAX_ERROR_TEXT],
            ) from e
