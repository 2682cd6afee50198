"""Pytest configuration and shared fixtures."""

import asyncio
from typing import Any

import pytest
from structlog.testing import capture_logs

from casegen.config.settings import WorkflowConfig
from casegen.engine.workflow import WorkflowEngine
from casegen.enums import Stage
from casegen.exceptions import RemoteOperationError
from casegen.models.domain import FileContent, TestSummary
from casegen.providers.base import GenerationService

REPO_URL = "https://example.com/r"


class FakeGenerationService(GenerationService):
    """Scriptable in-memory generation service.

    Every call is recorded in ``calls``. Failures are injected per stage via
    ``fail_stages`` and per path via ``fail_paths``; per-path latency via
    ``delays`` lets tests control the completion order of concurrent fetches.
    """

    def __init__(
        self,
        files: list[str] | None = None,
        contents: dict[str, str] | None = None,
        summaries: list[TestSummary] | None = None,
        code: str = "test('x',()=>{...})",
        pr_url: str = "https://example.com/r/pull/1",
    ) -> None:
        self.files = list(files or [])
        self.contents = dict(contents or {})
        self.summaries = list(summaries or [])
        self.code = code
        self.pr_url = pr_url

        self.delays: dict[str, float] = {}
        self.stage_delay = 0.0
        self.fail_stages: set[Stage] = set()
        self.fail_paths: set[str] = set()

        self.calls: list[tuple[str, Any]] = []
        self.completed_fetches: list[str] = []
        self.summary_requests: list[list[dict[str, str]]] = []
        self.code_requests: list[tuple[str, list[dict[str, str]]]] = []
        self.change_requests: list[tuple[str, str, str]] = []

    def calls_to(self, method: str) -> list[Any]:
        return [args for name, args in self.calls if name == method]

    def _maybe_fail(self, stage: Stage) -> None:
        if stage in self.fail_stages:
            raise RemoteOperationError("Service unavailable", stage=stage, status_code=503)

    async def list_files(self, repository_reference: str) -> list[str]:
        self.calls.append(("list_files", repository_reference))
        await asyncio.sleep(self.stage_delay)
        self._maybe_fail(Stage.LISTING)
        return list(self.files)

    async def fetch_file_content(self, repository_reference: str, path: str) -> str:
        self.calls.append(("fetch_file_content", (repository_reference, path)))
        await asyncio.sleep(self.delays.get(path, 0))
        if path in self.fail_paths:
            raise RemoteOperationError(
                "Failed to fetch file content",
                stage=Stage.CONTENT_FETCH,
                path=path,
                status_code=404,
            )
        self.completed_fetches.append(path)
        return self.contents.get(path, f"// {path}")

    async def generate_summaries(self, contents: list[FileContent]) -> list[TestSummary]:
        payload = [c.to_payload() for c in contents]
        self.calls.append(("generate_summaries", payload))
        self.summary_requests.append(payload)
        await asyncio.sleep(self.stage_delay)
        self._maybe_fail(Stage.SUMMARY_GENERATION)
        return list(self.summaries)

    async def generate_code(self, summary: str, contents: list[FileContent]) -> str:
        payload = [c.to_payload() for c in contents]
        self.calls.append(("generate_code", (summary, payload)))
        self.code_requests.append((summary, payload))
        await asyncio.sleep(self.stage_delay)
        self._maybe_fail(Stage.CODE_GENERATION)
        return self.code

    async def create_change_request(self, repository_reference: str, code: str, file_name: str) -> str:
        self.calls.append(("create_change_request", (repository_reference, code, file_name)))
        self.change_requests.append((repository_reference, code, file_name))
        await asyncio.sleep(self.stage_delay)
        self._maybe_fail(Stage.SUBMISSION)
        return self.pr_url

    async def __aenter__(self) -> "FakeGenerationService":
        return self

    async def __aexit__(self, *args: Any) -> None:
        return None


@pytest.fixture(autouse=True)
def captured_logs():
    """Capture structlog events instead of printing them."""
    with capture_logs() as logs:
        yield logs


@pytest.fixture
def fake_service() -> FakeGenerationService:
    """Service with two files and one summary, matching the end-to-end scenario."""
    return FakeGenerationService(
        files=["a.js", "b.js"],
        contents={"a.js": "const x=1;", "b.js": "const y=2;"},
        summaries=[TestSummary(id=1, summary="Tests variable x")],
    )


@pytest.fixture
def workflow_config() -> WorkflowConfig:
    """Workflow config without background previews, so call logs stay exact."""
    return WorkflowConfig(preview_on_toggle=False)


@pytest.fixture
def engine(fake_service: FakeGenerationService, workflow_config: WorkflowConfig) -> WorkflowEngine:
    """Engine over the fake service with a fixed clock."""
    return WorkflowEngine(fake_service, config=workflow_config, clock=lambda: 1700000000.5)


@pytest.fixture
def service_factory() -> type[FakeGenerationService]:
    """The fake service class, for tests that need a custom script."""
    return FakeGenerationService
