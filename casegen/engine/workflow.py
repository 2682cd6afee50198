"""
Workflow engine for test-case generation.

``WorkflowEngine`` owns every piece of workflow state and is the only thing
that changes it. Each stage is a method that talks to the generation service
and, on success, replaces the relevant state wholesale::

    load_listing  ->  toggle_selection  ->  generate_summaries
                  ->  generate_code     ->  submit_change

State Rules:
    - A successful ``load_listing`` resets selection, summaries and code.
    - A successful ``generate_summaries`` replaces the batch and clears code.
    - A successful ``generate_code`` replaces the code.
    - A failed stage leaves every field exactly as it was before the call.

Concurrency Model:
    The engine runs on a single asyncio event loop. Different operation
    types may overlap, but starting an operation while the same type is
    still in flight raises ``OperationInProgressError``. Results computed
    against a listing that has since been replaced are discarded with
    ``StaleResultError`` instead of being installed.

Example:
    >>> engine = WorkflowEngine(service)
    >>> await engine.load_listing("https://github.com/user/repo")
    >>> engine.toggle_selection("src/app.js")
    >>> summaries = await engine.generate_summaries()
    >>> await engine.generate_code(summaries[0].id)
    >>> result = await engine.submit_change()
    >>> print(result.url)
"""

import asyncio
import time
from collections.abc import AsyncIterator, Callable, Sequence
from contextlib import asynccontextmanager

import structlog

from casegen.config.settings import WorkflowConfig
from casegen.engine.content_fetcher import ContentFetcher
from casegen.enums import Stage
from casegen.exceptions import (
    OperationInProgressError,
    RemoteOperationError,
    StaleResultError,
    ValidationError,
)
from casegen.models.domain import (
    ChangeRequestResult,
    FileContent,
    FileEntry,
    GeneratedCode,
    SummaryId,
    TestSummary,
    WorkflowSnapshot,
)
from casegen.providers.base import GenerationService

log = structlog.get_logger(__name__)


class WorkflowEngine:
    """State container and stage driver for one generation session.

    Attributes:
        service: Generation service used for every remote call.
        config: Workflow behaviour settings.
        fetcher: Concurrent content fetcher bound to ``service``.
    """

    def __init__(
        self,
        service: GenerationService,
        config: WorkflowConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize an empty engine.

        Args:
            service: Generation service to drive.
            config: Workflow settings. Defaults are used when omitted.
            clock: Returns the current time in seconds; used to name
                submitted files.
        """
        self.service = service
        self.config = config or WorkflowConfig()
        self.fetcher = ContentFetcher(service, max_concurrency=self.config.max_concurrent_fetches)
        self._clock = clock

        self._repository_reference: str | None = None
        self._files: tuple[FileEntry, ...] = ()
        # dict keeps toggle order; values unused
        self._selection: dict[str, None] = {}
        self._summaries: tuple[TestSummary, ...] = ()
        self._generated_code: GeneratedCode | None = None

        # Advanced on every successful listing load
        self._epoch = 0
        # Advanced on every installed summary batch
        self._batch = 0
        self._in_flight: set[Stage] = set()

        self._preview_task: asyncio.Task[None] | None = None
        self._preview_contents: tuple[FileContent, ...] | None = None

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    @property
    def repository_reference(self) -> str | None:
        return self._repository_reference

    @property
    def files(self) -> tuple[FileEntry, ...]:
        return self._files

    @property
    def selection(self) -> tuple[str, ...]:
        return tuple(self._selection)

    @property
    def summaries(self) -> tuple[TestSummary, ...]:
        return self._summaries

    @property
    def generated_code(self) -> GeneratedCode | None:
        return self._generated_code

    @property
    def preview_contents(self) -> tuple[FileContent, ...] | None:
        """Contents prefetched for the current selection, if a preview finished."""
        return self._preview_contents

    def snapshot(self) -> WorkflowSnapshot:
        """Return an immutable copy of the current state."""
        return WorkflowSnapshot(
            repository_reference=self._repository_reference,
            files=self._files,
            selection=self.selection,
            summaries=self._summaries,
            generated_code=self._generated_code,
            in_flight=frozenset(str(stage) for stage in self._in_flight),
        )

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def load_listing(self, repository_reference: str) -> list[FileEntry]:
        """Load the file listing for a repository.

        On success the listing is replaced and everything downstream
        (selection, summaries, generated code, preview) is reset.

        Args:
            repository_reference: Repository identifier, usually its URL.
                Surrounding whitespace is ignored.

        Returns:
            The new listing.

        Raises:
            ValidationError: If the reference is empty.
            OperationInProgressError: If a listing load is already running.
            RemoteOperationError: If the service call fails. State is unchanged.
        """
        reference = (repository_reference or "").strip()
        if not reference:
            raise ValidationError("Please enter a repository URL")

        async with self._in_flight_guard(Stage.LISTING):
            log.info("listing_requested", repository=reference)
            try:
                paths = await self.service.list_files(reference)
            except RemoteOperationError as e:
                log.error("listing_failed", repository=reference, error=str(e))
                raise

            files = self._unique_entries(paths)

            self._cancel_preview()
            self._preview_contents = None
            self._repository_reference = reference
            self._files = files
            self._selection = {}
            self._summaries = ()
            self._generated_code = None
            self._epoch += 1

            log.info("listing_loaded", repository=reference, count=len(files))
            return list(files)

    def toggle_selection(self, path: str) -> tuple[str, ...]:
        """Add ``path`` to the selection, or remove it if already selected.

        Paths outside the current listing are accepted unless
        ``require_listed_paths`` is configured. When ``preview_on_toggle`` is
        enabled and an event loop is running, the new selection's contents
        are prefetched in the background; that prefetch can never fail the
        toggle or touch summaries or generated code.

        Returns:
            The selection after the toggle, in toggle order.

        Raises:
            ValidationError: If ``require_listed_paths`` is set and the path
                is not in the listing.
        """
        if self.config.require_listed_paths and path not in {entry.path for entry in self._files}:
            raise ValidationError(f"{path} is not in the current file listing")

        if path in self._selection:
            del self._selection[path]
            log.debug("file_deselected", path=path)
        else:
            self._selection[path] = None
            log.debug("file_selected", path=path)

        selection = self.selection
        self._schedule_preview(selection)
        return selection

    async def generate_summaries(self) -> list[TestSummary]:
        """Generate test-case summaries for the selected files.

        Fetches every selected file concurrently, then sends the ordered
        content batch to the service. On success the summary batch is
        replaced and any generated code is cleared.

        Raises:
            ValidationError: If nothing is selected or no listing is loaded.
            OperationInProgressError: If summary generation is already running.
            RemoteOperationError: If a content fetch or the summary call fails.
            StaleResultError: If the listing was reloaded while this ran.
        """
        selection = self.selection
        if not selection:
            raise ValidationError("Please select at least one file to generate summaries")
        reference = self._require_reference()

        async with self._in_flight_guard(Stage.SUMMARY_GENERATION):
            epoch = self._epoch
            log.info("summaries_requested", repository=reference, file_count=len(selection))

            contents = await self.fetcher.fetch_all(reference, selection)
            self._ensure_current(epoch, Stage.SUMMARY_GENERATION)

            try:
                summaries = await self.service.generate_summaries(contents)
            except RemoteOperationError as e:
                log.error("summaries_failed", error=str(e))
                raise
            self._check_unique_ids(summaries)
            self._ensure_current(epoch, Stage.SUMMARY_GENERATION)

            self._summaries = tuple(summaries)
            self._generated_code = None
            self._batch += 1

            log.info("summaries_generated", count=len(summaries))
            return list(summaries)

    async def generate_code(self, summary_id: SummaryId) -> GeneratedCode | None:
        """Generate test code for one summary of the current batch.

        Content is fetched again for the *current* selection, which may have
        changed since the summaries were generated.

        Args:
            summary_id: Id of a summary in the current batch.

        Returns:
            The generated code, or None when ``summary_id`` is not in the
            current batch. That case makes no remote call and changes nothing.

        Raises:
            OperationInProgressError: If code generation is already running.
            RemoteOperationError: If a content fetch or the code call fails.
            StaleResultError: If the listing was reloaded, or a new summary
                batch was generated, while this ran.
        """
        summary = next((s for s in self._summaries if s.id == summary_id), None)
        if summary is None:
            log.info("code_generation_skipped", summary_id=summary_id, reason="unknown_summary")
            return None

        reference = self._require_reference()
        selection = self.selection

        async with self._in_flight_guard(Stage.CODE_GENERATION):
            epoch = self._epoch
            batch = self._batch
            log.info("code_requested", summary_id=summary.id, file_count=len(selection))

            contents = await self.fetcher.fetch_all(reference, selection)
            self._ensure_current(epoch, Stage.CODE_GENERATION, batch)

            try:
                code = await self.service.generate_code(summary.summary, contents)
            except RemoteOperationError as e:
                log.error("code_failed", summary_id=summary.id, error=str(e))
                raise
            self._ensure_current(epoch, Stage.CODE_GENERATION, batch)

            generated = GeneratedCode(code=code, summary_id=summary.id)
            self._generated_code = generated

            log.info("code_generated", summary_id=summary.id, length=len(code))
            return generated

    async def submit_change(self) -> ChangeRequestResult:
        """Submit the generated code as a change request.

        Engine state is not modified, so submitting twice opens two change
        requests.

        Raises:
            ValidationError: If no code has been generated.
            OperationInProgressError: If a submission is already running.
            RemoteOperationError: If the service call fails.
        """
        generated = self._generated_code
        if generated is None:
            raise ValidationError("Please generate test case code first")
        reference = self._require_reference()

        async with self._in_flight_guard(Stage.SUBMISSION):
            file_name = self.proposed_file_name()
            log.info("submission_requested", repository=reference, file_name=file_name)

            try:
                url = await self.service.create_change_request(reference, generated.code, file_name)
            except RemoteOperationError as e:
                log.error("submission_failed", file_name=file_name, error=str(e))
                raise

            log.info("change_request_created", url=url, file_name=file_name)
            return ChangeRequestResult(url=url, file_name=file_name)

    def proposed_file_name(self) -> str:
        """Timestamp-qualified name for the submitted test file."""
        millis = int(self._clock() * 1000)
        return f"{self.config.file_name_prefix}{millis}{self.config.file_extension}"

    # ------------------------------------------------------------------
    # Selection preview
    # ------------------------------------------------------------------

    async def wait_for_preview(self) -> tuple[FileContent, ...] | None:
        """Wait for a pending preview and return the prefetched contents."""
        if self._preview_task is not None:
            await asyncio.gather(self._preview_task, return_exceptions=True)
        return self._preview_contents

    async def aclose(self) -> None:
        """Cancel background work owned by the engine."""
        task = self._cancel_preview()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    def _schedule_preview(self, selection: tuple[str, ...]) -> None:
        self._cancel_preview()
        self._preview_contents = None

        reference = self._repository_reference
        if not self.config.preview_on_toggle or not selection or reference is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Called from synchronous code; nothing to run the preview on
            return
        self._preview_task = loop.create_task(self._preview(reference, selection))

    async def _preview(self, reference: str, selection: tuple[str, ...]) -> None:
        try:
            contents = await self.fetcher.fetch_all(reference, selection)
        except Exception as e:
            log.warning("preview_fetch_failed", selection=list(selection), error=str(e))
            return

        if self.selection == selection and self._repository_reference == reference:
            self._preview_contents = tuple(contents)
            log.debug("preview_ready", count=len(contents))

    def _cancel_preview(self) -> asyncio.Task[None] | None:
        task = self._preview_task
        self._preview_task = None
        if task is not None and not task.done():
            task.cancel()
        return task

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _in_flight_guard(self, stage: Stage) -> AsyncIterator[None]:
        """Mark ``stage`` as running for the duration of the block.

        Raises:
            OperationInProgressError: If ``stage`` is already running.
        """
        if stage in self._in_flight:
            log.warning("operation_rejected_in_flight", stage=str(stage))
            raise OperationInProgressError(stage)
        self._in_flight.add(stage)
        try:
            yield
        finally:
            self._in_flight.discard(stage)

    def _require_reference(self) -> str:
        if self._repository_reference is None:
            raise ValidationError("Load a repository file listing first")
        return self._repository_reference

    def _ensure_current(self, epoch: int, stage: Stage, batch: int | None = None) -> None:
        if epoch != self._epoch:
            log.warning("stale_result_discarded", stage=str(stage), reason="listing_reloaded")
            raise StaleResultError(stage)
        if batch is not None and batch != self._batch:
            log.warning("stale_result_discarded", stage=str(stage), reason="summaries_replaced")
            raise StaleResultError(stage, reason="the test case summaries were regenerated")

    @staticmethod
    def _unique_entries(paths: Sequence[str]) -> tuple[FileEntry, ...]:
        seen: dict[str, None] = {}
        for path in paths:
            if path in seen:
                log.warning("duplicate_path_in_listing", path=path)
                continue
            seen[path] = None
        return tuple(FileEntry(path=path) for path in seen)

    @staticmethod
    def _check_unique_ids(summaries: Sequence[TestSummary]) -> None:
        seen: set[SummaryId] = set()
        for summary in summaries:
            if summary.id in seen:
                raise RemoteOperationError(
                    f"Duplicate summary id {summary.id!r} in response",
                    stage=Stage.SUMMARY_GENERATION,
                )
            seen.add(summary.id)
