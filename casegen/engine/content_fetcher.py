"""
Concurrent file content retrieval with an all-succeed barrier.

Both summary and code generation need the content of every selected file.
``ContentFetcher`` fans the per-file requests out as asyncio tasks, bounded
by a semaphore, and joins them again before anything downstream runs.

Barrier Semantics:
    The batch is all-or-nothing. If any single fetch fails the remaining
    fetches are cancelled and the whole batch fails; a partial batch is never
    returned.

Ordering:
    Results come back in the order of the requested paths, whatever order the
    requests happened to complete in. Two calls with the same paths and the
    same remote content therefore produce identical batches.

Example:
    >>> fetcher = ContentFetcher(service, max_concurrency=4)
    >>> contents = await fetcher.fetch_all("https://github.com/u/r", ["a.js", "b.js"])
    >>> [c.path for c in contents]
    ['a.js', 'b.js']
"""

import asyncio
from collections.abc import Sequence

import structlog

from casegen.enums import Stage
from casegen.exceptions import RemoteOperationError
from casegen.models.domain import FileContent
from casegen.providers.base import GenerationService

log = structlog.get_logger(__name__)


class ContentFetcher:
    """Fetch file contents concurrently from a generation service.

    Attributes:
        service: Service the contents are fetched from.
        max_concurrency: Maximum number of requests in flight at once.
    """

    def __init__(self, service: GenerationService, max_concurrency: int = 8) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.service = service
        self.max_concurrency = max_concurrency

    async def fetch_all(self, repository_reference: str, paths: Sequence[str]) -> list[FileContent]:
        """Fetch every path and return the contents in path order.

        Args:
            repository_reference: Repository the paths belong to.
            paths: Paths to fetch. Order is preserved in the result.

        Returns:
            One FileContent per path, in the order given.

        Raises:
            RemoteOperationError: If any fetch fails. When several have failed by the
                time the batch is abandoned, the one earliest in ``paths``
                is raised.
        """
        if not paths:
            return []

        # Created per call so the semaphore binds to the running loop
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def fetch_one(path: str) -> FileContent:
            async with semaphore:
                content = await self.service.fetch_file_content(repository_reference, path)
            return FileContent(path=path, content=content)

        log.debug("content_fetch_started", repository=repository_reference, count=len(paths))

        tasks = [asyncio.create_task(fetch_one(path)) for path in paths]
        try:
            await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            # Let cancelled tasks unwind before reporting
            await asyncio.gather(*tasks, return_exceptions=True)

        failures = [
            (path, task.exception())
            for path, task in zip(paths, tasks, strict=True)
            if not task.cancelled() and task.exception() is not None
        ]
        if failures:
            path, error = failures[0]
            log.error("content_fetch_failed", path=path, failed=len(failures), total=len(paths), error=str(error))
            if isinstance(error, RemoteOperationError):
                raise error
            raise RemoteOperationError(
                str(error) or type(error).__name__,
                stage=Stage.CONTENT_FETCH,
                path=path,
            ) from error

        log.debug("content_fetch_complete", count=len(paths))
        return [task.result() for task in tasks]
