"""
Abstract base class for the generation service.

The workflow engine talks to the backend only through this interface, which
keeps the engine testable with an in-memory fake and leaves room for other
transports than the bundled HTTP client.
"""

from abc import ABC, abstractmethod

from casegen.models.domain import FileContent, TestSummary


class GenerationService(ABC):
    """Contract of the backend that lists files and generates test cases.

    The service is stateless from the engine's point of view: every call is
    self-contained and no session affinity is assumed between calls.

    All methods are async to support non-blocking I/O with HTTP clients.
    Every failure, whether the service answered with an error or could not
    be reached, is raised as ``RemoteOperationError`` naming the stage.
    """

    @abstractmethod
    async def list_files(self, repository_reference: str) -> list[str]:
        """List file paths in a repository.

        Args:
            repository_reference: Repository identifier, usually its URL.

        Returns:
            Paths in the order the service reported them. May be empty.

        Raises:
            RemoteOperationError: With ``stage=Stage.LISTING``.
        """
        pass

    @abstractmethod
    async def fetch_file_content(self, repository_reference: str, path: str) -> str:
        """Fetch the content of one file.

        Raises:
            RemoteOperationError: With ``stage=Stage.CONTENT_FETCH`` and ``path`` set.
        """
        pass

    @abstractmethod
    async def generate_summaries(self, contents: list[FileContent]) -> list[TestSummary]:
        """Propose test cases for a batch of file contents.

        Args:
            contents: File contents in a stable order.

        Returns:
            Summaries in service order; ids are unique within the batch.

        Raises:
            RemoteOperationError: With ``stage=Stage.SUMMARY_GENERATION``.
        """
        pass

    @abstractmethod
    async def generate_code(self, summary: str, contents: list[FileContent]) -> str:
        """Generate test code for one summary.

        Args:
            summary: Text of the chosen test-case summary.
            contents: File contents in a stable order.

        Raises:
            RemoteOperationError: With ``stage=Stage.CODE_GENERATION``.
        """
        pass

    @abstractmethod
    async def create_change_request(self, repository_reference: str, code: str, file_name: str) -> str:
        """Open a change request (pull request) adding the generated code.

        Not idempotent: calling twice opens two change requests.

        Returns:
            URL of the created change request.

        Raises:
            RemoteOperationError: With ``stage=Stage.SUBMISSION``.
        """
        pass
