"""
Domain models for the test-case generation workflow.

These dataclasses are the engine's internal representation of everything the
generation service hands back: file listings, file contents, test-case
summaries, generated code and the change-request result. All of them are
immutable; the engine replaces them wholesale rather than editing them.

Example:
    Building the content batch sent to the summary endpoint::

        contents = [
            FileContent(path="src/a.js", content="const x = 1;"),
            FileContent(path="src/b.js", content="export default {};"),
        ]
        payload = [c.to_payload() for c in contents]
"""

from dataclasses import dataclass
from typing import Any

SummaryId = int | str


@dataclass(frozen=True)
class FileEntry:
    """A file in the repository listing."""

    path: str


@dataclass(frozen=True)
class FileContent:
    """Content of one selected file, as returned by the service."""

    path: str
    content: str

    def to_payload(self) -> dict[str, str]:
        """Wire representation used by the summary and code endpoints."""
        return {"name": self.path, "content": self.content}


@dataclass(frozen=True)
class TestSummary:
    """One proposed test case, described in prose.

    ``id`` is only unique within the batch it arrived in. The service may use
    integers or strings; the engine compares ids as-is.
    """

    __test__ = False  # not a pytest test class

    id: SummaryId
    summary: str


@dataclass(frozen=True)
class GeneratedCode:
    """Test code generated for one summary."""

    code: str
    summary_id: SummaryId


@dataclass(frozen=True)
class ChangeRequestResult:
    """Outcome of a successful submission."""

    url: str
    file_name: str


@dataclass(frozen=True)
class WorkflowSnapshot:
    """Point-in-time copy of the engine state.

    Attributes:
        repository_reference: Repository the current listing came from,
            or None before the first successful listing.
        files: Current listing in service order.
        selection: Selected paths in toggle order.
        summaries: Current summary batch.
        generated_code: Current generated code, if any.
        in_flight: Stages with an outstanding remote operation.
    """

    repository_reference: str | None
    files: tuple[FileEntry, ...]
    selection: tuple[str, ...]
    summaries: tuple[TestSummary, ...]
    generated_code: GeneratedCode | None
    in_flight: frozenset[str]

    @property
    def can_generate_summaries(self) -> bool:
        """Whether the summary trigger should be enabled."""
        return bool(self.selection)

    @property
    def can_submit(self) -> bool:
        """Whether the submission trigger should be enabled."""
        return self.generated_code is not None

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly view, logged by the CLI when a session ends."""
        return {
            "repository_reference": self.repository_reference,
            "files": [f.path for f in self.files],
            "selection": list(self.selection),
            "summaries": [{"id": s.id, "summary": s.summary} for s in self.summaries],
            "generated_code": self.generated_code.code if self.generated_code else None,
            "in_flight": sorted(self.in_flight),
        }
