"""Domain models for the casegen workflow.

Key Components:
    - FileEntry, FileContent: repository listing and file contents
    - TestSummary, GeneratedCode: generation results
    - ChangeRequestResult: submission outcome
    - WorkflowSnapshot: immutable view of the engine state
"""

from casegen.models.domain import (
    ChangeRequestResult,
    FileContent,
    FileEntry,
    GeneratedCode,
    SummaryId,
    TestSummary,
    WorkflowSnapshot,
)

__all__ = [
    "ChangeRequestResult",
    "FileContent",
    "FileEntry",
    "GeneratedCode",
    "SummaryId",
    "TestSummary",
    "WorkflowSnapshot",
]
