"""Enumerations for casegen workflow stages."""

from enum import Enum


class Stage(str, Enum):
    """Stages of the test-case generation workflow.

    Errors and log events name one of these so the user can tell which
    step of the pipeline failed.
    """

    LISTING = "listing"
    CONTENT_FETCH = "content_fetch"
    SUMMARY_GENERATION = "summary_generation"
    CODE_GENERATION = "code_generation"
    SUBMISSION = "submission"

    def __str__(self) -> str:
        return self.value

    @property
    def label(self) -> str:
        """Human-readable stage name used in error messages."""
        return _LABELS[self]


_LABELS = {
    Stage.LISTING: "file listing",
    Stage.CONTENT_FETCH: "file content fetch",
    Stage.SUMMARY_GENERATION: "test case summary generation",
    Stage.CODE_GENERATION: "test case code generation",
    Stage.SUBMISSION: "pull request creation",
}
