"""Workflow engine for test-case generation.

Key Components:
    - WorkflowEngine: Owns workflow state and drives every stage
    - ContentFetcher: Concurrent per-file content retrieval with an
      all-or-nothing barrier
"""

from casegen.engine.content_fetcher import ContentFetcher
from casegen.engine.workflow import WorkflowEngine

__all__ = ["ContentFetcher", "WorkflowEngine"]
