"""casegen: client-side workflow engine for AI-assisted test case generation."""

__version__ = "0.1.0"
