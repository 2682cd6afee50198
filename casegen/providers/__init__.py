"""Generation service implementations.

Key Components:
    - GenerationService: Abstract contract used by the workflow engine
    - HttpGenerationService: REST/JSON implementation built on httpx

Example:
    >>> from casegen.providers import HttpGenerationService
    >>> async with HttpGenerationService(base_url="https://api.example.com") as service:
    ...     files = await service.list_files("https://github.com/user/repo")
"""

from casegen.providers.base import GenerationService
from casegen.providers.http_service import HttpGenerationService

__all__ = ["GenerationService", "HttpGenerationService"]
