"""
Segment locator translation.

The backend returns a filesystem path. The player needs a resource URL.
Hosts with their own asset protocol inject a translator; the default
produces a file:// URI.

Never append query parameters (cache busters included) to a translated
locator. Embedding shells with a custom asset protocol refuse the request.
Segment cache keys already change whenever the rendered content does.
"""

from pathlib import Path
from typing import Callable

LocatorTranslator = Callable[[str], str]


def to_file_url(locator: str) -> str:
    """Translate a filesystem path into a file:// URI."""
    return Path(locator).absolute().as_uri()
