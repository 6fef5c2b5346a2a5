"""
Output sinks and diagnostics stores

The scraper only appends to a sink; it never reads its own output back.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


# Fixed diagnostics keys
DEBUG_NO_PRODUCTS_KEY = 'debug-no-products'
DEBUG_JSON_URLS_KEY = 'debug-json-urls'
ERROR_PAGE_KEY = 'error-page'
BLOCKED_PAGE_KEY = 'blocked-page'


class OutputSink(ABC):
    """Ordered, append-only destination for enriched product records"""

    @abstractmethod
    async def push(self, records: List[Dict[str, Any]]) -> None:
        pass


class MemorySink(OutputSink):
    def __init__(self):
        self.records: List[Dict[str, Any]] = []

    async def push(self, records: List[Dict[str, Any]]) -> None:
        self.records.extend(records)


class JsonLinesSink(OutputSink):
    """Appends one JSON object per line"""

    def __init__(self, path: str):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    async def push(self, records: List[Dict[str, Any]]) -> None:
        with open(self.path, 'a', encoding='utf-8') as f:
            for record in records:
                f.write(json.dumps(record, ensure_ascii=False) + '\n')
        logger.info(f" Appended {len(records)} record(s) to {self.path}")


class DiagnosticsStore(ABC):
    """Side channel for debugging artifacts (page markup, observed JSON URLs)"""

    @abstractmethod
    async def save(self, key: str, value: Any, content_type: Optional[str] = None) -> None:
        pass


class MemoryDiagnosticsStore(DiagnosticsStore):
    def __init__(self):
        self.values: Dict[str, Any] = {}

    async def save(self, key: str, value: Any, content_type: Optional[str] = None) -> None:
        self.values[key] = value


class DirectoryDiagnosticsStore(DiagnosticsStore):
    """Writes each key to a file: text/html as .html, everything else as .json"""

    def __init__(self, directory: str):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    async def save(self, key: str, value: Any, content_type: Optional[str] = None) -> None:
        if content_type == 'text/html':
            path = self.directory / f"{key}.html"
            path.write_text(value or '', encoding='utf-8')
        else:
            path = self.directory / f"{key}.json"
            path.write_text(json.dumps(value, indent=2, ensure_ascii=False), encoding='utf-8')
        logger.info(f" Saved diagnostics: {path}")
