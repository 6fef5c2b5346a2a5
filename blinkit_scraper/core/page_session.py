"""
Page Session - What the extraction engine needs from a live browser page
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class CapturedResponse:
    """One JSON network response observed while the page was open"""
    url: str
    body: Any
    method: str = 'GET'
    status: int = 200
    request_headers: Dict[str, str] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    post_data: Optional[str] = None
    timestamp: float = field(default_factory=time.time)


class PageSession(ABC):
    """
    Collaborator interface used by the aggregator

    Implementations own the browser. The aggregator only reads from them and never
    drains `captured_responses`: the buffer is append-only for the whole page visit.
    """

    def __init__(self):
        self.captured_responses: List[CapturedResponse] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    @abstractmethod
    async def goto(self, url: str) -> None:
        """Open the seed URL; response capture starts before navigation"""
        pass

    async def close(self) -> None:
        pass

    @abstractmethod
    async def read_state_snapshot(self) -> Optional[Dict[str, Any]]:
        """Client-runtime state globals (e.g. {'__NEXT_DATA__': {...}}), or None"""
        pass

    @abstractmethod
    async def read_hydration_html(self) -> str:
        """Rendered page markup holding the server-hydration payload"""
        pass

    @abstractmethod
    async def scroll_increment(self) -> int:
        """Scroll to the bottom once and return the resulting page height"""
        pass

    @abstractmethod
    async def fetch_json(
        self,
        url: str,
        method: str = 'GET',
        headers: Optional[Dict[str, str]] = None,
        data: Optional[str] = None
    ) -> Any:
        """Session-scoped request (carries the page's cookies); returns parsed JSON or None"""
        pass

    @abstractmethod
    async def extract_dom_products(self, limit: int = 0) -> List[Dict[str, Any]]:
        """Selector-based last resort; returns raw, un-normalized records"""
        pass

    @abstractmethod
    async def page_content(self) -> str:
        pass

    def response_urls(self) -> List[str]:
        return list(dict.fromkeys(response.url for response in self.captured_responses))
