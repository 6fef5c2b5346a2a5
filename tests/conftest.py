import asyncio

import pytest

from blinkit_scraper.core.page_session import CapturedResponse, PageSession


def product_payload(i, **overrides):
    payload = {
        "id": 1000 + i,
        "name": f"Product {i}",
        "price": 10 + i,
        "mrp": 20 + i,
        "image_url": f"https://cdn.example.com/{i}.jpg",
    }
    payload.update(overrides)
    return payload


class FakePageSession(PageSession):
    """In-memory page: snapshot, hydration markup, scripted scroll steps and fetchable pages"""

    def __init__(
        self,
        snapshot=None,
        html="",
        responses=None,
        scroll_steps=None,
        pages=None,
        dom_products=None,
        failing=(),
        goto_error=None,
        goto_delay=0,
        content="<html><body>empty</body></html>",
    ):
        super().__init__()
        self.snapshot = snapshot
        self.html = html
        self.captured_responses.extend(responses or [])
        self.scroll_steps = list(scroll_steps or [])
        self.pages = pages or {}
        self.dom_products = dom_products or []
        self.failing = set(failing)
        self.goto_error = goto_error
        self.goto_delay = goto_delay
        self.content = content

        self.visited = []
        self.fetched = []
        self.scrolls = 0
        self.height = 1000
        self.dom_limit = None
        self.closed = False

    def _check(self, name):
        if name in self.failing:
            raise RuntimeError(f"{name} failed")

    async def goto(self, url):
        self.visited.append(url)
        if self.goto_delay:
            await asyncio.sleep(self.goto_delay)
        if self.goto_error is not None:
            raise self.goto_error

    async def close(self):
        self.closed = True

    async def read_state_snapshot(self):
        self._check("read_state_snapshot")
        return self.snapshot

    async def read_hydration_html(self):
        self._check("read_hydration_html")
        return self.html

    async def scroll_increment(self):
        self._check("scroll_increment")
        self.scrolls += 1
        if self.scroll_steps:
            step = self.scroll_steps.pop(0)
            self.captured_responses.extend(step.get("responses", []))
            if "snapshot" in step:
                self.snapshot = step["snapshot"]
            self.height += step.get("grow", 500)
        return self.height

    async def fetch_json(self, url, method="GET", headers=None, data=None):
        self._check("fetch_json")
        self.fetched.append(url)
        return self.pages.get(url)

    async def extract_dom_products(self, limit=0):
        self._check("extract_dom_products")
        self.dom_limit = limit
        return list(self.dom_products[:limit] if limit else self.dom_products)

    async def page_content(self):
        self._check("page_content")
        return self.content


@pytest.fixture
def make_product():
    return product_payload


@pytest.fixture
def make_session():
    return FakePageSession


@pytest.fixture
def make_response():
    def _make(url, body, **kwargs):
        return CapturedResponse(url=url, body=body, **kwargs)
    return _make
