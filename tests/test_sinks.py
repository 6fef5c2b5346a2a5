import asyncio
import json

import pytest

from blinkit_scraper.core.page_session import PageSession
from blinkit_scraper.core.sinks import (
    DiagnosticsStore,
    DirectoryDiagnosticsStore,
    JsonLinesSink,
    MemoryDiagnosticsStore,
    MemorySink,
    OutputSink,
)


@pytest.mark.parametrize("interface", [OutputSink, DiagnosticsStore, PageSession])
def test_interfaces_cannot_be_instantiated(interface):
    with pytest.raises(TypeError):
        interface()


def test_partial_page_session_cannot_be_instantiated():
    class GotoOnly(PageSession):
        async def goto(self, url):
            pass

    with pytest.raises(TypeError):
        GotoOnly()


def test_memory_sink_appends_in_order():
    sink = MemorySink()
    asyncio.run(sink.push([{"name": "a"}]))
    asyncio.run(sink.push([{"name": "b"}, {"name": "c"}]))
    assert [r["name"] for r in sink.records] == ["a", "b", "c"]


def test_json_lines_sink_appends(tmp_path):
    path = tmp_path / "out" / "products.jsonl"
    sink = JsonLinesSink(str(path))
    asyncio.run(sink.push([{"name": "Dahi", "price": 35.0}]))
    asyncio.run(sink.push([{"name": "Paneer ₹"}]))

    lines = path.read_text(encoding="utf-8").splitlines()
    assert [json.loads(line)["name"] for line in lines] == ["Dahi", "Paneer ₹"]


def test_directory_diagnostics_store(tmp_path):
    store = DirectoryDiagnosticsStore(str(tmp_path / "debug"))
    asyncio.run(store.save("debug-no-products", "<html></html>", content_type="text/html"))
    asyncio.run(store.save("debug-json-urls", ["https://blinkit.com/v1/layout/search"]))

    assert (tmp_path / "debug" / "debug-no-products.html").read_text(encoding="utf-8") == "<html></html>"
    urls = json.loads((tmp_path / "debug" / "debug-json-urls.json").read_text(encoding="utf-8"))
    assert urls == ["https://blinkit.com/v1/layout/search"]


def test_memory_diagnostics_store():
    store = MemoryDiagnosticsStore()
    asyncio.run(store.save("error-page", "<html/>", content_type="text/html"))
    assert store.values == {"error-page": "<html/>"}
