import asyncio

from blinkit_scraper.core.aggregator import ExtractionState
from blinkit_scraper.core.pagination_prober import PaginationProber
from blinkit_scraper.core.product_normalizer import ProductNormalizer

BASE = "https://blinkit.com/v1/layout/search?q=milk&offset={}&limit=2"


def probe(session, state):
    async def emit(records, source):
        return state.accept(records, source)

    return asyncio.run(PaginationProber().probe(session, state, emit))


def seeded_state(target, products):
    state = ExtractionState(target)
    state.accept(ProductNormalizer().normalize_many(products), "network")
    return state


def test_detect_param_preference_and_values():
    prober = PaginationProber()
    assert prober.detect_param("https://x/api?q=milk&offset=0&limit=24") == ("offset", 0)
    assert prober.detect_param("https://x/api?start=10&page=2") == ("page", 2)
    assert prober.detect_param("https://x/api?page=abc&offset=10") == ("offset", 10)
    assert prober.detect_param("https://x/api?q=milk") is None


def test_step_for():
    prober = PaginationProber()
    assert prober.step_for("https://x/api?page=1&size=50", "page") == 1
    assert prober.step_for("https://x/api?offset=0&limit=24", "offset") == 24
    assert prober.step_for("https://x/api?from=0&size=12", "from") == 12
    assert prober.step_for("https://x/api?skip=0", "skip") == PaginationProber.DEFAULT_STEP


def test_next_url_keeps_other_params_in_place():
    url = PaginationProber.next_url("https://x/api/search?q=milk&offset=0&limit=24", "offset", 24)
    assert url == "https://x/api/search?q=milk&offset=24&limit=24"


def test_next_url_leaves_other_params_encoded_as_is():
    url = PaginationProber.next_url("https://x/api/search?q=amul%20milk&offset=0&tags=a,b&flag", "offset", 24)
    assert url == "https://x/api/search?q=amul%20milk&offset=24&tags=a,b&flag"


def test_offset_without_limit_steps_by_default_page_size(make_session, make_response, make_product):
    seed = "https://blinkit.com/v1/search?q=milk&offset=0"
    first = [make_product(0), make_product(1)]
    session = make_session(
        responses=[make_response(seed, {"products": first})],
        pages={"https://blinkit.com/v1/search?q=milk&offset=24": {"products": [make_product(2)]}},
    )
    state = seeded_state(3, first)

    probe(session, state)

    assert session.fetched[0] == "https://blinkit.com/v1/search?q=milk&offset=24"
    assert state.total == 3


def test_select_endpoint_prefers_paginated_listing(make_response, make_product):
    products = {"products": [make_product(i) for i in range(3)]}
    responses = [
        make_response("https://blinkit.com/v1/user/cart", products),
        make_response("https://blinkit.com/v1/layout/search?offset=0", products),
        make_response("https://blinkit.com/v1/config", {"flags": {"dark": True}}),
    ]
    selected = PaginationProber().select_endpoint(responses)
    assert selected.url == "https://blinkit.com/v1/layout/search?offset=0"


def test_select_endpoint_requires_minimum_yield(make_response, make_product):
    responses = [make_response(BASE.format(0), {"products": [make_product(0)]})]
    assert PaginationProber().select_endpoint(responses) is None


def test_probe_offsets_until_target(make_session, make_response, make_product):
    first = [make_product(0), make_product(1)]
    session = make_session(
        responses=[make_response(BASE.format(0), {"products": first}, method="POST", post_data='{"q":"milk"}')],
        pages={
            BASE.format(2): {"products": [make_product(2), make_product(3)]},
            BASE.format(4): {"products": [make_product(4), make_product(5)]},
        },
    )
    state = seeded_state(5, first)

    assert probe(session, state) == 3
    assert state.total == 5
    assert session.fetched == [BASE.format(2), BASE.format(4)]


def test_probe_stops_on_empty_page(make_session, make_response, make_product):
    first = [make_product(0), make_product(1)]
    session = make_session(responses=[make_response(BASE.format(0), {"products": first})])
    state = seeded_state(10, first)

    assert probe(session, state) == 0
    assert session.fetched == [BASE.format(2)]


def test_probe_stops_when_page_adds_nothing_new(make_session, make_response, make_product):
    first = [make_product(0), make_product(1)]
    session = make_session(
        responses=[make_response(BASE.format(0), {"products": first})],
        pages={BASE.format(2): {"products": first}, BASE.format(4): {"products": [make_product(9)]}},
    )
    state = seeded_state(10, first)

    assert probe(session, state) == 0
    assert session.fetched == [BASE.format(2)]


def test_probe_stops_on_fetch_failure(make_session, make_response, make_product):
    first = [make_product(0), make_product(1)]
    session = make_session(responses=[make_response(BASE.format(0), {"products": first})], failing={"fetch_json"})
    state = seeded_state(10, first)

    assert probe(session, state) == 0
    assert state.total == 2


def test_probe_respects_max_probes(make_session, make_response, make_product):
    first = [make_product(0), make_product(1)]
    pages = {BASE.format(2 * n): {"products": [make_product(2 * n), make_product(2 * n + 1)]} for n in range(1, 20)}
    session = make_session(responses=[make_response(BASE.format(0), {"products": first})], pages=pages)
    state = seeded_state(100, first)

    prober = PaginationProber(max_probes=3)

    async def emit(records, source):
        return state.accept(records, source)

    assert asyncio.run(prober.probe(session, state, emit)) == 6
    assert len(session.fetched) == 3


def test_probe_not_used_for_unlimited_runs(make_session, make_response, make_product):
    first = [make_product(0), make_product(1)]
    session = make_session(responses=[make_response(BASE.format(0), {"products": first})])
    state = seeded_state(0, first)

    assert probe(session, state) == 0
    assert session.fetched == []
