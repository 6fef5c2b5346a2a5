from blinkit_scraper.core.candidate_scorer import CandidateScorer
from blinkit_scraper.core.product_normalizer import ProductNormalizer
from blinkit_scraper.core.tree_scanner import TreeScanner


def test_score_weights(make_product):
    scorer = CandidateScorer()
    # name 2 + price 2 + mrp 1 + image 1 + id 1
    assert scorer.score(make_product(0)) == 7
    assert scorer.score({"name": "Banner"}) == 2
    assert scorer.score("not an object") == 0
    assert scorer.is_candidate(make_product(0))
    assert not scorer.is_candidate({"name": "Banner"})


def test_score_reads_inner_object():
    scorer = CandidateScorer()
    wrapped = {"product": {"name": "Milk", "price": 30}, "tracking": {"pos": 1}}
    assert scorer.score(wrapped) == 4


def test_array_judged_by_mean_score(make_product):
    scorer = CandidateScorer()
    tiles = [{"title": "Offer", "url": "/x"} for _ in range(5)]
    assert not scorer.is_product_array(tiles + [make_product(0)])
    assert scorer.is_product_array([make_product(i) for i in range(3)])


def test_finds_nested_product_array(make_product):
    payload = {"response": {"snippets": [make_product(i) for i in range(3)]}}
    candidates = TreeScanner().candidates(payload)
    assert [c["name"] for c in candidates] == ["Product 0", "Product 1", "Product 2"]


def test_rejects_non_product_arrays():
    payload = {"banners": [{"title": "Ad", "url": "/promo"} for _ in range(4)]}
    assert TreeScanner().candidates(payload) == []


def test_cycles_and_shared_references_are_harmless(make_product):
    items = [make_product(0), make_product(1)]
    root = {"data": {"items": items, "copy": items}}
    root["data"]["self"] = root

    candidates = TreeScanner().candidates(root)
    assert len(candidates) == 2


def test_depth_bound(make_product):
    node = [make_product(0)]
    for _ in range(10):
        node = {"level": node}

    assert TreeScanner().candidates(node) == []
    assert len(TreeScanner(max_depth=12).candidates(node)) == 1


def test_product_map_values_are_candidates(make_product):
    payload = {"products": {"101": make_product(1), "102": make_product(2)}}
    candidates = TreeScanner().candidates(payload)
    assert {c["id"] for c in candidates} == {1001, 1002}


def test_groups_ranked_by_score_then_size(make_product):
    sparse = [{"name": f"Sparse {i}", "price": i + 1} for i in range(4)]
    full = [make_product(i) for i in range(2)]
    groups = TreeScanner().scan({"a": sparse, "b": full})

    assert [g.path for g in groups] == ["$.b", "$.a"]
    assert groups[0].score == 7
    assert groups[1].size == 4


def test_priced_product_owns_its_subtree(make_product):
    parent = make_product(0, variants=[make_product(10), make_product(11)])
    candidates = TreeScanner().candidates({"results": [parent]})
    assert candidates == [parent]


def test_standalone_object_is_a_group_of_one(make_product):
    groups = TreeScanner().scan({"widget": {"data": make_product(5)}})
    assert len(groups) == 1
    assert groups[0].size == 1


def test_find_containers(make_product):
    products = [make_product(0)]
    snapshot = {"__NEXT_DATA__": {"props": {"pageProps": {"products": products}}}}
    assert TreeScanner().find_containers(snapshot) == [products]
    assert TreeScanner().find_containers({"user": {"name": "x"}}) == []


def test_generic_array_of_objects_yields_records():
    payload = {"a": {"b": [{"name": "X", "price": 10}, {"name": "Y", "price": 20}]}}
    records = ProductNormalizer().normalize_many(TreeScanner().candidates(payload))
    assert [(r["name"], r["price"]) for r in records] == [("X", 10), ("Y", 20)]


def test_category_tile_is_rejected():
    payload = {"widgets": [{"title": "Category: Snacks", "id": 55}]}
    assert ProductNormalizer().normalize_many(TreeScanner().candidates(payload)) == []
    assert ProductNormalizer().normalize({"title": "Category: Snacks", "id": 55}) is None
