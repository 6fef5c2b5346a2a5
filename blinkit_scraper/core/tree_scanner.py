"""
Tree Scanner - Schema-less search for product candidates
Walks arbitrary JSON (state dumps, hydration payloads, API responses) and
collects the objects and arrays that look like products
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set

from .candidate_scorer import CandidateScorer
from .field_canonicalizer import find_inner

logger = logging.getLogger(__name__)


@dataclass
class CandidateGroup:
    """A product array (or a single standalone product object) found in a payload"""
    items: List[Dict[str, Any]]
    score: float
    path: str

    @property
    def size(self) -> int:
        return len(self.items)


class TreeScanner:
    """
    Depth-bounded, cycle-safe walk over untyped JSON

    Every node is visited once (identity-keyed visited set), so shared references
    and cycles are harmless. Known Blinkit container keys are walked first, but the
    walk still covers every key: unknown response shapes are found generically.
    """

    # Walked first - precision/perf only, never a filter
    CONTAINER_KEYS = [
        'products', 'productMap', 'product_map', 'productsById', 'items', 'objects',
        'snippets', 'widgets', 'widget_list', 'results', 'search_results',
        'searchResults', 'data', 'response', 'entities', 'state', 'props',
        'pageProps', 'initialState'
    ]

    # Objects under these keys are maps of id -> product
    PRODUCT_MAP_KEYS = [
        'products', 'productMap', 'product_map', 'products_map', 'productsById', 'entities'
    ]

    # Keys that make a client-state snapshot "recognizable"
    PRODUCT_CONTAINER_KEYS = [
        'products', 'productMap', 'product_map', 'productsById', 'items',
        'snippets', 'widgets', 'objects', 'search_results', 'searchResults'
    ]

    DEFAULT_MAX_DEPTH = 8

    def __init__(self, scorer: Optional[CandidateScorer] = None, max_depth: int = DEFAULT_MAX_DEPTH):
        self.scorer = scorer or CandidateScorer()
        self.max_depth = max_depth

    def scan(self, root: Any) -> List[CandidateGroup]:
        """
        Find all candidate groups reachable from root

        Returns:
            Groups ordered by mean score (desc), then size (desc), then discovery order
        """
        groups: List[CandidateGroup] = []
        visited: Set[int] = set()
        self._walk(root, 0, '$', None, visited, groups)
        ranked = self.rank(groups)

        if ranked:
            logger.debug(f" Scan found {len(ranked)} candidate group(s), best '{ranked[0].path}' "
                         f"(score={ranked[0].score:.1f}, {ranked[0].size} items)")
        return ranked

    def candidates(self, root: Any) -> List[Dict[str, Any]]:
        """Flatten ranked groups into candidate objects"""
        return [item for group in self.scan(root) for item in group.items]

    @staticmethod
    def rank(groups: List[CandidateGroup]) -> List[CandidateGroup]:
        # sorted() is stable, so equal groups keep discovery order
        return sorted(groups, key=lambda g: (-g.score, -g.size))

    def find_containers(self, root: Any) -> List[Any]:
        """Return the nodes held under recognized product-container keys"""
        containers: List[Any] = []
        visited: Set[int] = set()
        stack = [(root, 0)]

        while stack:
            node, depth = stack.pop()
            if depth > self.max_depth or not isinstance(node, (dict, list)):
                continue
            if id(node) in visited:
                continue
            visited.add(id(node))

            if isinstance(node, dict):
                children = []
                for key, value in node.items():
                    if key in self.PRODUCT_CONTAINER_KEYS and isinstance(value, (dict, list)) and value:
                        containers.append(value)
                    elif isinstance(value, (dict, list)):
                        children.append(value)
                stack.extend((child, depth + 1) for child in reversed(children))
            else:
                stack.extend((child, depth + 1) for child in reversed(node) if isinstance(child, (dict, list)))

        return containers

    def _walk(
        self,
        node: Any,
        depth: int,
        path: str,
        key: Optional[str],
        visited: Set[int],
        groups: List[CandidateGroup]
    ) -> bool:
        """Returns True when the subtree produced at least one candidate"""
        if depth > self.max_depth:
            return False
        if not isinstance(node, (dict, list)):
            return False
        if id(node) in visited:
            return False
        visited.add(id(node))

        if isinstance(node, list):
            return self._walk_list(node, depth, path, visited, groups)
        return self._walk_dict(node, depth, path, key, visited, groups)

    def _walk_list(self, node: List[Any], depth: int, path: str, visited: Set[int], groups: List[CandidateGroup]) -> bool:
        if not node:
            return False

        if all(isinstance(item, dict) for item in node):
            if self._accept_group(node, path, visited, groups):
                return True

        found = False
        for idx, item in enumerate(node):
            if self._walk(item, depth + 1, f"{path}[{idx}]", None, visited, groups):
                found = True
        return found

    def _walk_dict(
        self,
        node: Dict[str, Any],
        depth: int,
        path: str,
        key: Optional[str],
        visited: Set[int],
        groups: List[CandidateGroup]
    ) -> bool:
        if self._looks_like_product_map(node, key):
            if self._accept_group(list(node.values()), path, visited, groups):
                return True

        # A priced product owns its subtree (variants, nested widgets)
        score = self.scorer.score(node)
        if score >= self.scorer.threshold and self.scorer.has_price_signal(node):
            groups.append(CandidateGroup([node], score, path))
            return True

        inner = find_inner(node)
        found = False
        for child_key in self._ordered_keys(node):
            value = node[child_key]
            if value is inner or not isinstance(value, (dict, list)):
                continue
            if self._walk(value, depth + 1, f"{path}.{child_key}", child_key, visited, groups):
                found = True

        if not found and score >= self.scorer.threshold:
            groups.append(CandidateGroup([node], score, path))
            return True

        if inner is not None:
            if self._walk(inner, depth + 1, f"{path}.<inner>", None, visited, groups):
                found = True
        return found

    def _accept_group(self, items: List[Any], path: str, visited: Set[int], groups: List[CandidateGroup]) -> bool:
        fresh = [item for item in items if isinstance(item, dict) and id(item) not in visited]
        if not fresh:
            return False

        mean = self.scorer.mean_score(fresh)
        if mean < self.scorer.threshold:
            return False

        for item in fresh:
            visited.add(id(item))
        groups.append(CandidateGroup(fresh, mean, path))
        return True

    def _looks_like_product_map(self, node: Dict[str, Any], key: Optional[str]) -> bool:
        if not node or not all(isinstance(value, dict) for value in node.values()):
            return False
        if key in self.PRODUCT_MAP_KEYS:
            return True
        return len(node) >= 2 and all(str(k).isdigit() for k in node.keys())

    def _ordered_keys(self, node: Dict[str, Any]) -> List[str]:
        preferred = [key for key in self.CONTAINER_KEYS if key in node]
        preferred_set = set(preferred)
        return preferred + [key for key in node.keys() if key not in preferred_set]
