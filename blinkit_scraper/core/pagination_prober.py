"""
Pagination Prober - Next-page requests against a captured listing endpoint

Picks the captured JSON response that most looks like a paginated listing, then
replays it with an incremented page/offset parameter until the target is met or
a probe stops making progress.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple
from urllib.parse import parse_qsl, urlparse, urlunparse

from .page_session import CapturedResponse, PageSession
from .product_normalizer import ProductNormalizer
from .tree_scanner import TreeScanner

logger = logging.getLogger(__name__)


class PaginationProber:
    """
    Deterministic pagination probing

    Parameter detection follows a fixed preference order (page, offset, from, start,
    skip); the first one present in the base URL wins. Any no-progress probe halts
    probing for the rest of the run.
    """

    PAGINATION_PARAMS = ['page', 'offset', 'from', 'start', 'skip']
    STEP_PARAMS = ['limit', 'size', 'count']
    LISTING_PATH_HINTS = ['search', 'listing', 'products', 'layout', 'category', 'feed']

    PAGINATION_PARAM_BONUS = 5
    LISTING_PATH_BONUS = 3

    DEFAULT_STEP = 24
    DEFAULT_MAX_PROBES = 10
    DEFAULT_MIN_YIELD = 2

    def __init__(
        self,
        scanner: Optional[TreeScanner] = None,
        normalizer: Optional[ProductNormalizer] = None,
        max_probes: int = DEFAULT_MAX_PROBES,
        default_step: int = DEFAULT_STEP,
        min_yield: int = DEFAULT_MIN_YIELD
    ):
        self.scanner = scanner or TreeScanner()
        self.normalizer = normalizer or ProductNormalizer()
        self.max_probes = max_probes
        self.default_step = default_step
        self.min_yield = min_yield

    def extract(self, body: Any) -> List[Dict[str, Any]]:
        if body is None:
            return []
        return self.normalizer.normalize_many(self.scanner.candidates(body))

    def select_endpoint(self, responses: Sequence[CapturedResponse]) -> Optional[CapturedResponse]:
        """
        Pick the response most likely to be a paginated listing

        Score = raw product yield + pagination-parameter bonus + listing-path bonus.
        Responses yielding fewer than `min_yield` products are never picked.
        """
        best = None
        best_score = None

        for response in responses:
            product_yield = len(self.extract(response.body))
            if product_yield < self.min_yield:
                continue

            score = product_yield
            if self.detect_param(response.url):
                score += self.PAGINATION_PARAM_BONUS
            path = urlparse(response.url).path.lower()
            if any(hint in path for hint in self.LISTING_PATH_HINTS):
                score += self.LISTING_PATH_BONUS

            logger.debug(f"   Endpoint candidate {response.url[:100]} (yield={product_yield}, score={score})")
            if best is None or score > best_score:
                best, best_score = response, score

        return best

    def detect_param(self, url: str) -> Optional[Tuple[str, int]]:
        """Return (param_name, current_value) of the first usable pagination parameter"""
        values = dict(parse_qsl(urlparse(url).query, keep_blank_values=True))
        for name in self.PAGINATION_PARAMS:
            if name not in values:
                continue
            try:
                return name, int(values[name])
            except ValueError:
                logger.debug(f"   Ignoring non-integer pagination param {name}={values[name]!r}")
        return None

    def step_for(self, url: str, param: str) -> int:
        if param == 'page':
            return 1

        values = dict(parse_qsl(urlparse(url).query, keep_blank_values=True))
        for name in self.STEP_PARAMS:
            try:
                step = int(values.get(name, ''))
            except ValueError:
                continue
            if step > 0:
                return step
        return self.default_step

    @staticmethod
    def next_url(url: str, param: str, value: int) -> str:
        """Rewrite one query parameter's value; the rest of the query is kept byte-for-byte"""
        parsed = urlparse(url)
        pieces = [
            f"{param}={value}" if piece.partition('=')[0] == param else piece
            for piece in parsed.query.split('&')
        ]
        return urlunparse(parsed._replace(query='&'.join(pieces)))

    async def probe(
        self,
        session: PageSession,
        state,
        emit: Callable[[List[Dict[str, Any]], str], Awaitable[Any]]
    ) -> int:
        """
        Probe next pages of the best listing endpoint

        Args:
            session: Page session providing captured responses and the fetch primitive
            state: Running ExtractionState (target, dedup set)
            emit: Coroutine accepting (records, source) and returning the accepted SourceBatch

        Returns:
            Number of new unique records added
        """
        if state.unlimited or state.target_met:
            return 0

        endpoint = self.select_endpoint(session.captured_responses)
        if endpoint is None:
            logger.info(" No paginated listing endpoint among captured responses")
            return 0

        detected = self.detect_param(endpoint.url)
        if detected is None:
            logger.info(f" Endpoint has no pagination parameter, probing impossible: {endpoint.url[:100]}")
            return 0

        param, value = detected
        step = self.step_for(endpoint.url, param)
        url = endpoint.url
        added = 0

        logger.info(f" Probing {param} (step={step}) on {endpoint.url[:100]}")

        for attempt in range(1, self.max_probes + 1):
            if state.target_met:
                break

            value += step
            url = self.next_url(url, param, value)

            try:
                body = await session.fetch_json(
                    url,
                    method=endpoint.method,
                    headers=endpoint.request_headers,
                    data=endpoint.post_data
                )
            except Exception as e:
                logger.warning(f" Probe #{attempt} failed: {e}")
                break

            records = self.extract(body)
            if not records:
                logger.info(f" Probe #{attempt} returned no products, stopping")
                break

            batch = await emit(records, 'pagination')
            if not batch.products:
                logger.info(f" Probe #{attempt} added no new products, stopping")
                break

            added += len(batch.products)
            logger.info(f" Probe #{attempt}: +{len(batch.products)} products ({param}={value})")
        else:
            logger.info(f" Reached max probes ({self.max_probes})")

        return added
