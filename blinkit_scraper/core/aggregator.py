"""
Multi-Source Aggregator - Priority waterfall over overlapping product sources

Stages, in strict order:
1. Client-runtime state snapshot
2. Server-hydration payload
3. Incremental loading (scroll) with network-response re-checks
4. Final re-check of state + every captured response
5. Pagination probing
6. DOM selector fallback
"""

import functools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Set, Tuple

from .hydration_detector import HydrationDetector
from .page_session import CapturedResponse, PageSession
from .pagination_prober import PaginationProber
from .product_normalizer import ProductNormalizer
from .tree_scanner import TreeScanner

logger = logging.getLogger(__name__)


class StageOutcome(Enum):
    CONTINUE = 'continue'
    STOP_SUCCESS = 'stop_success'
    STOP_EXHAUSTED = 'stop_exhausted'


class BatchDeliveryError(RuntimeError):
    """The on_batch callback (output sink) failed; never swallowed by stage isolation"""


@dataclass
class SourceBatch:
    source: str
    products: List[Dict[str, Any]] = field(default_factory=list)


def dedup_key(record: Dict[str, Any]) -> Tuple[Any, ...]:
    return (
        record.get('name'),
        record.get('price'),
        record.get('original_price'),
        record.get('image_url'),
        record.get('product_url'),
    )


class ExtractionState:
    """
    Per-run dedup state: the global DedupKey set, running total and accepted batches

    One instance per run, passed through the waterfall by reference. Nothing here
    is module-global.
    """

    def __init__(self, target: int = 0):
        self.target = max(int(target or 0), 0)
        self.seen_keys: Set[Tuple[Any, ...]] = set()
        self.total = 0
        self.batches: List[SourceBatch] = []
        self.outcome = StageOutcome.CONTINUE

    @property
    def unlimited(self) -> bool:
        return self.target == 0

    @property
    def target_met(self) -> bool:
        return not self.unlimited and self.total >= self.target

    @property
    def products(self) -> List[Dict[str, Any]]:
        return [product for batch in self.batches for product in batch.products]

    def should_continue(self) -> bool:
        """Unlimited runs stop at the first source yielding anything"""
        if self.unlimited:
            return self.total == 0
        return self.total < self.target

    def accept(self, records: Sequence[Dict[str, Any]], source: str) -> SourceBatch:
        """Dedup records against the run (and each other) and cap them at the target"""
        accepted = []
        for record in records:
            if not self.unlimited and self.total + len(accepted) >= self.target:
                break
            key = dedup_key(record)
            if key in self.seen_keys:
                continue
            self.seen_keys.add(key)
            accepted.append(record)

        batch = SourceBatch(source=source, products=accepted)
        if accepted:
            self.total += len(accepted)
            self.batches.append(batch)
        return batch


class MultiSourceAggregator:
    """
    Drives one page session toward a target count (0 = unlimited)

    A stage runs only while the run should continue. A stage that raises is logged
    and treated as empty; the waterfall moves on. With an unlimited target the first
    stage yielding any unique record ends the run.
    """

    DEFAULT_MAX_SCROLL_ITERATIONS = 20
    DEFAULT_STABLE_ITERATIONS = 3

    def __init__(
        self,
        session: PageSession,
        target: int = 0,
        scanner: Optional[TreeScanner] = None,
        normalizer: Optional[ProductNormalizer] = None,
        hydration_detector: Optional[HydrationDetector] = None,
        prober: Optional[PaginationProber] = None,
        max_scroll_iterations: int = DEFAULT_MAX_SCROLL_ITERATIONS,
        stable_iterations: int = DEFAULT_STABLE_ITERATIONS,
        on_batch: Optional[Callable[[SourceBatch], Awaitable[None]]] = None
    ):
        self.session = session
        self.target = target
        self.scanner = scanner or TreeScanner()
        self.normalizer = normalizer or ProductNormalizer()
        self.hydration_detector = hydration_detector or HydrationDetector()
        self.prober = prober or PaginationProber(scanner=self.scanner, normalizer=self.normalizer)
        self.max_scroll_iterations = max_scroll_iterations
        self.stable_iterations = stable_iterations
        self.on_batch = on_batch

    async def run(self, state: Optional[ExtractionState] = None) -> ExtractionState:
        """
        Run the waterfall on the current page

        Args:
            state: Dedup state carried over from an earlier attempt in the same run

        Returns:
            The ExtractionState holding every accepted batch
        """
        if state is None:
            state = ExtractionState(self.target)
        state.outcome = StageOutcome.CONTINUE
        target_str = 'unlimited' if state.unlimited else state.target
        logger.info(f" Starting extraction waterfall (target: {target_str})")

        stages = [
            ('client_state', self._stage_client_state),
            ('hydration', self._stage_hydration),
            ('scroll', self._stage_scroll),
            ('final_recheck', self._stage_final_recheck),
            ('pagination', self._stage_pagination),
            ('dom_fallback', self._stage_dom_fallback),
        ]

        for name, stage in stages:
            if not state.should_continue():
                break

            outcome = await self._run_stage(name, stage, state)
            if outcome is not StageOutcome.CONTINUE:
                state.outcome = outcome
                break

        if state.outcome is StageOutcome.CONTINUE:
            state.outcome = StageOutcome.STOP_SUCCESS if state.total else StageOutcome.STOP_EXHAUSTED

        logger.info(f" Waterfall finished: {state.total} unique products ({state.outcome.value})")
        return state

    async def _run_stage(self, name: str, stage, state: ExtractionState) -> StageOutcome:
        before = state.total
        try:
            await stage(state)
        except BatchDeliveryError:
            raise
        except Exception as e:
            logger.warning(f" Stage '{name}' failed, treating as empty: {e}")

        added = state.total - before
        if added:
            logger.info(f" Stage '{name}': +{added} unique products (total {state.total})")
        else:
            logger.info(f" Stage '{name}': no new products")

        if state.target_met or (state.unlimited and state.total > 0):
            return StageOutcome.STOP_SUCCESS
        return StageOutcome.CONTINUE

    async def _emit(self, state: ExtractionState, records: List[Dict[str, Any]], source: str) -> SourceBatch:
        batch = state.accept(records, source)
        if batch.products and self.on_batch:
            try:
                await self.on_batch(batch)
            except Exception as e:
                raise BatchDeliveryError(f"Failed to deliver {source} batch: {e}") from e
        return batch

    def _extract(self, payload: Any) -> List[Dict[str, Any]]:
        return self.normalizer.normalize_many(self.scanner.candidates(payload))

    def _extract_responses(self, responses: Sequence[CapturedResponse]) -> List[Dict[str, Any]]:
        records = []
        for response in responses:
            records.extend(self._extract(response.body))
        return records

    async def _snapshot_records(self) -> List[Dict[str, Any]]:
        snapshot = await self.session.read_state_snapshot()
        if not snapshot:
            return []

        containers = self.scanner.find_containers(snapshot)
        if not containers:
            logger.debug(" Client state has no recognizable product container")
            return []

        records = []
        for container in containers:
            records.extend(self._extract(container))
        return records

    async def _stage_client_state(self, state: ExtractionState) -> None:
        records = await self._snapshot_records()
        await self._emit(state, records, 'client_state')

    async def _stage_hydration(self, state: ExtractionState) -> None:
        html = await self.session.read_hydration_html()
        records = []
        for payload in self.hydration_detector.detect(html):
            records.extend(self._extract(payload['data']))
        await self._emit(state, records, 'hydration')

    async def _stage_scroll(self, state: ExtractionState) -> None:
        cursor = len(self.session.captured_responses)
        records = self._extract_responses(self.session.captured_responses[:cursor])
        await self._emit(state, records, 'network')

        prev_height = 0
        prev_snapshot_count = 0
        prev_distinct = len(self.session.response_urls())
        stale = 0

        for iteration in range(1, self.max_scroll_iterations + 1):
            if state.target_met:
                logger.info(f" Target reached after {iteration - 1} scroll(s)")
                break

            height = await self.session.scroll_increment()

            try:
                snapshot_records = await self._snapshot_records()
            except Exception as e:
                logger.debug(f" Client state re-check failed: {e}")
                snapshot_records = []
            await self._emit(state, snapshot_records, 'client_state')

            responses = self.session.captured_responses
            new_responses = responses[cursor:]
            cursor = len(responses)
            await self._emit(state, self._extract_responses(new_responses), 'network')

            distinct = len(self.session.response_urls())
            grew = (
                height > prev_height or
                len(snapshot_records) > prev_snapshot_count or
                distinct > prev_distinct
            )
            logger.info(f" Scroll #{iteration}: height={height}px, state products={len(snapshot_records)}, "
                        f"responses={distinct}, total={state.total}")

            prev_height = max(prev_height, height)
            prev_snapshot_count = max(prev_snapshot_count, len(snapshot_records))
            prev_distinct = distinct

            if grew:
                stale = 0
                continue

            stale += 1
            if stale >= self.stable_iterations:
                logger.info(f" Page stable for {stale} scroll(s), stopping incremental loading")
                break

    async def _stage_final_recheck(self, state: ExtractionState) -> None:
        try:
            records = await self._snapshot_records()
        except Exception as e:
            logger.debug(f" Client state re-check failed: {e}")
            records = []
        records.extend(self._extract_responses(self.session.captured_responses))
        await self._emit(state, records, 'final_recheck')

    async def _stage_pagination(self, state: ExtractionState) -> None:
        if state.unlimited:
            return
        await self.prober.probe(self.session, state, functools.partial(self._emit, state))

    async def _stage_dom_fallback(self, state: ExtractionState) -> None:
        if state.total > 0:
            return
        logger.warning(" No structured source yielded products, falling back to DOM selectors")
        raw = await self.session.extract_dom_products(limit=0)
        await self._emit(state, self.normalizer.normalize_many(raw), 'dom')
