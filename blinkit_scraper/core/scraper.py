"""
Blinkit Scraper - Main orchestration class
Drives one search page through the extraction waterfall with retries
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from .aggregator import BatchDeliveryError, ExtractionState, MultiSourceAggregator, SourceBatch
from .browser_fetcher import BlockedPageError, BrowserFetcher
from .page_session import PageSession
from .search_input import SearchInput
from .sinks import (
    BLOCKED_PAGE_KEY,
    DEBUG_JSON_URLS_KEY,
    DEBUG_NO_PRODUCTS_KEY,
    ERROR_PAGE_KEY,
    DiagnosticsStore,
    MemoryDiagnosticsStore,
    MemorySink,
    OutputSink,
)

logger = logging.getLogger(__name__)


def enrich(product: Dict[str, Any], search_input: SearchInput, source: str, scraped_at: str) -> Dict[str, Any]:
    """Output record: a new dict, the normalized product is left untouched"""
    return {
        **product,
        'search_query': search_input.keyword,
        'url': search_input.search_url,
        'source': source,
        'scraped_at': scraped_at,
    }


class BlinkitScraper:
    """
    Blinkit search scraper

    Flow per attempt:
    1. Open a fresh page session (proxy, geolocation) and navigate to the seed URL
    2. Run the extraction waterfall, streaming each accepted batch to the sink
    3. Zero products: persist page markup and observed JSON URLs as diagnostics
    4. Failure or timeout: snapshot the page, close the browser, retry
    """

    DEFAULT_NAVIGATION_TIMEOUT = 60000  # ms
    DEFAULT_REQUEST_HANDLER_TIMEOUT = 180  # seconds
    DEFAULT_MAX_REQUEST_RETRIES = 5
    DEFAULT_SCROLL_PAUSE = 1.5
    DEFAULT_RETRY_DELAY = 2.0

    def __init__(
        self,
        proxy_config: Optional[Dict[str, str]] = None,
        headless: bool = True,
        navigation_timeout: int = DEFAULT_NAVIGATION_TIMEOUT,
        request_handler_timeout: float = DEFAULT_REQUEST_HANDLER_TIMEOUT,
        max_request_retries: int = DEFAULT_MAX_REQUEST_RETRIES,
        scroll_pause: float = DEFAULT_SCROLL_PAUSE,
        max_scroll_iterations: int = MultiSourceAggregator.DEFAULT_MAX_SCROLL_ITERATIONS,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        session_factory: Optional[Callable[[SearchInput], PageSession]] = None,
        log_level: int = logging.INFO
    ):
        """
        Initialize Blinkit Scraper

        Args:
            proxy_config: Dict with 'server', 'username', 'password' keys. A proxy
                          set on the SearchInput takes precedence.
            headless: Run browser in headless mode
            navigation_timeout: Navigation timeout in milliseconds
            request_handler_timeout: Upper bound for one page attempt in seconds
            max_request_retries: Retries after the first failed attempt
            scroll_pause: Seconds to wait after each scroll increment
            max_scroll_iterations: Scroll budget of the incremental-loading stage
            retry_delay: Base backoff between attempts in seconds
            session_factory: Builds the page session for an attempt (defaults to BrowserFetcher)
            log_level: Logging level
        """
        # Setup logging
        logging.basicConfig(
            level=log_level,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

        self.proxy_config = proxy_config
        self.headless = headless
        self.navigation_timeout = navigation_timeout
        self.request_handler_timeout = request_handler_timeout
        self.max_request_retries = max(int(max_request_retries), 0)
        self.scroll_pause = scroll_pause
        self.max_scroll_iterations = max_scroll_iterations
        self.retry_delay = retry_delay
        self.session_factory = session_factory or self._create_browser_session

    def _create_browser_session(self, search_input: SearchInput) -> PageSession:
        return BrowserFetcher(
            headless=self.headless,
            proxy_config=search_input.proxy_config or self.proxy_config,
            geolocation=search_input.geolocation,
            timeout=self.navigation_timeout,
            scroll_pause=self.scroll_pause
        )

    async def scrape(
        self,
        search_input: SearchInput,
        sink: Optional[OutputSink] = None,
        diagnostics: Optional[DiagnosticsStore] = None
    ) -> Dict[str, Any]:
        """
        Scrape one Blinkit search page

        Args:
            search_input: Validated run input
            sink: Destination for enriched records (in-memory by default)
            diagnostics: Store for debugging artifacts (in-memory by default)

        Returns:
            Dict with 'status', 'data', 'metadata' keys and 'error' on failure.
            'data' holds every record pushed to the sink during this run.
        """
        sink = sink or MemorySink()
        diagnostics = diagnostics or MemoryDiagnosticsStore()
        state = ExtractionState(search_input.results_wanted)
        delivered: List[Dict[str, Any]] = []
        start_time = time.time()
        attempts = self.max_request_retries + 1
        last_error: Optional[Exception] = None

        logger.info(f" Scraping '{search_input.keyword}' from {search_input.search_url}")

        async def deliver(batch: SourceBatch) -> None:
            scraped_at = datetime.now(timezone.utc).isoformat()
            records = [enrich(product, search_input, batch.source, scraped_at) for product in batch.products]
            await sink.push(records)
            delivered.extend(records)
            logger.info(f" Pushed {len(records)} record(s) from {batch.source}")

        for attempt in range(1, attempts + 1):
            try:
                await self._attempt(search_input, state, deliver, diagnostics)
            except BatchDeliveryError:
                raise
            except Exception as e:
                last_error = e
                logger.error(f" Attempt {attempt}/{attempts} failed: {type(e).__name__}: {e}")
                if attempt < attempts:
                    await asyncio.sleep(self.retry_delay * attempt)
                continue

            return self._result('success', search_input, state, delivered, start_time, attempt)

        logger.error(f" Giving up on {search_input.search_url} after {attempts} attempt(s)")
        return self._result('failed', search_input, state, delivered, start_time, attempts, error=last_error)

    async def _attempt(
        self,
        search_input: SearchInput,
        state: ExtractionState,
        deliver: Callable[[SourceBatch], Any],
        diagnostics: DiagnosticsStore
    ) -> None:
        session = self.session_factory(search_input)
        async with session:
            try:
                await asyncio.wait_for(
                    self._process_page(session, search_input, state, deliver, diagnostics),
                    timeout=self.request_handler_timeout
                )
            except BatchDeliveryError:
                raise
            except Exception as e:
                key = BLOCKED_PAGE_KEY if isinstance(e, BlockedPageError) else ERROR_PAGE_KEY
                await self._save_page(session, diagnostics, key)
                await self._save(diagnostics, DEBUG_JSON_URLS_KEY, session.response_urls())
                raise

    async def _process_page(
        self,
        session: PageSession,
        search_input: SearchInput,
        state: ExtractionState,
        deliver: Callable[[SourceBatch], Any],
        diagnostics: DiagnosticsStore
    ) -> None:
        await session.goto(search_input.search_url)

        aggregator = MultiSourceAggregator(
            session,
            target=search_input.results_wanted,
            max_scroll_iterations=self.max_scroll_iterations,
            on_batch=deliver
        )
        await aggregator.run(state)

        if state.total == 0:
            logger.warning(" No products found on page, saving diagnostics")
            await self._save_page(session, diagnostics, DEBUG_NO_PRODUCTS_KEY)
            await self._save(diagnostics, DEBUG_JSON_URLS_KEY, session.response_urls())

    async def _save_page(self, session: PageSession, diagnostics: DiagnosticsStore, key: str) -> None:
        try:
            html = await session.page_content()
        except Exception as e:
            logger.warning(f" Could not read page content for {key}: {e}")
            return
        await self._save(diagnostics, key, html, content_type='text/html')

    async def _save(self, diagnostics: DiagnosticsStore, key: str, value: Any, content_type: Optional[str] = None) -> None:
        try:
            await diagnostics.save(key, value, content_type=content_type)
        except Exception as e:
            logger.warning(f" Failed to save diagnostics '{key}': {e}")

    def _result(
        self,
        status: str,
        search_input: SearchInput,
        state: ExtractionState,
        delivered: List[Dict[str, Any]],
        start_time: float,
        attempts: int,
        error: Optional[Exception] = None
    ) -> Dict[str, Any]:
        elapsed = time.time() - start_time
        logger.info(f" Extraction complete: {len(delivered)} items in {elapsed:.2f}s ({status})")

        result = {
            'status': status,
            'data': delivered,
            'metadata': {
                'url': search_input.search_url,
                'search_query': search_input.keyword,
                'results_wanted': search_input.results_wanted,
                'items_extracted': len(delivered),
                'sources': [batch.source for batch in state.batches],
                'outcome': state.outcome.value,
                'attempts': attempts,
                'execution_time': elapsed,
                'timestamp': time.time()
            }
        }
        if error is not None:
            result['error'] = f"{type(error).__name__}: {error}"
        return result
