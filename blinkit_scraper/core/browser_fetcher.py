"""
Browser-based page session using Playwright (Async)
Renders the Blinkit search page, captures JSON API responses and exposes
the in-page hooks the extraction waterfall needs
"""

import asyncio
import logging
import random
from typing import Any, Dict, List, Optional

from .page_session import CapturedResponse, PageSession

logger = logging.getLogger(__name__)

try:
    from playwright.async_api import async_playwright
    BROWSER_AVAILABLE = True
except ImportError:
    BROWSER_AVAILABLE = False
    logger.warning("Playwright not available. Install with: pip install playwright")


class BlockedPageError(RuntimeError):
    """Navigation landed on a challenge / access-denied page"""


# Titles of challenge and block pages
BLOCK_TITLE_MARKERS = ['Access Denied', 'Captcha', 'Robot', 'Blocked']

BLOCKED_RESOURCE_TYPES = ['font', 'media']
BLOCKED_URL_FRAGMENTS = [
    'google-analytics', 'googletagmanager', 'facebook.com', 'doubleclick.net', 'hotjar'
]

# Headers that must not be replayed on a session-scoped fetch
UNREPLAYABLE_HEADERS = {'content-length', 'host', 'cookie', 'connection', 'accept-encoding'}

USER_AGENTS = [
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36',
    'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36',
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 Edg/120.0.0.0',
]

# Product card selectors, several fallbacks per field
DOM_SELECTORS = {
    'productContainer': [
        'div[class*="Product__"]',
        '[data-testid="product"]',
        'article[class*="product"]',
        'div[class*="ProductCard"]'
    ],
    'productName': [
        'div[class*="Product__ProductName"]',
        '[data-testid="product-name"]',
        'h3[class*="product-name"]',
        'div[class*="ProductName"]'
    ],
    'currentPrice': [
        'div[class*="Product__UpdatedPrice"]',
        '[data-testid="product-price"]',
        'span[class*="price"]',
        'div[class*="Price"]'
    ],
    'originalPrice': [
        'div[class*="Product__MrpText"]',
        '[data-testid="original-price"]',
        'span[class*="mrp"]',
        'del[class*="price"]'
    ],
    'discount': [
        'div[class*="Product__UpdatedDiscountPercent"]',
        '[data-testid="discount"]',
        'span[class*="discount"]'
    ],
    'productImage': [
        'img[class*="Product__ProductImage"]',
        '[data-testid="product-image"]',
        'img[class*="product-img"]'
    ],
    'addButton': [
        'div[class*="Product__AddToCart"]',
        'button[class*="add-to-cart"]',
        '[data-testid="add-button"]'
    ],
    'outOfStock': [
        'div[class*="OutOfStock"]',
        '[data-testid="out-of-stock"]',
        'span[class*="out-of-stock"]'
    ],
    'deliveryTime': [
        'div[class*="eta-"]',
        '[data-testid="delivery-time"]',
        'span[class*="delivery"]'
    ],
}

STEALTH_INIT_SCRIPT = """
    Object.defineProperty(navigator, 'webdriver', {
        get: () => undefined,
        configurable: true
    });

    Object.defineProperty(navigator, 'languages', {
        get: () => ['en-IN', 'en-US', 'en'],
        configurable: true
    });

    if (!window.chrome) window.chrome = {};
    window.chrome.runtime = {
        connect: () => {},
        sendMessage: () => {}
    };

    const originalQuery = navigator.permissions?.query;
    if (originalQuery) {
        navigator.permissions.query = (params) => (
            params.name === 'notifications' ?
                Promise.resolve({ state: Notification.permission || 'default' }) :
                originalQuery(params)
        );
    }
"""

# Reads runtime-state globals, dropping cycles and functions so the result is JSON-safe
STATE_SNAPSHOT_SCRIPT = """
() => {
    const seen = new WeakSet();
    const safe = (value) => JSON.parse(JSON.stringify(value, (key, v) => {
        if (typeof v === 'function') return undefined;
        if (typeof v === 'object' && v !== null) {
            if (seen.has(v)) return undefined;
            seen.add(v);
        }
        return v;
    }));

    const out = {};
    for (const name of ['__NEXT_DATA__', '__INITIAL_STATE__', '__PRELOADED_STATE__', '__APOLLO_STATE__', '__NUXT__']) {
        try {
            if (window[name]) out[name] = safe(window[name]);
        } catch (e) {}
    }
    for (const name of ['store', '__store__', 'grofers']) {
        try {
            const holder = window[name];
            if (!holder) continue;
            const store = typeof holder.getState === 'function' ? holder : holder.store;
            if (store && typeof store.getState === 'function') out[name] = safe(store.getState());
        } catch (e) {}
    }
    return Object.keys(out).length ? out : null;
}
"""

DOM_EXTRACTION_SCRIPT = """
({ selectors, limit }) => {
    const findWithSelectors = (element, selectorArray) => {
        for (const selector of selectorArray) {
            const found = element.querySelector(selector);
            if (found) return found;
        }
        return null;
    };
    const text = (el) => el ? el.textContent.trim() : null;

    let productElements = [];
    for (const containerSelector of selectors.productContainer) {
        productElements = Array.from(document.querySelectorAll(containerSelector));
        if (productElements.length > 0) break;
    }
    if (limit > 0) productElements = productElements.slice(0, limit);

    return productElements.map(el => {
        const imageEl = findWithSelectors(el, selectors.productImage);
        const outOfStockEl = findWithSelectors(el, selectors.outOfStock);
        const addButtonEl = findWithSelectors(el, selectors.addButton);
        const deliveryEl = findWithSelectors(el, selectors.deliveryTime) ||
                           findWithSelectors(document, selectors.deliveryTime);
        return {
            product_name: text(findWithSelectors(el, selectors.productName)),
            price: text(findWithSelectors(el, selectors.currentPrice)),
            original_price: text(findWithSelectors(el, selectors.originalPrice)),
            discount_percentage: text(findWithSelectors(el, selectors.discount)),
            product_image: imageEl ? (imageEl.src || imageEl.getAttribute('src')) : null,
            availability: outOfStockEl ? 'Out of Stock' : (addButtonEl ? 'In Stock' : null),
            delivery_time: text(deliveryEl),
        };
    });
}
"""


class BrowserFetcher(PageSession):
    """
    Playwright page session for one seed URL

    Every JSON response observed while the page is open is appended to
    `captured_responses`. Non-JSON or malformed bodies are skipped silently.
    """

    def __init__(
        self,
        headless: bool = True,
        proxy_config: Optional[Dict[str, str]] = None,
        geolocation: Optional[Dict[str, float]] = None,
        timeout: int = 60000,
        scroll_pause: float = 1.5,
        settle_wait: float = 3.0
    ):
        """
        Initialize Browser Fetcher

        Args:
            headless: Run browser in headless mode
            proxy_config: Dict with 'server', 'username', 'password' keys
            geolocation: Dict with 'latitude', 'longitude' keys
            timeout: Navigation and request timeout in milliseconds
            scroll_pause: Seconds to wait after each scroll increment
            settle_wait: Seconds to wait after DOM content loaded
        """
        if not BROWSER_AVAILABLE:
            raise ImportError(
                "Playwright not available. Install with: pip install playwright && playwright install chromium"
            )
        super().__init__()

        self.headless = headless
        self.proxy_config = proxy_config
        self.geolocation = geolocation
        self.timeout = timeout
        self.scroll_pause = scroll_pause
        self.settle_wait = settle_wait
        self.playwright = None
        self.browser = None
        self.context = None
        self.page = None

    async def __aenter__(self):
        await self._launch_browser()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _launch_browser(self) -> None:
        logger.info(" Launching Chromium...")

        launch_options: Dict[str, Any] = {
            'headless': self.headless,
            'args': [
                '--disable-blink-features=AutomationControlled',
                '--disable-dev-shm-usage',
                '--no-sandbox'
            ]
        }

        if self.proxy_config and self.proxy_config.get('server'):
            proxy_server = self.proxy_config['server']
            if not proxy_server.startswith('http'):
                proxy_server = f"http://{proxy_server}"
            launch_options['proxy'] = {'server': proxy_server}
            if self.proxy_config.get('username') and self.proxy_config.get('password'):
                launch_options['proxy']['username'] = self.proxy_config['username']
                launch_options['proxy']['password'] = self.proxy_config['password']
            logger.info(f" Using proxy: {proxy_server}")

        context_options: Dict[str, Any] = {
            'ignore_https_errors': True,
            'viewport': {
                'width': random.choice([1920, 1366, 1536, 1440]),
                'height': random.choice([1080, 768, 864, 900])
            },
            'user_agent': random.choice(USER_AGENTS),
            'locale': 'en-IN',
            'extra_http_headers': {'accept-language': 'en-IN,en;q=0.9'},
        }
        if self.geolocation:
            context_options['geolocation'] = self.geolocation
            context_options['permissions'] = ['geolocation']
            logger.info(f" Geolocation: {self.geolocation['latitude']}, {self.geolocation['longitude']}")

        try:
            self.playwright = await async_playwright().start()
            self.browser = await self.playwright.chromium.launch(**launch_options)
            self.context = await self.browser.new_context(**context_options)
            await self.context.add_init_script(STEALTH_INIT_SCRIPT)
            await self.context.route('**/*', self._route)

            self.page = await self.context.new_page()
            self.page.on('response', self._handle_response)
            logger.info(" Browser launched successfully")
        except Exception as e:
            logger.error(f" Failed to launch browser: {e}")
            await self.close()
            raise

    async def _route(self, route) -> None:
        request = route.request
        url = request.url
        if request.resource_type in BLOCKED_RESOURCE_TYPES or any(fragment in url for fragment in BLOCKED_URL_FRAGMENTS):
            await route.abort()
        else:
            await route.continue_()

    async def _handle_response(self, response) -> None:
        """Passive, append-only capture of JSON responses"""
        content_type = response.headers.get('content-type', '').lower()
        if 'json' not in content_type:
            return

        try:
            body = await response.json()
        except Exception:
            logger.debug(f" Skipping unparsable JSON body: {response.url[:100]}")
            return

        request = response.request
        self.captured_responses.append(CapturedResponse(
            url=response.url,
            body=body,
            method=request.method,
            status=response.status,
            request_headers=dict(request.headers),
            headers=dict(response.headers),
            post_data=request.post_data
        ))
        logger.debug(f" Captured JSON: {response.url[:100]}")

    async def goto(self, url: str) -> None:
        """
        Navigate to the seed URL

        Raises:
            BlockedPageError: the page title looks like a challenge/block page
        """
        # Human-like delay before navigation
        await asyncio.sleep(1 + random.random() * 2)

        logger.info(f" Navigating to: {url}")
        await self.page.goto(url, timeout=self.timeout, wait_until='domcontentloaded')

        title = await self.page.title()
        logger.info(f" Page title: {title}")
        if any(marker in title for marker in BLOCK_TITLE_MARKERS):
            raise BlockedPageError(f"Blocked page detected: {title!r}")

        await asyncio.sleep(self.settle_wait)

    async def read_state_snapshot(self) -> Optional[Dict[str, Any]]:
        return await self.page.evaluate(STATE_SNAPSHOT_SCRIPT)

    async def read_hydration_html(self) -> str:
        return await self.page.content()

    async def page_content(self) -> str:
        return await self.page.content()

    async def scroll_increment(self) -> int:
        await self.page.evaluate('window.scrollTo(0, document.body.scrollHeight)')
        await asyncio.sleep(self.scroll_pause + random.random() * 0.5)
        return await self.page.evaluate('document.body.scrollHeight')

    async def fetch_json(
        self,
        url: str,
        method: str = 'GET',
        headers: Optional[Dict[str, str]] = None,
        data: Optional[str] = None
    ) -> Any:
        replay_headers = {
            key: value for key, value in (headers or {}).items()
            if not key.startswith(':') and key.lower() not in UNREPLAYABLE_HEADERS
        }
        # page.request shares the browser context's cookies
        response = await self.page.request.fetch(
            url,
            method=method,
            headers=replay_headers,
            data=data,
            timeout=self.timeout
        )
        if not response.ok:
            logger.warning(f" Session fetch returned HTTP {response.status}: {url[:100]}")
            return None

        try:
            return await response.json()
        except Exception:
            logger.debug(f" Session fetch body is not JSON: {url[:100]}")
            return None

    async def extract_dom_products(self, limit: int = 0) -> List[Dict[str, Any]]:
        products = await self.page.evaluate(DOM_EXTRACTION_SCRIPT, {'selectors': DOM_SELECTORS, 'limit': limit})
        logger.info(f" DOM fallback found {len(products)} product card(s)")
        return products

    async def close(self) -> None:
        """Clean up browser resources"""
        if self.context:
            try:
                await self.context.close()
            except Exception as e:
                logger.debug(f"Context close failed: {e}")
        if self.browser:
            try:
                await self.browser.close()
            except Exception as e:
                logger.debug(f"Browser close failed: {e}")
        if self.playwright:
            try:
                await self.playwright.stop()
            except Exception as e:
                logger.debug(f"Playwright stop failed: {e}")

        self.context = None
        self.browser = None
        self.playwright = None
        self.page = None
        logger.info(" Browser closed")
