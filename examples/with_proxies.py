"""
Proxy Usage Example
Residential proxy plus a delivery location, records appended to a JSON Lines file
"""

import asyncio

from blinkit_scraper import BlinkitScraper, SearchInput
from blinkit_scraper.core.sinks import DirectoryDiagnosticsStore, JsonLinesSink

# Proxy configuration (any HTTP proxy with an Indian exit works)
PROXY_CONFIG = {
    'server': 'http://proxy.example.com:8000',
    'username': 'your-username',
    'password': 'your-password'
}


async def main():
    search_input = SearchInput.from_dict({
        'search_query': 'atta',
        'results_wanted': 50,
        'latitude': 28.4595,  # Gurugram
        'longitude': 77.0266,
        'proxy_config': PROXY_CONFIG
    })

    scraper = BlinkitScraper(headless=True, max_request_retries=3)
    result = await scraper.scrape(
        search_input,
        sink=JsonLinesSink('output/atta.jsonl'),
        diagnostics=DirectoryDiagnosticsStore('output/debug')
    )

    print(f"\n✅ Extracted {len(result['data'])} products with proxy")
    print(f"⏱️  Time: {result['metadata']['execution_time']:.2f}s")
    if result['status'] != 'success':
        print(f"❌ {result['error']}")


if __name__ == '__main__':
    # Note: Replace PROXY_CONFIG with your actual proxy credentials
    print("⚠️  Update PROXY_CONFIG with your proxy credentials before running")
    # asyncio.run(main())
