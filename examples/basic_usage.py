"""
Basic Usage Example
Single Blinkit search, records collected in memory
"""

import asyncio

from blinkit_scraper import BlinkitScraper, SearchInput


async def main():
    search_input = SearchInput.from_dict({
        'search_query': 'amul milk',
        'results_wanted': 20
    })

    scraper = BlinkitScraper()
    result = await scraper.scrape(search_input)

    # Print results
    print(f"\n✅ Extracted {len(result['data'])} products ({result['status']})")
    print(f"⏱️  Time: {result['metadata']['execution_time']:.2f}s")
    print(f"📊 Sources: {', '.join(result['metadata']['sources']) or 'none'}")

    # Display first few items
    for i, item in enumerate(result['data'][:5], 1):
        print(f"\nItem {i}:")
        for field, value in item.items():
            print(f"  {field}: {value}")


if __name__ == '__main__':
    asyncio.run(main())
