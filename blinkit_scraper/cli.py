"""
Command Line Interface for Blinkit Scraper
"""

import argparse
import asyncio
import json
import logging
import sys

from .core.scraper import BlinkitScraper
from .core.search_input import InvalidInputError, SearchInput
from .core.sinks import DirectoryDiagnosticsStore, JsonLinesSink, MemoryDiagnosticsStore, MemorySink


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Blinkit Scraper - heuristic product extraction from Blinkit search pages'
    )

    # Input
    parser.add_argument(
        '--query',
        type=str,
        help='Search keyword'
    )
    parser.add_argument(
        '--url',
        type=str,
        help='Full search URL override (keyword taken from its q parameter)'
    )
    parser.add_argument(
        '--results-wanted',
        type=str,
        default='0',
        help='Number of products to collect (default: 0 = unlimited)'
    )

    # Location
    parser.add_argument(
        '--lat',
        type=str,
        help='Delivery location latitude'
    )
    parser.add_argument(
        '--lon',
        type=str,
        help='Delivery location longitude'
    )

    # Proxy
    parser.add_argument(
        '--proxy-server',
        type=str,
        help='Proxy server URL'
    )
    parser.add_argument(
        '--proxy-username',
        type=str,
        help='Proxy username'
    )
    parser.add_argument(
        '--proxy-password',
        type=str,
        help='Proxy password'
    )

    # Output
    parser.add_argument(
        '--output',
        type=str,
        help='JSON Lines output file (records are printed as JSON if omitted)'
    )
    parser.add_argument(
        '--debug-dir',
        type=str,
        help='Directory for diagnostics (page markup, observed JSON URLs)'
    )

    # Other
    parser.add_argument(
        '--no-headless',
        action='store_true',
        help='Show the browser window'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    log_level = logging.DEBUG if args.verbose else logging.INFO

    if not args.query and not args.url:
        parser.error('Either --query or --url is required')

    proxy_config = None
    if args.proxy_server:
        proxy_config = {
            'server': args.proxy_server,
            'username': args.proxy_username or '',
            'password': args.proxy_password or ''
        }

    try:
        search_input = SearchInput.from_dict({
            'search_query': args.query,
            'search_url': args.url,
            'results_wanted': args.results_wanted,
            'latitude': args.lat,
            'longitude': args.lon,
            'proxy_config': proxy_config
        })
    except InvalidInputError as e:
        print(f"❌ Invalid input: {e}", file=sys.stderr)
        return 2

    sink = JsonLinesSink(args.output) if args.output else MemorySink()
    diagnostics = DirectoryDiagnosticsStore(args.debug_dir) if args.debug_dir else MemoryDiagnosticsStore()

    scraper = BlinkitScraper(
        headless=not args.no_headless,
        log_level=log_level
    )

    try:
        result = asyncio.run(scraper.scrape(search_input, sink=sink, diagnostics=diagnostics))
    except KeyboardInterrupt:
        print("\n⚠️  Interrupted by user", file=sys.stderr)
        return 130

    if not args.output:
        print(json.dumps(result['data'], indent=2, ensure_ascii=False))

    metadata = result['metadata']
    print(f"\n✅ {metadata['items_extracted']} product(s) in {metadata['execution_time']:.2f}s "
          f"({result['status']})", file=sys.stderr)

    if result['status'] != 'success':
        print(f"❌ {result.get('error')}", file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
