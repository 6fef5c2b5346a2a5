"""
Blinkit Scraper
Heuristic product extraction from Blinkit search pages, JSON-first with a DOM fallback
"""

__version__ = "1.0.0"

from .core.scraper import BlinkitScraper
from .core.search_input import InvalidInputError, SearchInput

__all__ = ["BlinkitScraper", "SearchInput", "InvalidInputError"]
