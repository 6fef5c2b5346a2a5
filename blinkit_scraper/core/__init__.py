"""Core extraction modules"""

from .aggregator import ExtractionState, MultiSourceAggregator, SourceBatch, StageOutcome
from .browser_fetcher import BlockedPageError, BrowserFetcher
from .candidate_scorer import CandidateScorer
from .field_canonicalizer import FieldCanonicalizer
from .hydration_detector import HydrationDetector
from .page_session import CapturedResponse, PageSession
from .pagination_prober import PaginationProber
from .product_normalizer import ProductNormalizer
from .scraper import BlinkitScraper
from .search_input import InvalidInputError, SearchInput
from .sinks import DiagnosticsStore, OutputSink
from .tree_scanner import TreeScanner

__all__ = [
    "BlinkitScraper",
    "BrowserFetcher",
    "BlockedPageError",
    "PageSession",
    "CapturedResponse",
    "MultiSourceAggregator",
    "ExtractionState",
    "SourceBatch",
    "StageOutcome",
    "TreeScanner",
    "CandidateScorer",
    "FieldCanonicalizer",
    "ProductNormalizer",
    "HydrationDetector",
    "PaginationProber",
    "SearchInput",
    "InvalidInputError",
    "OutputSink",
    "DiagnosticsStore"
]
