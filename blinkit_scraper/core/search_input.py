"""
Search Input - Run input parsing and validation
Fails fast on invalid input, before any browser session starts
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import parse_qs, quote, urlparse

logger = logging.getLogger(__name__)


SEARCH_URL_TEMPLATE = 'https://blinkit.com/s/?q={query}'


class InvalidInputError(ValueError):
    """Raised for run input that cannot seed a session"""


@dataclass
class SearchInput:
    keyword: str
    search_url: str
    results_wanted: int = 0  # 0 = unlimited
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    proxy_config: Optional[Dict[str, Any]] = None

    @property
    def geolocation(self) -> Optional[Dict[str, float]]:
        if self.latitude is None or self.longitude is None:
            return None
        return {'latitude': self.latitude, 'longitude': self.longitude}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SearchInput':
        """
        Build a SearchInput from Apify/CLI style input

        Accepted keys: search_query, search_url, results_wanted, latitude/longitude
        (lat/lon/lng also accepted), proxy_config.

        Raises:
            InvalidInputError: empty keyword without URL override, malformed URL,
                               or non-numeric coordinates
        """
        data = data or {}
        keyword = (data.get('search_query') or '').strip()
        url_override = (data.get('search_url') or '').strip()

        url_params: Dict[str, list] = {}
        if url_override:
            parsed = urlparse(url_override)
            if parsed.scheme not in ('http', 'https') or not parsed.netloc:
                raise InvalidInputError(f"search_url is not a valid http(s) URL: {url_override!r}")
            url_params = parse_qs(parsed.query)
            if not keyword:
                keyword = (url_params.get('q') or [''])[0].strip()

        if not keyword and not url_override:
            raise InvalidInputError('search_query is required and cannot be empty')

        latitude = _coordinate(data, ('latitude', 'lat'), url_params, ('lat',))
        longitude = _coordinate(data, ('longitude', 'lon', 'lng'), url_params, ('lon', 'lng'))

        return cls(
            keyword=keyword,
            search_url=url_override or SEARCH_URL_TEMPLATE.format(query=quote(keyword)),
            results_wanted=parse_results_wanted(data.get('results_wanted', 0)),
            latitude=latitude,
            longitude=longitude,
            proxy_config=data.get('proxy_config')
        )


def parse_results_wanted(raw: Any) -> int:
    """Positive integers are targets; anything else means unlimited (0)"""
    try:
        value = int(float(raw))
    except (TypeError, ValueError):
        return 0
    return value if value > 0 else 0


def _coordinate(data: Dict[str, Any], keys, url_params: Dict[str, list], url_keys) -> Optional[float]:
    raw = None
    for key in keys:
        if data.get(key) not in (None, ''):
            raw = data[key]
            break
    if raw is None:
        for key in url_keys:
            if url_params.get(key):
                raw = url_params[key][0]
                break
    if raw is None:
        return None

    try:
        return float(raw)
    except (TypeError, ValueError):
        raise InvalidInputError(f"Invalid coordinate: {raw!r}")
