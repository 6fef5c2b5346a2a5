"""
Hydration Detector - Embedded JSON extraction
Pulls server-hydration payloads (Next.js, Redux preloaded state, JSON-LD) out of rendered HTML
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)


class HydrationDetector:
    """
    Pattern-based hydration payload detector
    Returns parsed payloads only - deciding what is a product is the scanner's job
    """

    # Window assignments, tried in priority order
    STATE_PATTERNS = {
        'initial_state': {
            'pattern': r'window\.__INITIAL_STATE__\s*=\s*(\{.*?\})\s*;?\s*</script>',
            'priority': 1
        },
        'preloaded_state': {
            'pattern': r'window\.__PRELOADED_STATE__\s*=\s*(\{.*?\})\s*;?\s*</script>',
            'priority': 2
        },
        'apollo_state': {
            'pattern': r'window\.__APOLLO_STATE__\s*=\s*(\{.*?\})\s*;?\s*</script>',
            'priority': 3
        },
        'nuxt': {
            'pattern': r'window\.__NUXT__\s*=\s*(\{.*?\})\s*;?\s*</script>',
            'priority': 4
        },
        'initial_data': {
            'pattern': r'window\.__INITIAL_DATA__\s*=\s*(\{.*?\})\s*;?\s*</script>',
            'priority': 5
        },
    }

    def detect(self, html: str) -> List[Dict[str, Any]]:
        """
        Detect every hydration payload in a page

        Args:
            html: Rendered HTML

        Returns:
            List of {'source': name, 'data': parsed_json} dicts, highest priority first
        """
        if not html:
            return []

        payloads = []
        soup = BeautifulSoup(html, 'html.parser')

        next_data = self._extract_next_data(soup)
        if next_data is not None:
            payloads.append({'source': 'nextjs', 'data': next_data})
            logger.info(" Found __NEXT_DATA__ payload")

        for name, data in self._extract_window_state(html):
            payloads.append({'source': name, 'data': data})
            logger.info(f" Found {name} payload")

        json_scripts = self._extract_json_scripts(soup)
        if json_scripts:
            payloads.extend({'source': 'json-script', 'data': data} for data in json_scripts)
            logger.info(f" Found {len(json_scripts)} application/json script(s)")

        json_ld = self._extract_json_ld(soup)
        if json_ld:
            payloads.extend({'source': 'json-ld', 'data': data} for data in json_ld)
            logger.info(f" Found {len(json_ld)} JSON-LD object(s)")

        if not payloads:
            logger.info(" No hydration payload detected")

        return payloads

    def _extract_next_data(self, soup: BeautifulSoup) -> Optional[Any]:
        script = soup.find('script', id='__NEXT_DATA__')
        if not script or not script.string:
            return None
        try:
            return json.loads(script.string)
        except json.JSONDecodeError as e:
            logger.debug(f"Failed to parse __NEXT_DATA__: {str(e)[:50]}")
            return None

    def _extract_window_state(self, html: str) -> List[Tuple[str, Any]]:
        found = []
        for name, config in sorted(self.STATE_PATTERNS.items(), key=lambda x: x[1]['priority']):
            match = re.search(config['pattern'], html, re.DOTALL)
            if not match:
                continue
            try:
                found.append((name, json.loads(match.group(1))))
            except json.JSONDecodeError:
                logger.debug(f"Failed to parse {name} data")
        return found

    def _extract_json_scripts(self, soup: BeautifulSoup) -> List[Any]:
        data = []
        for script in soup.find_all('script', type='application/json'):
            if script.get('id') == '__NEXT_DATA__' or not script.string:
                continue
            try:
                data.append(json.loads(script.string))
            except json.JSONDecodeError:
                continue
        return data

    def _extract_json_ld(self, soup: BeautifulSoup) -> List[Any]:
        data = []
        for script in soup.find_all('script', type='application/ld+json'):
            if not script.string:
                continue
            try:
                data.append(json.loads(script.string))
            except json.JSONDecodeError as e:
                logger.debug(f"Failed to parse JSON-LD: {str(e)[:50]}")
        return data
