"""
Product Normalizer - Candidate object -> canonical sparse product record
"""

import logging
import re
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urljoin

from .field_canonicalizer import (
    CANONICAL_FIELDS,
    UNKNOWN_AVAILABILITY,
    FieldCanonicalizer,
    find_inner,
)

logger = logging.getLogger(__name__)


SITE_ORIGIN = 'https://blinkit.com'
PRODUCT_PATH_TEMPLATE = '/prn/{slug}/prid/{product_id}'

_SLUG_SEPARATORS = re.compile(r'[^a-z0-9]+')


def slugify(text: str) -> str:
    """'Amul Taaza Milk (500 ml)' -> 'amul-taaza-milk-500-ml'"""
    return _SLUG_SEPARATORS.sub('-', text.lower()).strip('-')


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    if isinstance(value, (list, dict, tuple, set)) and not value:
        return True
    return False


class ProductNormalizer:
    """
    Builds one canonical product record from an untyped candidate

    When the candidate wraps an inner product object (e.g. {"data": {...}, "tracking": {...}})
    the inner object is tried first and the outer object is the per-field fallback.
    Records are sparse: absent fields are omitted, never emitted as null.
    """

    def __init__(
        self,
        canonicalizer: Optional[FieldCanonicalizer] = None,
        site_origin: str = SITE_ORIGIN,
        path_template: str = PRODUCT_PATH_TEMPLATE
    ):
        self.canonicalizer = canonicalizer or FieldCanonicalizer()
        self.site_origin = site_origin.rstrip('/')
        self.path_template = path_template

    def normalize(
        self,
        candidate: Any,
        inner: Optional[Dict[str, Any]] = None,
        require_price: bool = True
    ) -> Optional[Dict[str, Any]]:
        """
        Normalize a candidate object

        Args:
            candidate: Outer candidate object
            inner: Wrapped product object; detected from wrapper keys when omitted
            require_price: Reject records without price and original_price

        Returns:
            Canonical record, or None when the candidate is rejected
        """
        if not isinstance(candidate, dict):
            return None

        if inner is None:
            inner = find_inner(candidate)
        bases = (inner, candidate)

        values = self.canonicalizer.extract_all(bases)

        if not values.get('name'):
            return None
        if require_price and values.get('price') is None and values.get('original_price') is None:
            return None

        values['product_url'] = self.build_product_url(
            values.get('product_url'),
            values.get('product_id'),
            values.get('name')
        )

        if values.get('availability') is None:
            values['availability'] = UNKNOWN_AVAILABILITY

        return {
            field: values[field]
            for field in CANONICAL_FIELDS
            if not is_empty(values.get(field))
        }

    def normalize_many(self, candidates: Iterable[Any], require_price: bool = True) -> List[Dict[str, Any]]:
        records = []
        rejected = 0
        for candidate in candidates:
            record = self.normalize(candidate, require_price=require_price)
            if record is None:
                rejected += 1
                continue
            records.append(record)

        if rejected:
            logger.debug(f" Rejected {rejected} candidate(s) without name/price")
        return records

    def build_product_url(self, raw_url: Optional[str], product_id: Any, name: Optional[str]) -> Optional[str]:
        """
        Resolve a product page URL

        Absolute URLs are kept verbatim. Relative ones are resolved against the site
        template, inserting the identifier when the value is not already scoped to it.
        Without any URL, one is synthesized from the slugified name and the identifier.
        """
        pid = str(product_id) if product_id is not None else None

        if raw_url:
            if raw_url.startswith(('http://', 'https://')):
                return raw_url
            if raw_url.startswith('//'):
                return f"https:{raw_url}"

            segments = raw_url.split('?')[0].rstrip('/').split('/')
            if pid and '/prid/' not in raw_url and pid not in segments:
                slug = slugify(segments[-1])
                if not slug and name:
                    slug = slugify(name)
                if slug:
                    return self._from_template(slug, pid)

            return urljoin(f"{self.site_origin}/", raw_url)

        if pid and name:
            slug = slugify(name)
            if slug:
                return self._from_template(slug, pid)

        return None

    def _from_template(self, slug: str, product_id: str) -> str:
        return self.site_origin + self.path_template.format(slug=slug, product_id=product_id)
