"""
Field Canonicalizer - Alias-driven field extraction
Maps the many naming conventions seen in Blinkit payloads onto one canonical field set
"""

import logging
import math
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence

logger = logging.getLogger(__name__)


IN_STOCK = 'InStock'
OUT_OF_STOCK = 'OutOfStock'
UNKNOWN_AVAILABILITY = 'Unknown'

# Canonical output keys, in emission order
CANONICAL_FIELDS = [
    'name', 'price', 'original_price', 'discount_label', 'image_url',
    'availability', 'delivery_label', 'product_url', 'product_id', 'sku_id',
    'brand', 'quantity', 'unit', 'rating', 'ratings_count', 'inventory_count'
]

# Canonical field -> synonym keys, first defined wins.
# The canonical key itself is always listed so a normalized record re-normalizes to itself.
FIELD_ALIASES: Dict[str, List[str]] = {
    'name': [
        'name', 'product_name', 'productName', 'display_name', 'displayName',
        'title', 'product_title', 'productTitle'
    ],
    'price': [
        'price', 'offer_price', 'offerPrice', 'selling_price', 'sellingPrice',
        'sale_price', 'salePrice', 'final_price', 'finalPrice', 'normal_price',
        'normalPrice', 'discounted_price', 'discountedPrice', 'current_price', 'sp',
        'offers'
    ],
    'original_price': [
        'original_price', 'mrp', 'originalPrice', 'list_price', 'listPrice',
        'marked_price', 'markedPrice', 'strike_price', 'strikePrice',
        'regular_price', 'regularPrice'
    ],
    'discount_label': [
        'discount_label', 'discount_text', 'discountText', 'discount',
        'discount_percentage', 'discountPercentage', 'offer_tag', 'offerTag',
        'offer_text', 'offerText'
    ],
    'image_url': [
        'image_url', 'imageUrl', 'image', 'images', 'product_image', 'productImage',
        'thumbnail', 'thumbnail_url', 'thumbnailUrl', 'img', 'image_urls'
    ],
    'availability': [
        'availability', 'in_stock', 'inStock', 'is_in_stock', 'isInStock',
        'available', 'is_available', 'isAvailable', 'stock_status', 'stockStatus',
        'inventory_status'
    ],
    'delivery_label': [
        'delivery_label', 'eta', 'eta_text', 'etaText', 'delivery_time',
        'deliveryTime', 'delivery_eta', 'sla'
    ],
    'product_url': [
        'product_url', 'productUrl', 'url', 'link', 'href', 'pdp_url', 'share_url',
        'slug'
    ],
    'product_id': [
        'product_id', 'productId', 'prid', 'pid', 'id', 'product_uid'
    ],
    'sku_id': [
        'sku_id', 'skuId', 'sku', 'variant_id', 'variantId', 'merchant_product_id'
    ],
    'brand': [
        'brand', 'brand_name', 'brandName', 'manufacturer'
    ],
    'quantity': [
        'quantity', 'pack_size', 'packSize', 'unit_quantity', 'net_quantity',
        'product_quantity', 'weight', 'variant'
    ],
    'unit': [
        'unit', 'unit_name', 'unitName', 'uom', 'unit_of_measure'
    ],
    'rating': [
        'rating', 'average_rating', 'averageRating', 'avg_rating', 'avgRating',
        'rating_value', 'ratingValue', 'stars'
    ],
    'ratings_count': [
        'ratings_count', 'ratingsCount', 'rating_count', 'ratingCount',
        'review_count', 'reviewCount', 'total_ratings', 'num_ratings'
    ],
    'inventory_count': [
        'inventory_count', 'inventoryCount', 'inventory', 'stock_count',
        'available_quantity', 'availableQuantity', 'stock'
    ],
}

# Second-level keys tried when a composite field holds an object (e.g. {text: "..."})
NESTED_ALIASES: Dict[str, List[str]] = {
    'name': ['text', 'value', 'name', 'title', 'display'],
    'price': ['value', 'amount', 'price', 'text', 'offer_price', 'selling_price', 'sp'],
    'image_url': ['url', 'src', 'image_url', 'imageUrl', 'href', 'thumbnail'],
    'brand': ['name', 'text', 'title', 'value'],
    'quantity': ['text', 'value', 'quantity', 'name'],
    'unit': ['text', 'name', 'value'],
}

# Boolean flags whose truth means the product is NOT available
NEGATED_AVAILABILITY_ALIASES = [
    'out_of_stock', 'outOfStock', 'is_out_of_stock', 'isOutOfStock',
    'sold_out', 'soldOut', 'is_sold_out', 'isSoldOut'
]

# Keys under which a candidate may wrap the real product object
WRAPPER_KEYS = ['product', 'product_info', 'productInfo', 'data', 'item', 'node']

NUMERIC_FIELDS = {'price', 'original_price', 'rating', 'ratings_count', 'inventory_count'}
IDENTIFIER_FIELDS = {'product_id', 'sku_id'}

_NON_NUMERIC = re.compile(r'[^0-9.]')


def is_finite(value: Any) -> bool:
    # ints past the float range raise instead of reporting inf
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def coerce_number(value: Any) -> Optional[float]:
    """
    Coerce a raw value to a number

    Native finite numbers pass through untouched. Strings lose every character
    that is not a digit or a period ("₹1,234.50" -> 1234.5).
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value if is_finite(value) else None
    if isinstance(value, str):
        cleaned = _NON_NUMERIC.sub('', value)
        if not cleaned:
            return None
        try:
            number = float(cleaned)
        except ValueError:
            return None
        return number if is_finite(number) else None
    return None


def coerce_availability(value: Any, negated: bool = False) -> Optional[str]:
    """Map a boolean flag or stock string onto InStock / OutOfStock"""
    if isinstance(value, bool):
        if negated:
            value = not value
        return IN_STOCK if value else OUT_OF_STOCK
    if isinstance(value, str) and not negated:
        lowered = value.lower()
        if 'out' in lowered:
            return OUT_OF_STOCK
        if 'in' in lowered:
            return IN_STOCK
    return None


def coerce_discount(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if not is_finite(value):
            return None
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        return f"{value}%"
    if isinstance(value, str):
        return value.strip() or None
    return None


def coerce_identifier(value: Any) -> Any:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value if is_finite(value) else None
    if isinstance(value, str):
        return value.strip() or None
    return None


def coerce_text(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return str(value) if is_finite(value) else None
    if isinstance(value, str):
        return value.strip() or None
    return None


def find_inner(candidate: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Return the wrapped product sub-object of a candidate, if any"""
    for key in WRAPPER_KEYS:
        value = candidate.get(key)
        if isinstance(value, dict) and value:
            return value
    return None


class FieldCanonicalizer:
    """
    Extracts one canonical field from an untyped object

    Tries the field's alias list in priority order. Composite fields (name, price,
    image_url, brand, quantity, unit) get one extra level of unwrapping through a
    field-scoped alias list, so {"name": {"text": "Milk"}} and {"name": "Milk"} agree.
    """

    def __init__(
        self,
        aliases: Optional[Dict[str, List[str]]] = None,
        nested_aliases: Optional[Dict[str, List[str]]] = None
    ):
        self.aliases = aliases or FIELD_ALIASES
        self.nested_aliases = nested_aliases or NESTED_ALIASES

    def extract(self, candidate: Any, field: str) -> Any:
        """
        Extract a single canonical field

        Args:
            candidate: Object under evaluation
            field: Canonical field name

        Returns:
            Coerced value, or None when no alias yields a usable value
        """
        if not isinstance(candidate, dict):
            return None
        if field not in self.aliases:
            raise KeyError(f"Unknown canonical field: {field}")

        for key in self.aliases[field]:
            raw = candidate.get(key)
            if raw is None:
                continue
            value = self._coerce(field, self._unwrap(field, raw))
            if value is not None:
                return value

        if field == 'availability':
            for key in NEGATED_AVAILABILITY_ALIASES:
                value = coerce_availability(candidate.get(key), negated=True)
                if value is not None:
                    return value

        return None

    def extract_layered(self, bases: Sequence[Optional[Dict[str, Any]]], field: str) -> Any:
        """Extract a field from the first base that yields it (inner before outer)"""
        for base in bases:
            if base is None:
                continue
            value = self.extract(base, field)
            if value is not None:
                return value
        return None

    def extract_all(self, bases: Sequence[Optional[Dict[str, Any]]], fields: Optional[Iterable[str]] = None) -> Dict[str, Any]:
        fields = fields or CANONICAL_FIELDS
        return {field: self.extract_layered(bases, field) for field in fields}

    def _unwrap(self, field: str, raw: Any) -> Any:
        nested_keys = self.nested_aliases.get(field)
        if not nested_keys:
            return raw

        if isinstance(raw, list):
            if not raw:
                return None
            raw = raw[0]

        if isinstance(raw, dict):
            for key in nested_keys:
                value = raw.get(key)
                if value is not None and not isinstance(value, (dict, list)):
                    return value
            return None

        return raw

    def _coerce(self, field: str, value: Any) -> Any:
        if value is None:
            return None
        if field in NUMERIC_FIELDS:
            return coerce_number(value)
        if field == 'availability':
            return coerce_availability(value)
        if field == 'discount_label':
            return coerce_discount(value)
        if field in IDENTIFIER_FIELDS:
            return coerce_identifier(value)
        if field == 'quantity' and isinstance(value, (int, float)) and not isinstance(value, bool):
            return value if is_finite(value) else None
        return coerce_text(value)
