"""
Field Parser Module.

Turns raw receipt text (AI output or OCR output) into a partial record of
shipment fields.

Each field has an ordered table of ``(pattern, extractor)`` pairs; the
first pattern that matches wins. An embedded JSON object (as returned by
the AI service) overrides the regex results. Post-processing converts
Arabic-Indic digits, normalizes the phone number and formats the price.

Author: ML Engineering Team
"""

import json
import re
from typing import Any, Callable, Dict, List, Optional, Pattern, Tuple

from receipt_extraction.utils.helpers import to_ascii_digits
from receipt_extraction.utils.logger import get_logger
from .normalizers import PhoneNormalizer, PriceNormalizer
from .province_corrector import ProvinceCorrector
from .province_data import CITY_PROVINCES, IRAQ_PROVINCES

# Initialize module logger
logger = get_logger(__name__)

PartialRecord = Dict[str, str]
Extractor = Callable[[re.Match], str]

_END = r'(?:\n|\r|$)'


def _group(match: re.Match) -> str:
    return match.group(1).strip()


def _table(*patterns: str) -> List[Tuple[Pattern, Extractor]]:
    return [(re.compile(p, re.IGNORECASE), _group) for p in patterns]


# Ordered pattern tables, first match wins
FIELD_PATTERNS: Dict[str, List[Tuple[Pattern, Extractor]]] = {
    'company_name': _table(
        r'^([^:\n\r]+?)' + _END,
        r'شركة\s+(.+?)' + _END,
        r'مؤسسة\s+(.+?)' + _END,
        r'مجموعة\s+(.+?)' + _END,
        r'مكتب\s+(.+?)' + _END,
        r'company[:\s]+(.+?)' + _END,
    ),
    'code': _table(
        r'كود[:\s]+([0-9]+)',
        r'code[:\s]+([0-9]+)',
        r'رقم[:\s]+([0-9]+)',
        r'رقم الفاتورة[:\s]+([0-9]+)',
        r'رقم الطلب[:\s]+([0-9]+)',
        r'رمز[:\s]+([0-9]+)',
        r'ID[:\s]+([0-9]+)',
    ),
    'sender_name': _table(
        r'اسم المرسل[:\s]+(.+?)' + _END,
        r'sender[:\s]+(.+?)' + _END,
        r'الاسم[:\s]+(.+?)' + _END,
        r'الزبون[:\s]+(.+?)' + _END,
        r'المرسل[:\s]+(.+?)' + _END,
        r'العميل[:\s]+(.+?)' + _END,
        r'customer[:\s]+(.+?)' + _END,
    ),
    'phone_number': _table(
        r'هاتف[:\s]+([0-9][0-9\- ]*)',
        r'phone[:\s]+([0-9][0-9\- ]*)',
        r'جوال[:\s]+([0-9][0-9\- ]*)',
        r'رقم الهاتف[:\s]+([0-9][0-9\- ]*)',
        r'موبايل[:\s]+([0-9][0-9\- ]*)',
        r'الرقم[:\s]+([0-9][0-9\- ]*)',
        r'ت[:\s]+([0-9][0-9\- ]*)',
        r'تلفون[:\s]+([0-9][0-9\- ]*)',
        r'\b(07\d{8,9})\b',
    ),
    'province': _table(
        r'محافظة[:\s]+(.+?)' + _END,
        r'province[:\s]+(.+?)' + _END,
        r'المدينة[:\s]+(.+?)' + _END,
        r'city[:\s]+(.+?)' + _END,
        r'منطقة[:\s]+(.+?)' + _END,
        r'المحافظة[:\s]+(.+?)' + _END,
        r'التوصيل إلى[:\s]+(.+?)' + _END,
        r'العنوان[:\s]+(.+?)' + _END,
    ),
    'price': _table(
        r'سعر[:\s]+(.+?)' + _END,
        r'price[:\s]+(.+?)' + _END,
        r'المبلغ[:\s]+(.+?)' + _END,
        r'amount[:\s]+(.+?)' + _END,
        r'قيمة[:\s]+(.+?)' + _END,
        r'كلفة[:\s]+(.+?)' + _END,
        r'الدفع[:\s]+(.+?)' + _END,
        r'التكلفة[:\s]+(.+?)' + _END,
        r'(\d+) دينار',
        r'(\d+) د\.ع',
        r'(\d+) الف',
        r'(\d+)الف',
        r'(\d+)k',
        r'(\d+) k',
    ),
}

# JSON keys accepted for each field (camelCase as produced by the AI prompt)
JSON_FIELD_KEYS: Dict[str, Tuple[str, ...]] = {
    'code': ('code',),
    'sender_name': ('senderName', 'sender_name'),
    'phone_number': ('phoneNumber', 'phone_number'),
    'province': ('province',),
    'price': ('price',),
    'company_name': ('companyName', 'company_name'),
}

_FENCED_JSON = re.compile(r'```(?:json)?\s*(\{[\s\S]*?\})\s*```', re.IGNORECASE)
_BARE_JSON = re.compile(r'\{[\s\S]*?\}')

# Smart quotes → ASCII quotes
_QUOTE_REPAIRS = str.maketrans({
    '“': '"',
    '”': '"',
    '‘': "'",
    '’': "'",
})
_ARABIC_COMMA = '،'


def _load_json_object(candidate: str) -> Optional[Dict[str, Any]]:
    """Parse a JSON object, retrying once with common AI-output repairs."""
    attempts = [candidate]

    repaired = candidate.translate(_QUOTE_REPAIRS).replace(_ARABIC_COMMA, ',')
    repaired = re.sub(r',\s*([}\]])', r'\1', repaired)
    if "'" in repaired and '"' not in repaired:
        repaired = repaired.replace("'", '"')
    if repaired != candidate:
        attempts.append(repaired)

    for attempt in attempts:
        try:
            data = json.loads(attempt)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
    return None


def _scrape_key_values(text: str) -> Dict[str, Any]:
    """Last resort: pick ``"key": "value"`` pairs out of malformed JSON."""
    data = {}
    for keys in JSON_FIELD_KEYS.values():
        for key in keys:
            match = re.search(rf'"{key}"\s*:\s*"([^"]*)"', text, re.IGNORECASE)
            if match:
                data[key] = match.group(1)
                break
    return data


def extract_json_fields(text: str) -> PartialRecord:
    """
    Scrape the first embedded JSON object from text into field values.

    A fenced ```json block is preferred over a bare ``{...}`` object.
    Keys are mapped to field names; empty values are dropped.

    Args:
        text: Text that may contain a JSON object.

    Returns:
        Field name to string value (empty when no usable JSON is found).

    Example:
        >>> extract_json_fields('```json\\n{"code": 123, "senderName": "علي"}\\n```')
        {'code': '123', 'sender_name': 'علي'}
    """
    if not text:
        return {}

    match = _FENCED_JSON.search(text) or _BARE_JSON.search(text)
    if not match:
        return {}

    candidate = match.group(1) if match.re is _FENCED_JSON else match.group(0)
    data = _load_json_object(candidate)
    if data is None:
        logger.debug("Embedded JSON could not be parsed, scraping key/value pairs")
        data = _scrape_key_values(candidate)

    fields: PartialRecord = {}
    for field, keys in JSON_FIELD_KEYS.items():
        for key in keys:
            value = data.get(key)
            if value is None:
                continue
            value = str(value).strip()
            if value:
                fields[field] = value
                break
    return fields


class FieldParser:
    """
    Parses raw receipt text into shipment fields.

    Attributes:
        patterns: Ordered (pattern, extractor) tables per field
        province_corrector: Corrector applied to extracted provinces
        phone_normalizer: PhoneNormalizer instance
        price_normalizer: PriceNormalizer instance

    Example:
        >>> parser = FieldParser()
        >>> parser.parse("كود: 12345\\nهاتف: 7701234567")
        {'code': '12345', 'phone_number': '07701234567'}
    """

    def __init__(
        self,
        province_corrector: Optional[ProvinceCorrector] = None,
        patterns: Optional[Dict[str, List[Tuple[Pattern, Extractor]]]] = None
    ) -> None:
        self.patterns = patterns if patterns is not None else FIELD_PATTERNS
        self.province_corrector = province_corrector or ProvinceCorrector()
        self.phone_normalizer = PhoneNormalizer()
        self.price_normalizer = PriceNormalizer()

        logger.debug(f"FieldParser initialized ({len(self.patterns)} fields)")

    def parse(self, text: Optional[str]) -> PartialRecord:
        """
        Parse text into a partial record.

        Args:
            text: Raw extracted text.

        Returns:
            Field name to value for every field that was found.
        """
        if not text or not text.strip():
            return {}

        text = to_ascii_digits(text)
        result: PartialRecord = {}

        for field, table in self.patterns.items():
            value = self._first_match(text, table)
            if value:
                result[field] = value

        if result.get('province'):
            result['province'] = self.province_corrector.correct(result['province'])
        else:
            found = self.find_province_in_text(text)
            if found:
                result['province'] = found

        embedded = extract_json_fields(text)
        if embedded:
            logger.debug(f"Embedded JSON overrides fields: {sorted(embedded)}")
            if 'province' in embedded:
                embedded['province'] = self.province_corrector.correct(embedded['province'])
            result.update(embedded)

        self.normalize_fields(result)

        logger.debug(f"Parsed {len(result)} fields from {len(text)} chars")
        return result

    def normalize_fields(self, fields: PartialRecord) -> PartialRecord:
        """
        Apply price formatting and phone normalization in place.

        Returns:
            The same dictionary, for chaining.
        """
        if fields.get('price'):
            fields['price'] = self.price_normalizer.normalize(fields['price'])

        if fields.get('phone_number'):
            phone = self.phone_normalizer.normalize(fields['phone_number'])
            if phone:
                fields['phone_number'] = phone
            else:
                del fields['phone_number']

        return fields

    @staticmethod
    def _first_match(text: str, table: List[Tuple[Pattern, Extractor]]) -> str:
        for pattern, extractor in table:
            match = pattern.search(text)
            if match:
                value = extractor(match)
                if value:
                    return value
        return ''

    @staticmethod
    def find_province_in_text(text: str) -> str:
        """Scan free text for a canonical province, then a major city."""
        for province in IRAQ_PROVINCES:
            if province in text:
                return province

        for city, province in CITY_PROVINCES.items():
            if city in text:
                return province

        return ''
