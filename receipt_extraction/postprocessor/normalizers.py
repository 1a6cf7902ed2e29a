"""
Data Normalizers Module.

This module provides normalization functions for:
    - Iraqi phone numbers
    - Price values (Iraqi dinar conventions)

Author: ML Engineering Team
"""

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

from receipt_extraction.config import get_config
from receipt_extraction.utils.helpers import to_ascii_digits
from receipt_extraction.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


class PhoneNormalizer:
    """
    Normalizes Iraqi mobile numbers to the national 11-digit form.

    Rules, applied in order:
        - keep digits only (Arabic-Indic digits converted first)
        - "00964..." is treated as "964..."
        - a 10-digit number starting with 7 gets a leading 0
        - a 964 country prefix is replaced by 0

    Example:
        >>> normalizer = PhoneNormalizer()
        >>> normalizer.normalize("770 123 4567")
        '07701234567'
        >>> normalizer.normalize("+964 770 123 4567")
        '07701234567'
    """

    COUNTRY_CODE = '964'

    def normalize(self, phone: Optional[str]) -> str:
        """
        Normalize a phone number string.

        Args:
            phone: Raw phone number (any separators).

        Returns:
            Digits-only national number, or "" for empty input.
        """
        if not phone:
            return ''

        digits = re.sub(r'\D', '', to_ascii_digits(str(phone)))

        if digits.startswith('00' + self.COUNTRY_CODE):
            digits = digits[2:]

        if digits.startswith('7') and len(digits) == 10:
            digits = '0' + digits

        if digits.startswith(self.COUNTRY_CODE):
            digits = '0' + digits[len(self.COUNTRY_CODE):]

        return digits

    def is_valid(self, phone: Optional[str]) -> bool:
        """Check for an 11-digit number starting with 07."""
        return bool(phone) and re.fullmatch(r'07\d{9}', phone) is not None


class PriceNormalizer:
    """
    Normalizes price strings following Iraqi market conventions.

    Handles:
        - Free/delivery markers ("مجاني", "واصل", "توصيل", ...) → "0"
        - Currency symbols and words (دينار, د.ع, $, IQD, ...)
        - Thousands separators ("25,000", "25.000", "٢٥٬٠٠٠")
        - Shorthand thousands: integers 1-999 are multiplied by 1000
        - Small decimals (0-100) read as USD and converted to IQD

    Attributes:
        thousands_multiplier: Factor for shorthand prices (25 → 25000)
        usd_to_iqd_rate: Approximate exchange rate for decimal prices

    Example:
        >>> normalizer = PriceNormalizer()
        >>> normalizer.normalize("25 الف")
        '25000'
        >>> normalizer.normalize("$20.5")
        '26650'
        >>> normalizer.normalize("واصل")
        '0'
    """

    FREE_MARKERS = [
        'free', 'مجان', 'صفر', 'delivered', 'delivery',
        'توصيل', 'واصل', 'بدون', 'سلم', 'خدمة',
    ]

    CURRENCY_SYMBOLS = ['$', '€', '£']
    CURRENCY_WORDS = re.compile(
        r'دينار|دولار|عراقي|alf|الف|ألف|د\.ع\.?|IQD|USD',
        re.IGNORECASE
    )
    DOT_THOUSANDS = re.compile(r'\d{1,3}(?:\.\d{3})+')

    def __init__(
        self,
        thousands_multiplier: Optional[int] = None,
        usd_to_iqd_rate: Optional[float] = None
    ) -> None:
        """Initialize the price normalizer with configuration."""
        self.thousands_multiplier = int(
            thousands_multiplier if thousands_multiplier is not None
            else get_config("postprocessing.price.thousands_multiplier", 1000)
        )
        self.usd_to_iqd_rate = Decimal(str(
            usd_to_iqd_rate if usd_to_iqd_rate is not None
            else get_config("postprocessing.price.usd_to_iqd_rate", 1300)
        ))

        logger.debug("PriceNormalizer initialized")

    def normalize(self, price: Optional[str]) -> str:
        """
        Normalize a price string.

        Args:
            price: Raw price as extracted or typed.

        Returns:
            Normalized price string ("0" for empty or free prices).
        """
        if price is None:
            return '0'

        price_str = to_ascii_digits(str(price)).strip()
        if not price_str:
            return '0'

        if self.is_free(price_str):
            return '0'

        cleaned = self._clean_price_string(price_str)
        if not cleaned:
            logger.debug(f"Price '{price}' has no digits, using 0")
            return '0'

        # Whole number
        if cleaned.isdigit():
            value = int(cleaned)
            if 0 < value < 1000:
                return str(value * self.thousands_multiplier)
            return str(value)

        # Decimal, most likely dollars
        try:
            value = Decimal(cleaned)
        except InvalidOperation:
            return cleaned

        if 0 < value < 100:
            converted = (value * self.usd_to_iqd_rate).quantize(
                Decimal('1'), rounding=ROUND_HALF_UP
            )
            logger.debug(f"Price '{price}' converted from USD: {converted}")
            return str(converted)

        return cleaned

    def is_free(self, price_str: str) -> bool:
        """Check whether the price is a free/delivery marker."""
        if price_str == '0':
            return True
        lowered = price_str.lower()
        return any(marker in lowered for marker in self.FREE_MARKERS)

    def _clean_price_string(self, price_str: str) -> str:
        """
        Strip currency markers and separators.

        Args:
            price_str: Price string with ASCII digits.

        Returns:
            Digits with at most a decimal point, or "".
        """
        price_str = price_str.replace('٫', '.').replace('٬', '')

        price_str = self.CURRENCY_WORDS.sub('', price_str)
        for symbol in self.CURRENCY_SYMBOLS:
            price_str = price_str.replace(symbol, '')

        # Keep only digits, comma and dot
        price_str = re.sub(r'[^\d,.]', '', price_str)
        price_str = price_str.replace(',', '').strip('.')

        if self.DOT_THOUSANDS.fullmatch(price_str):
            price_str = price_str.replace('.', '')

        return price_str

    def is_numeric(self, price: Optional[str]) -> bool:
        """Check whether a normalized price is a plain number."""
        return bool(price) and re.fullmatch(r'\d+(?:\.\d+)?', price) is not None
