"""
Data Validators Module.

This module provides validation functions for:
    - Iraqi phone numbers
    - Price values
    - General shipment field validation

Validation never blocks the pipeline; it produces a report the reviewer
(or the CLI) can show next to a record.

Author: ML Engineering Team
"""

import re
from typing import Any, Dict, List, Optional, Tuple

from receipt_extraction.config import get_config
from receipt_extraction.models.extraction_record import REQUIRED_FIELDS
from receipt_extraction.utils.logger import get_logger
from receipt_extraction.utils.exceptions import ValidationError
from .province_corrector import ProvinceCorrector

# Initialize module logger
logger = get_logger(__name__)


class FieldValidator:
    """
    General field validation for shipment receipts.

    Validates:
        - Required fields presence
        - Field format patterns (phone, price, code)
        - Province against the canonical list

    Example:
        >>> validator = FieldValidator()
        >>> result = validator.validate_all(record.fields)
        >>> print(result.is_valid)
        >>> print(result.errors)
    """

    MIN_PRICE = 1000

    def __init__(self, province_corrector: Optional[ProvinceCorrector] = None) -> None:
        """
        Initialize the field validator.

        Args:
            province_corrector: Used to check and suggest provinces.
                If None, one is built from configuration.
        """
        self.required_fields = list(get_config(
            "postprocessing.validation.required_fields",
            list(REQUIRED_FIELDS)
        ))
        self.province_corrector = province_corrector or ProvinceCorrector()

        logger.debug(f"FieldValidator initialized (required: {self.required_fields})")

    def validate_code(self, value: str) -> Tuple[bool, str]:
        """
        Validate a receipt code.

        Args:
            value: Code to validate.

        Returns:
            Tuple of (is_valid, message).
        """
        if not value:
            return False, "Code is empty"

        if len(value.strip()) < 3:
            return False, "Code too short"

        return True, "Valid code"

    def validate_sender_name(self, value: str) -> Tuple[bool, str]:
        """Validate the sender name."""
        if not value:
            return False, "Sender name is empty"

        if len(value.strip()) < 2:
            return False, "Sender name too short"

        return True, "Valid sender name"

    def validate_phone_number(self, value: str) -> Tuple[bool, str]:
        """
        Validate an Iraqi mobile number (11 digits starting with 07).

        Args:
            value: Normalized phone number.

        Returns:
            Tuple of (is_valid, message).
        """
        if not value:
            return False, "Phone number is empty"

        digits = re.sub(r'\D', '', value)
        if len(digits) != 11:
            return False, f"Phone number must have 11 digits (has {len(digits)})"

        if not digits.startswith('07'):
            return False, "Phone number must start with 07"

        return True, "Valid phone number"

    def validate_province(self, value: str) -> Tuple[bool, str]:
        """
        Validate that the province is a canonical Iraqi province.

        A misspelled province the corrector can resolve is still invalid,
        but the message names the likely province.
        """
        if not value:
            return False, "Province is empty"

        if not self.province_corrector.is_canonical(value):
            suggestion = self.province_corrector.correct(value)
            if suggestion != value and self.province_corrector.is_canonical(suggestion):
                return False, f"Unknown province: {value} (did you mean {suggestion}?)"
            return False, f"Unknown province: {value}"

        return True, "Valid province"

    def validate_price(self, value: str) -> Tuple[bool, str]:
        """
        Validate a normalized price.

        "0" is valid (free delivery); any other price is expected in
        dinars, at least 1000.
        """
        if not value:
            return False, "Price is empty"

        if not value.isdigit():
            return False, f"Price is not a whole number: {value}"

        amount = int(value)
        if amount != 0 and amount < self.MIN_PRICE:
            return False, f"Price {amount} is below {self.MIN_PRICE}"

        return True, "Valid price"

    def validate_company_name(self, value: str) -> Tuple[bool, str]:
        """Validate the company name."""
        if not value:
            return False, "Company name is empty"

        if len(value.strip()) < 2:
            return False, "Company name too short"

        return True, "Valid company name"

    def validate_field(
        self,
        field_name: str,
        value: str
    ) -> Tuple[bool, str]:
        """
        Validate a specific field by name.

        Args:
            field_name: Name of the field.
            value: Field value to validate.

        Returns:
            Tuple of (is_valid, message).
        """
        validators = {
            'code': self.validate_code,
            'sender_name': self.validate_sender_name,
            'phone_number': self.validate_phone_number,
            'province': self.validate_province,
            'price': self.validate_price,
            'company_name': self.validate_company_name,
        }

        validator = validators.get(field_name)
        if validator:
            return validator(value)

        # Default validation: just check not empty
        if value:
            return True, "Field has value"
        return False, "Field is empty"

    def check_required_fields(
        self,
        fields: Dict[str, Any]
    ) -> Tuple[bool, List[str]]:
        """
        Check if all required fields are present.

        Args:
            fields: Dictionary of field names to values.

        Returns:
            Tuple of (all_present, list of missing fields).
        """
        missing = []

        for required in self.required_fields:
            value = fields.get(required)
            if not value or str(value).strip() == "":
                missing.append(required)

        return len(missing) == 0, missing

    def ensure_submittable(self, fields: Dict[str, Any]) -> None:
        """
        Check a record before it is sent onwards.

        Raises:
            ValidationError: If a required field is empty or the phone
                number is not a valid Iraqi mobile number.
        """
        _, missing = self.check_required_fields(fields)
        if missing:
            raise ValidationError(missing[0], "", "Required field is missing")

        phone = str(fields.get('phone_number') or '')
        is_valid, message = self.validate_phone_number(phone)
        if not is_valid:
            raise ValidationError('phone_number', phone, message)

    def validate_all(self, fields: Dict[str, Any]) -> "ValidationResult":
        """
        Validate every field present plus the required ones.

        Missing optional fields produce warnings, not errors.

        Args:
            fields: Dictionary of field names to values.

        Returns:
            ValidationResult with per-field outcomes.
        """
        result = ValidationResult()

        _, missing = self.check_required_fields(fields)
        for name in missing:
            result.add_field_result(name, False, "Required field is missing")

        for name, value in fields.items():
            if name in missing:
                continue
            value = str(value or '').strip()
            if not value:
                result.add_warning(f"{name}: not extracted")
                continue
            is_valid, message = self.validate_field(name, value)
            result.add_field_result(name, is_valid, message)

        return result


class ValidationResult:
    """
    Contains the result of validation checks.

    Attributes:
        is_valid: Overall validation result
        errors: List of error messages
        warnings: List of warning messages
        field_results: Per-field validation results
    """

    def __init__(self):
        self.is_valid = True
        self.errors: List[str] = []
        self.warnings: List[str] = []
        self.field_results: Dict[str, Tuple[bool, str]] = {}

    def add_error(self, message: str) -> None:
        """Add an error and mark as invalid."""
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str) -> None:
        """Add a warning (doesn't affect validity)."""
        self.warnings.append(message)

    def add_field_result(
        self,
        field: str,
        is_valid: bool,
        message: str
    ) -> None:
        """Add a field-level validation result."""
        self.field_results[field] = (is_valid, message)
        if not is_valid:
            self.add_error(f"{field}: {message}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'is_valid': self.is_valid,
            'errors': self.errors,
            'warnings': self.warnings,
            'field_results': self.field_results
        }
