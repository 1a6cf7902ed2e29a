"""
Extraction Record Data Class.

This module defines the central entity of the pipeline: one record per
receipt image, carrying its lifecycle status, the extracted (and possibly
user-edited) shipment fields and extraction metadata.

Records are immutable values. Every change produces a new record through
``with_updates``, which also enforces the status invariants:

    - ``completed`` requires code, sender_name and phone_number to be
      non-empty; a record auto-promotes to ``completed`` as soon as the
      three are filled and is demoted to ``pending`` if one is cleared.
    - ``submitted`` is one-way: once True it never reverts.

Author: ML Engineering Team
"""

import json
from dataclasses import dataclass, field, fields as dataclass_fields, replace
from typing import Any, Dict, List, Optional

from receipt_extraction.models.source_file import SourceFile
from receipt_extraction.utils.helpers import generate_id, now_millis


# Shipment fields, in display order
FIELD_NAMES = (
    'code',
    'sender_name',
    'phone_number',
    'province',
    'price',
    'company_name',
)

# Fields that must all be non-empty for a record to be completed
REQUIRED_FIELDS = ('code', 'sender_name', 'phone_number')


class RecordStatus:
    """Lifecycle states of an ExtractionRecord."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"

    ALL = (PENDING, PROCESSING, COMPLETED, ERROR)


class ExtractionMethod:
    """Engine that produced a record's text."""
    AI = "ai"
    OCR = "ocr"


@dataclass(frozen=True)
class ExtractionRecord:
    """
    One receipt moving through the pipeline.

    Attributes:
        id: Unique record identifier
        number: Session ordinal used for display ordering
        file: Owned SourceFile, kept for reprocessing
        file_name: Original filename (kept after the file is released)
        preview_url: Local preview reference
        storage_path: Durable reference once uploaded
        status: One of RecordStatus.ALL
        code, sender_name, phone_number, province, price, company_name:
            Extracted or edited shipment fields
        extracted_text: Raw engine output
        confidence: 0-100
        extraction_method: ExtractionMethod.AI or ExtractionMethod.OCR
        submitted: One-way flag set when the record was sent onwards
        added_at: Millisecond timestamp used to resolve update races
        processing_id: Identifies the extraction attempt currently owning
            the record
        error: User-facing message when status is error
        parsed_fields: Field values as produced by extraction, before any
            user edit (used to learn from corrections)

    Example:
        >>> record = ExtractionRecord(number=1, file_name="scan.jpg")
        >>> record = record.with_updates(code="1234", sender_name="Ali")
        >>> record.status
        'pending'
        >>> record.with_updates(phone_number="07701234567").status
        'completed'
    """
    id: str = field(default_factory=generate_id)
    number: int = 0
    file: Optional[SourceFile] = field(default=None, repr=False, compare=False)
    file_name: str = ""
    preview_url: Optional[str] = None
    storage_path: Optional[str] = None
    status: str = RecordStatus.PENDING

    code: str = ""
    sender_name: str = ""
    phone_number: str = ""
    province: str = ""
    price: str = ""
    company_name: str = ""

    extracted_text: str = field(default="", repr=False)
    confidence: int = 0
    extraction_method: Optional[str] = None
    submitted: bool = False
    added_at: int = field(default_factory=now_millis)
    processing_id: Optional[str] = None
    error: Optional[str] = None
    parsed_fields: Dict[str, str] = field(default_factory=dict, repr=False, compare=False)

    @property
    def fields(self) -> Dict[str, str]:
        """Shipment fields as a dictionary."""
        return {name: getattr(self, name) for name in FIELD_NAMES}

    @property
    def missing_required_fields(self) -> List[str]:
        """Required fields that are still empty."""
        return [name for name in REQUIRED_FIELDS if not str(getattr(self, name)).strip()]

    @property
    def is_ready(self) -> bool:
        """Whether all required fields are filled."""
        return not self.missing_required_fields

    def with_updates(self, **changes: Any) -> 'ExtractionRecord':
        """
        Return a new record with the given changes applied.

        Field values are normalized to stripped strings, the one-way
        ``submitted`` flag is preserved and the completion invariant is
        re-evaluated unless the record is mid-extraction.

        Raises:
            ValueError: For unknown attributes or an invalid status.
        """
        known = {f.name for f in dataclass_fields(self)}
        unknown = set(changes) - known
        if unknown:
            raise ValueError(f"Unknown record attributes: {sorted(unknown)}")

        for name in FIELD_NAMES:
            if name in changes:
                value = changes[name]
                changes[name] = "" if value is None else str(value).strip()

        if self.submitted:
            changes['submitted'] = True

        status = changes.get('status', self.status)
        if status not in RecordStatus.ALL:
            raise ValueError(f"Invalid status: {status}")

        updated = replace(self, **changes)
        fields_changed = any(name in changes for name in FIELD_NAMES)
        return updated._with_completion_rule(fields_changed)

    def _with_completion_rule(self, fields_changed: bool) -> 'ExtractionRecord':
        if self.status == RecordStatus.PROCESSING:
            return self
        if self.is_ready:
            promote = self.status == RecordStatus.PENDING or (
                self.status == RecordStatus.ERROR and fields_changed
            )
            if promote:
                return replace(self, status=RecordStatus.COMPLETED, error=None)
        elif self.status == RecordStatus.COMPLETED:
            return replace(self, status=RecordStatus.PENDING)
        return self

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to dictionary format.

        Returns:
            Dictionary representation (the file blob is omitted).
        """
        return {
            'id': self.id,
            'number': self.number,
            'file_name': self.file_name,
            'preview_url': self.preview_url,
            'storage_path': self.storage_path,
            'status': self.status,
            **self.fields,
            'extracted_text': self.extracted_text,
            'confidence': self.confidence,
            'extraction_method': self.extraction_method,
            'submitted': self.submitted,
            'added_at': self.added_at,
            'processing_id': self.processing_id,
            'error': self.error,
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ExtractionRecord':
        """
        Create an ExtractionRecord from a dictionary produced by to_dict().
        """
        known = {f.name for f in dataclass_fields(cls)} - {'file', 'parsed_fields'}
        values = {k: v for k, v in data.items() if k in known and v is not None}
        values['submitted'] = bool(values.get('submitted', False))
        return cls(**values)

    def __str__(self) -> str:
        return (
            f"ExtractionRecord(#{self.number}, "
            f"status={self.status}, "
            f"code={self.code or '-'}, "
            f"phone={self.phone_number or '-'}, "
            f"method={self.extraction_method or '-'})"
        )
