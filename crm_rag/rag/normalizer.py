"""
Record Normalizer
=================

Turns typed CRM records into vector documents.

Rules:
- Document id is ``{type}_{naturalKey}`` so re-ingesting a record overwrites it
- One fact per line, fixed labels per record type
- Absent optional fields render as an explicit marker (stable text shape)
- Line items / parts render as an indented bulleted block
- Pure: same record in, same id and text out
"""

import hashlib
import json
import logging
from typing import Any, Dict, List, Optional, Tuple, Union

from ..errors import ValidationError
from .models import (
    CRMRecord,
    Customer,
    DataType,
    Quote,
    VectorDocument,
    WorkHistory,
    parse_data_type,
    parse_record,
)

logger = logging.getLogger(__name__)

UNSET = "(none)"

Scalar = Union[str, int, float, bool]


def format_yen(amount: Union[int, float, None]) -> str:
    if amount is None:
        return UNSET
    if isinstance(amount, float) and not amount.is_integer():
        return f"{amount:,.2f} yen"
    return f"{int(amount):,} yen"


def _value(value: Any) -> str:
    return UNSET if value is None else str(value)


def _quantity(value: Union[int, float]) -> str:
    return f"{value:g}" if isinstance(value, float) else str(value)


def content_key(text: str) -> str:
    """Short content hash used as the key of documents without an identifier."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:16]


class RecordNormalizer:
    """
    Renders CRM records as embedding-ready text.

    The label vocabulary is fixed per record type so every document of a type
    has the same shape, whatever fields happen to be populated.
    """

    def document_id(self, record: CRMRecord, data_type: DataType, fallback_key: Optional[Union[str, int]] = None) -> str:
        key = record.natural_key
        if key is None:
            if fallback_key is None:
                raise ValidationError(
                    f"{data_type.value} record has no identifier and no fallback key was given"
                )
            key = str(fallback_key)
        return f"{data_type.value}_{key}"

    def normalize(
        self,
        record: Union[CRMRecord, Dict[str, Any]],
        data_type: Union[str, DataType],
        fallback_key: Optional[Union[str, int]] = None,
    ) -> Tuple[str, str]:
        """
        Normalize a record into its document id and canonical text.

        Args:
            record: Typed record or raw camelCase dictionary
            data_type: customer, quote or work_history
            fallback_key: Key used when the record carries no identifier
                (the ordinal index within an ingestion batch)

        Returns:
            (document_id, text)
        """
        data_type = parse_data_type(data_type)
        record = parse_record(record, data_type)
        return self.document_id(record, data_type, fallback_key), self.render(record)

    def render(self, record: CRMRecord) -> str:
        if isinstance(record, Customer):
            lines = self._customer_lines(record)
        elif isinstance(record, Quote):
            lines = self._quote_lines(record)
        elif isinstance(record, WorkHistory):
            lines = self._work_lines(record)
        else:
            raise ValidationError(f"Unsupported record: {type(record).__name__}")
        return "\n".join(lines)

    def _customer_lines(self, customer: Customer) -> List[str]:
        return [
            "Customer record",
            f"Customer ID: {_value(customer.customer_id)}",
            f"Name: {customer.name}",
            f"Phone: {_value(customer.phone)}",
            f"Email: {_value(customer.email)}",
            f"Address: {_value(customer.address)}",
            f"Total sales: {format_yen(customer.total_sales)}",
            f"Visit count: {customer.visit_count} visits",
            f"Registered: {_value(customer.registered_at)}",
            f"Notes: {_value(customer.notes)}",
        ]

    def _quote_lines(self, quote: Quote) -> List[str]:
        lines = [
            "Quote record",
            f"Quote ID: {_value(quote.quote_id)}",
            f"Customer ID: {quote.customer_id}",
            f"Vehicle: {quote.vehicle_info}",
            "Line items:",
        ]
        if quote.items:
            lines.extend(
                f"  - {item.description} x {_quantity(item.quantity)}"
                f" @ {format_yen(item.unit_price)} = {format_yen(item.total_price)}"
                for item in quote.items
            )
        else:
            lines.append(f"  - {UNSET}")
        lines.extend([
            f"Total amount: {format_yen(quote.total_amount)}",
            f"Status: {quote.status.value}",
            f"Quote date: {quote.quote_date}",
            f"Valid until: {_value(quote.valid_until)}",
            f"Notes: {_value(quote.notes)}",
        ])
        return lines

    def _work_lines(self, work: WorkHistory) -> List[str]:
        lines = [
            "Work history record",
            f"Work ID: {_value(work.work_id)}",
            f"Customer ID: {work.customer_id}",
            f"Vehicle: {work.vehicle_info}",
            f"Work type: {work.work_type.value}",
            f"Description: {work.description}",
            f"Technician: {work.technician}",
            f"Work date: {work.work_date}",
            "Parts used:",
        ]
        if work.parts_used:
            lines.extend(
                f"  - {part.part_name} x {_quantity(part.quantity)} @ {format_yen(part.unit_price)}"
                for part in work.parts_used
            )
        else:
            lines.append(f"  - {UNSET}")
        lines.extend([
            f"Labor cost: {format_yen(work.labor_cost)}",
            f"Parts cost: {format_yen(work.parts_cost)}",
            f"Total cost: {format_yen(work.total_cost)}",
            f"Rating: {f'{work.rating}/5' if work.rating is not None else UNSET}",
            f"Notes: {_value(work.notes)}",
        ])
        return lines

    def build_metadata(
        self,
        data_type: DataType,
        known: Dict[str, Any],
        extra: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Scalar]:
        """
        Flatten metadata into index-storable scalars.

        Known record fields win over pass-through ``extra`` fields, and the
        ``type`` discriminator always wins. None values are dropped; nested
        values are JSON-encoded.
        """
        merged: Dict[str, Any] = {}
        merged.update(extra or {})
        merged.update(known)
        merged["type"] = data_type.value

        flat: Dict[str, Scalar] = {}
        for key, value in merged.items():
            if value is None:
                continue
            if isinstance(value, (str, int, float, bool)):
                flat[str(key)] = value
            else:
                flat[str(key)] = json.dumps(value, ensure_ascii=False, default=str)
        return flat

    def to_document(
        self,
        record: Union[CRMRecord, Dict[str, Any]],
        data_type: Union[str, DataType],
        fallback_key: Optional[Union[str, int]] = None,
        extra_metadata: Optional[Dict[str, Any]] = None,
    ) -> VectorDocument:
        data_type = parse_data_type(data_type)
        record = parse_record(record, data_type)
        doc_id = self.document_id(record, data_type, fallback_key)

        known = record.metadata()
        if known.get("id") is None:
            known["id"] = doc_id[len(data_type.value) + 1:]

        return VectorDocument(
            id=doc_id,
            content=self.render(record),
            metadata=self.build_metadata(data_type, known, extra_metadata),
        )

    def document_from_text(
        self,
        text: str,
        data_type: Union[str, DataType],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> VectorDocument:
        """
        Wrap pre-rendered text as a document.

        The id comes from ``metadata['id']`` when present, otherwise from a
        hash of the text, so resubmitting the same text overwrites itself.
        """
        data_type = parse_data_type(data_type)
        if not text or not text.strip():
            raise ValidationError("source text is empty")

        metadata = dict(metadata or {})
        key = metadata.get("id")
        if key is None or str(key).strip() == "":
            key = content_key(text)
            metadata["id"] = key

        return VectorDocument(
            id=f"{data_type.value}_{key}",
            content=text.strip(),
            metadata=self.build_metadata(data_type, {}, metadata),
        )
