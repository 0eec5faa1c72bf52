"""
RAG Data Models
===============

Dataclasses for CRM records, vector documents and query/response payloads.

CRM records arrive as camelCase dictionaries (JSON files, CSV rows where every
value is a string, or REST payloads) and are parsed into typed records here.
"""

import json
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from ..connectors.models import DataSource, DataSourceType  # noqa: F401
from ..errors import ValidationError


class DataType(str, Enum):
    """CRM record variants."""
    CUSTOMER = "customer"
    QUOTE = "quote"
    WORK_HISTORY = "work_history"


class QuoteStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"


class WorkType(str, Enum):
    REPAIR = "repair"
    PAINT = "paint"
    INSPECTION = "inspection"
    MAINTENANCE = "maintenance"
    OTHER = "other"


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


# =============================================================================
# PARSING HELPERS
# =============================================================================

def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _optional_str(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if _blank(value):
        return None
    return str(value).strip()


def _required_str(data: Dict[str, Any], key: str) -> str:
    value = _optional_str(data, key)
    if value is None:
        raise ValidationError(f"Missing required field '{key}'")
    return value


def _identifier(data: Dict[str, Any], key: str) -> Optional[str]:
    """The record's own id field, or a generic ``id`` when the export uses one."""
    return _optional_str(data, key) or _optional_str(data, "id")


def _to_number(value: Any, key: str) -> Union[int, float]:
    """Coerce CSV strings and JSON numbers; integral values come back as int."""
    if isinstance(value, bool):
        raise ValidationError(f"Field '{key}' must be numeric, got: {value!r}")
    if isinstance(value, str):
        value = value.replace(",", "").strip()
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Field '{key}' must be numeric, got: {value!r}")
    if not math.isfinite(number):
        raise ValidationError(f"Field '{key}' must be a finite number, got: {value!r}")
    return int(number) if number.is_integer() else number


def _number(data: Dict[str, Any], key: str, default: Union[int, float] = 0) -> Union[int, float]:
    value = data.get(key)
    if _blank(value):
        return default
    return _to_number(value, key)


def _optional_number(data: Dict[str, Any], key: str) -> Optional[Union[int, float]]:
    value = data.get(key)
    if _blank(value):
        return None
    return _to_number(value, key)


def _integer(data: Dict[str, Any], key: str, default: Optional[int] = 0) -> Optional[int]:
    """Whole-number fields: "3" and 3.0 are accepted, 4.5 is not."""
    value = data.get(key)
    if _blank(value):
        return default
    number = _to_number(value, key)
    if not isinstance(number, int):
        raise ValidationError(f"Field '{key}' must be a whole number, got: {value!r}")
    return number


def _sequence(data: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    """Nested sequences may arrive JSON-encoded when they come from CSV."""
    value = data.get(key)
    if _blank(value):
        return []
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            raise ValidationError(f"Field '{key}' must be a list")
    if not isinstance(value, list):
        raise ValidationError(f"Field '{key}' must be a list")
    for entry in value:
        if not isinstance(entry, dict):
            raise ValidationError(f"Entries of '{key}' must be objects")
    return value


def _enum(enum_cls, data: Dict[str, Any], key: str, default=None):
    value = _optional_str(data, key)
    if value is None:
        if default is None:
            raise ValidationError(f"Missing required field '{key}'")
        return default
    try:
        return enum_cls(value.lower())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Field '{key}' must be one of: {allowed} (got '{value}')")


# =============================================================================
# CRM RECORDS
# =============================================================================

@dataclass
class Customer:
    """A body shop customer."""
    customer_id: Optional[str]
    name: str
    total_sales: int = 0
    visit_count: int = 0
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    registered_at: Optional[str] = None
    notes: Optional[str] = None

    data_type = DataType.CUSTOMER

    def __post_init__(self):
        if self.total_sales < 0:
            raise ValidationError("totalSales cannot be negative")
        if self.visit_count < 0:
            raise ValidationError("visitCount cannot be negative")

    @property
    def natural_key(self) -> Optional[str]:
        return self.customer_id

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Customer":
        return cls(
            customer_id=_identifier(data, "customerId"),
            name=_required_str(data, "name"),
            total_sales=_integer(data, "totalSales"),
            visit_count=_integer(data, "visitCount"),
            phone=_optional_str(data, "phone"),
            email=_optional_str(data, "email"),
            address=_optional_str(data, "address"),
            registered_at=_optional_str(data, "registeredAt"),
            notes=_optional_str(data, "notes"),
        )

    def metadata(self) -> Dict[str, Any]:
        return {
            "id": self.customer_id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "totalSales": self.total_sales,
            "visitCount": self.visit_count,
            "registeredAt": self.registered_at,
            "notes": self.notes,
        }


@dataclass
class QuoteItem:
    """A quote line item."""
    description: str
    quantity: Union[int, float] = 1
    unit_price: Union[int, float] = 0
    total_price: Optional[Union[int, float]] = None
    item_id: Optional[str] = None

    def __post_init__(self):
        if self.total_price is None:
            self.total_price = self.quantity * self.unit_price

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuoteItem":
        return cls(
            description=_required_str(data, "description"),
            quantity=_number(data, "quantity", 1),
            unit_price=_number(data, "unitPrice"),
            total_price=_optional_number(data, "totalPrice"),
            item_id=_optional_str(data, "itemId"),
        )


@dataclass
class Quote:
    """A repair / paint quote issued to a customer."""
    quote_id: Optional[str]
    customer_id: str
    vehicle_info: str
    status: QuoteStatus
    quote_date: str
    items: List[QuoteItem] = field(default_factory=list)
    total_amount: Optional[Union[int, float]] = None
    valid_until: Optional[str] = None
    notes: Optional[str] = None

    data_type = DataType.QUOTE

    def __post_init__(self):
        if isinstance(self.status, str):
            self.status = QuoteStatus(self.status)
        if self.total_amount is None:
            self.total_amount = sum(item.total_price for item in self.items)

    @property
    def natural_key(self) -> Optional[str]:
        return self.quote_id

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Quote":
        return cls(
            quote_id=_identifier(data, "quoteId"),
            customer_id=_required_str(data, "customerId"),
            vehicle_info=_required_str(data, "vehicleInfo"),
            status=_enum(QuoteStatus, data, "status", QuoteStatus.DRAFT),
            quote_date=_required_str(data, "quoteDate"),
            items=[QuoteItem.from_dict(item) for item in _sequence(data, "items")],
            total_amount=_optional_number(data, "totalAmount"),
            valid_until=_optional_str(data, "validUntil"),
            notes=_optional_str(data, "notes"),
        )

    def metadata(self) -> Dict[str, Any]:
        return {
            "id": self.quote_id,
            "customerId": self.customer_id,
            "vehicleInfo": self.vehicle_info,
            "totalAmount": self.total_amount,
            "status": self.status.value,
            "quoteDate": self.quote_date,
            "validUntil": self.valid_until,
            "itemCount": len(self.items),
            "notes": self.notes,
        }


@dataclass
class PartUsed:
    """A part consumed by a job."""
    part_name: str
    quantity: Union[int, float] = 1
    unit_price: Union[int, float] = 0
    part_id: Optional[str] = None

    @property
    def total_price(self) -> Union[int, float]:
        return self.quantity * self.unit_price

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PartUsed":
        return cls(
            part_name=_required_str(data, "partName"),
            quantity=_number(data, "quantity", 1),
            unit_price=_number(data, "unitPrice"),
            part_id=_optional_str(data, "partId"),
        )


@dataclass
class WorkHistory:
    """A completed job on a customer's vehicle."""
    work_id: Optional[str]
    customer_id: str
    vehicle_info: str
    work_type: WorkType
    description: str
    technician: str
    work_date: str
    labor_cost: Union[int, float] = 0
    parts_cost: Union[int, float] = 0
    total_cost: Optional[Union[int, float]] = None
    parts_used: List[PartUsed] = field(default_factory=list)
    rating: Optional[int] = None
    notes: Optional[str] = None

    data_type = DataType.WORK_HISTORY

    def __post_init__(self):
        if isinstance(self.work_type, str):
            self.work_type = WorkType(self.work_type)
        if self.rating is not None and not 1 <= self.rating <= 5:
            raise ValidationError(f"rating must be between 1 and 5, got {self.rating}")
        if self.total_cost is None:
            self.total_cost = self.labor_cost + self.parts_cost

    @property
    def natural_key(self) -> Optional[str]:
        return self.work_id

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkHistory":
        return cls(
            work_id=_identifier(data, "workId"),
            customer_id=_required_str(data, "customerId"),
            vehicle_info=_required_str(data, "vehicleInfo"),
            work_type=_enum(WorkType, data, "workType", WorkType.OTHER),
            description=_required_str(data, "description"),
            technician=_required_str(data, "technician"),
            work_date=_required_str(data, "workDate"),
            labor_cost=_number(data, "laborCost"),
            parts_cost=_number(data, "partsCost"),
            total_cost=_optional_number(data, "totalCost"),
            parts_used=[PartUsed.from_dict(part) for part in _sequence(data, "partsUsed")],
            rating=_integer(data, "rating", default=None),
            notes=_optional_str(data, "notes"),
        )

    def metadata(self) -> Dict[str, Any]:
        return {
            "id": self.work_id,
            "customerId": self.customer_id,
            "vehicleInfo": self.vehicle_info,
            "workType": self.work_type.value,
            "technician": self.technician,
            "workDate": self.work_date,
            "laborCost": self.labor_cost,
            "partsCost": self.parts_cost,
            "totalCost": self.total_cost,
            "rating": self.rating,
            "partCount": len(self.parts_used),
            "notes": self.notes,
        }


CRMRecord = Union[Customer, Quote, WorkHistory]

RECORD_TYPES = {
    DataType.CUSTOMER: Customer,
    DataType.QUOTE: Quote,
    DataType.WORK_HISTORY: WorkHistory,
}


def parse_data_type(value: Union[str, DataType]) -> DataType:
    if isinstance(value, DataType):
        return value
    try:
        return DataType(value)
    except ValueError:
        allowed = ", ".join(dt.value for dt in DataType)
        raise ValidationError(f"dataType must be one of: {allowed} (got '{value}')")


def parse_record(data: Union[Dict[str, Any], CRMRecord], data_type: Union[str, DataType]) -> CRMRecord:
    """Parse a raw source dictionary into the typed record for ``data_type``."""
    data_type = parse_data_type(data_type)
    record_cls = RECORD_TYPES[data_type]
    if isinstance(data, record_cls):
        return data
    if not isinstance(data, dict):
        raise ValidationError(f"{data_type.value} record must be an object")
    return record_cls.from_dict(data)


# =============================================================================
# VECTOR STORE MODELS
# =============================================================================

@dataclass
class VectorDocument:
    """The unit of storage in the vector index."""
    id: str
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    embedding: Optional[List[float]] = None

    @property
    def data_type(self) -> Optional[str]:
        return self.metadata.get("type")


@dataclass
class SearchResult:
    """A retrieved document with its similarity score (higher is better)."""
    document: VectorDocument
    score: float
    distance: Optional[float] = None

    def to_source(self) -> "SearchSource":
        return SearchSource(
            content=self.document.content,
            metadata=dict(self.document.metadata),
            score=self.score,
        )


@dataclass
class SearchSource:
    """A source cited in a RAG response."""
    content: str
    metadata: Dict[str, Any]
    score: float

    def to_dict(self) -> Dict[str, Any]:
        return {"content": self.content, "metadata": self.metadata, "score": self.score}


# =============================================================================
# QUERY MODELS
# =============================================================================

DEFAULT_TOP_K = 5
DEFAULT_MIN_SCORE = 0.5


@dataclass
class RAGOptions:
    """Per-request retrieval settings."""
    top_k: int = DEFAULT_TOP_K
    min_score: float = DEFAULT_MIN_SCORE

    def __post_init__(self):
        if isinstance(self.top_k, bool) or not isinstance(self.top_k, int) or self.top_k < 1:
            raise ValidationError(f"topK must be a positive integer, got {self.top_k!r}")
        if not 0.0 <= self.min_score <= 1.0:
            raise ValidationError(f"minScore must be within [0, 1], got {self.min_score!r}")


@dataclass
class ConversationMessage:
    role: MessageRole
    content: str

    def __post_init__(self):
        try:
            self.role = MessageRole(self.role)
        except (TypeError, ValueError):
            raise ValidationError(f"Message role must be 'user' or 'assistant', got {self.role!r}")
        if not isinstance(self.content, str):
            raise ValidationError(f"Message content must be a string, got {type(self.content).__name__}")

    @classmethod
    def from_value(cls, value: Any) -> "ConversationMessage":
        """Accept a message instance or a ``{role, content}`` dictionary."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, dict):
            raise ValidationError(f"History entries must be objects, got {type(value).__name__}")
        content = value.get("content")
        return cls(role=value.get("role"), content="" if content is None else content)

    def to_message(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}


@dataclass
class RAGQuery:
    query: str
    options: Optional[RAGOptions] = None


@dataclass
class ConversationalRAGQuery(RAGQuery):
    history: List[ConversationMessage] = field(default_factory=list)


@dataclass
class RAGResponse:
    answer: str
    sources: List[SearchSource]
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "answer": self.answer,
            "sources": [source.to_dict() for source in self.sources],
            "confidence": self.confidence,
        }


# =============================================================================
# INGESTION MODELS
# =============================================================================

@dataclass
class IngestionRequest:
    source: DataSource
    data_type: DataType

    def __post_init__(self):
        self.data_type = parse_data_type(self.data_type)


@dataclass
class IngestionSummary:
    """Outcome of a multi-source ingestion. Failed sources are counted, not raised."""
    total: int = 0
    by_type: Dict[str, int] = field(default_factory=dict)
    failed: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)

    def add_success(self, data_type: DataType, count: int):
        self.by_type[data_type.value] = self.by_type.get(data_type.value, 0) + count
        self.total += count

    def add_failure(self, request: IngestionRequest, error: Exception):
        self.errors.append({
            "source": request.source.describe(),
            "dataType": request.data_type.value,
            "category": getattr(error, "category", "internal"),
            "message": str(error),
        })
        self.failed += 1
