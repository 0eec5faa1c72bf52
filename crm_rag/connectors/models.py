"""Data source descriptors for the CRM connector."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from ..errors import ValidationError


class DataSourceType(str, Enum):
    """Where CRM records are loaded from."""
    CSV = "csv"
    EXCEL = "excel"
    JSON = "json"
    API = "api"


@dataclass
class DataSource:
    """A location CRM records can be loaded from."""
    type: DataSourceType
    path: Optional[str] = None
    api_endpoint: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if isinstance(self.type, str):
            try:
                self.type = DataSourceType(self.type)
            except ValueError:
                raise ValidationError(f"Unsupported data source type: {self.type}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DataSource":
        if not isinstance(data, dict) or "type" not in data:
            raise ValidationError("Data source requires a 'type'")
        return cls(
            type=data["type"],
            path=data.get("path"),
            api_endpoint=data.get("apiEndpoint"),
            headers=data.get("headers") or {},
        )

    def describe(self) -> str:
        return f"{self.type.value}:{self.path or self.api_endpoint}"
