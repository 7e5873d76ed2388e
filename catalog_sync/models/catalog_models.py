"""
Catalog models
"""

import json
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TaskType(str, Enum):
    IMAGE = "IMAGE"
    VIDEO = "VIDEO"
    AUDIO = "AUDIO"
    TEXT = "TEXT"
    MULTIMODAL = "MULTIMODAL"


class PricingType(str, Enum):
    FREE = "free"
    FIXED = "fixed"


class ParameterType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ENUM = "enum"
    ARRAY = "array"
    OBJECT = "object"


class ModelMetadata(BaseModel):
    """Descriptive metadata the registry attaches to each endpoint"""

    model_config = ConfigDict(extra="allow")

    display_name: str | None = None
    description: str | None = None
    category: str | None = None
    status: str | None = None


class RemoteModel(BaseModel):
    """A model as listed by the provider registry. Lives for one sync pass."""

    model_config = ConfigDict(extra="allow", protected_namespaces=())

    endpoint_id: str = Field(..., min_length=1)
    metadata: ModelMetadata
    openapi: dict[str, Any] | None = None


class PricingQuote(BaseModel):
    """Per-endpoint price returned by the pricing API"""

    model_config = ConfigDict(extra="allow")

    endpoint_id: str
    unit_price: float = Field(default=0.0, ge=0)
    unit: str | None = None
    currency: str | None = "USD"


def _default_to_text(value: Any) -> str | None:
    """Strings are stored as-is, everything else as JSON (true, 0.5, ["a", "b"])"""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return json.dumps(value, default=str)


class ModelParameter(BaseModel):
    """Normalized, UI-describable input parameter of a model"""

    name: str
    type: ParameterType
    required: bool = False
    default_value: Any = None
    min_value: float | None = None
    max_value: float | None = None
    allowed_values: list[Any] | None = None
    ui_label: str
    ui_placeholder: str | None = None
    ui_help_text: str | None = None
    ui_order: int
    ui_group: str = "general"

    def to_record(self, model_id: str) -> dict[str, Any]:
        """Row for the model_parameters table"""
        return {
            "model_id": model_id,
            "parameter_name": self.name,
            "parameter_type": self.type.value,
            "is_required": self.required,
            "default_value": _default_to_text(self.default_value),
            "min_value": self.min_value,
            "max_value": self.max_value,
            "allowed_values": self.allowed_values,
            "ui_label": self.ui_label,
            "ui_placeholder": self.ui_placeholder,
            "ui_help_text": self.ui_help_text,
            "ui_order": self.ui_order,
            "ui_group": self.ui_group,
        }


class SyncError(BaseModel):
    model: str
    error: str


class SyncResult(BaseModel):
    """Counters accumulated over one sync pass"""

    models_added: int = 0
    models_updated: int = 0
    parameters_added: int = 0
    pricing_updated: int = 0
    errors: list[SyncError] = Field(default_factory=list)
    duration: float = 0.0
    cancelled: bool = False

    def add_error(self, model: str, error: str) -> None:
        self.errors.append(SyncError(model=model, error=error))


class ParameterRefreshResult(BaseModel):
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    total: int = 0
