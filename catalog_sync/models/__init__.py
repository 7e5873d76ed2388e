"""
Data models for the catalog sync: remote payloads, parsed parameters and
per-pass results
"""

from .catalog_models import (
    ModelMetadata,
    ModelParameter,
    ParameterRefreshResult,
    ParameterType,
    PricingQuote,
    PricingType,
    RemoteModel,
    SyncError,
    SyncResult,
    TaskType,
)

__all__ = [
    "ModelMetadata",
    "ModelParameter",
    "ParameterRefreshResult",
    "ParameterType",
    "PricingQuote",
    "PricingType",
    "RemoteModel",
    "SyncError",
    "SyncResult",
    "TaskType",
]
