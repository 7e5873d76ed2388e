"""
Database layer for the model catalog
Reads and writes models, model_parameters and model_pricing in Supabase
"""

import logging
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from supabase import Client

from catalog_sync.config.supabase_config import get_supabase_client
from catalog_sync.utils.exceptions import PersistenceError

logger = logging.getLogger(__name__)

MODELS_TABLE = "models"
PARAMETERS_TABLE = "model_parameters"
PRICING_TABLE = "model_pricing"
CREDIT_CONFIG_TABLE = "credit_pricing_config"
CATALOG_TABLES = (MODELS_TABLE, PARAMETERS_TABLE, PRICING_TABLE)


def _serialize_model_data(data: Any) -> Any:
    """Convert Decimal and other non-JSON-serializable types to JSON-compatible types"""
    if isinstance(data, Decimal):
        return float(data)
    if isinstance(data, dict):
        return {key: _serialize_model_data(value) for key, value in data.items()}
    if isinstance(data, (list, tuple)):
        return [_serialize_model_data(item) for item in data]
    return data


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


class CatalogStore:
    """
    Catalog persistence over one Supabase client.

    Every failure is re-raised as PersistenceError so callers can isolate it
    to the model being written.
    """

    def __init__(self, client: Client | None = None):
        self.supabase = client if client is not None else get_supabase_client()

    # ==================== Generic operations ====================

    def select_by_key(
        self, table: str, key: str, value: Any, columns: str = "*"
    ) -> dict[str, Any] | None:
        try:
            response = (
                self.supabase.table(table).select(columns).eq(key, value).limit(1).execute()
            )
        except Exception as e:
            raise PersistenceError(f"Error reading {table} where {key}={value}: {e}") from e
        rows = response.data or []
        return rows[0] if rows else None

    def select_rows(
        self, table: str, columns: str = "*", filters: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        try:
            query = self.supabase.table(table).select(columns)
            for key, value in (filters or {}).items():
                query = query.eq(key, value)
            response = query.execute()
        except Exception as e:
            raise PersistenceError(f"Error reading {table}: {e}") from e
        return response.data or []

    def count_rows(self, table: str, filters: dict[str, Any] | None = None) -> int:
        try:
            query = self.supabase.table(table).select("*", count="exact")
            for key, value in (filters or {}).items():
                query = query.eq(key, value)
            response = query.limit(1).execute()
        except Exception as e:
            raise PersistenceError(f"Error counting {table}: {e}") from e
        return response.count or 0

    def insert(self, table: str, payload: dict[str, Any] | list[dict[str, Any]]) -> list[dict[str, Any]]:
        try:
            response = self.supabase.table(table).insert(_serialize_model_data(payload)).execute()
        except Exception as e:
            raise PersistenceError(f"Error inserting into {table}: {e}") from e
        return response.data or []

    def update_by_key(
        self, table: str, key: str, value: Any, payload: dict[str, Any]
    ) -> list[dict[str, Any]]:
        try:
            response = (
                self.supabase.table(table)
                .update(_serialize_model_data(payload))
                .eq(key, value)
                .execute()
            )
        except Exception as e:
            raise PersistenceError(f"Error updating {table} where {key}={value}: {e}") from e
        return response.data or []

    def delete_by_key(self, table: str, key: str, value: Any) -> None:
        try:
            self.supabase.table(table).delete().eq(key, value).execute()
        except Exception as e:
            raise PersistenceError(f"Error deleting from {table} where {key}={value}: {e}") from e

    def _upsert_by_key(self, table: str, key: str, value: Any, payload: dict[str, Any]) -> bool:
        """Update the row keyed by ``key`` or insert it with a creation timestamp.

        Returns:
            True if a row was inserted, False if an existing row was updated
        """
        if self.select_by_key(table, key, value, columns=key) is not None:
            self.update_by_key(table, key, value, payload)
            return False
        self.insert(table, {**payload, "created_at": utc_now_iso()})
        return True

    # ==================== Catalog operations ====================

    def upsert_model(self, model_id: str, model_data: dict[str, Any]) -> bool:
        """Insert or update a models row. Returns True if the model is new."""
        return self._upsert_by_key(MODELS_TABLE, "id", model_id, model_data)

    def upsert_pricing(self, model_id: str, pricing_data: dict[str, Any]) -> bool:
        """Insert or update the model_pricing row of a model. Returns True if new."""
        return self._upsert_by_key(PRICING_TABLE, "model_id", model_id, pricing_data)

    def replace_model_parameters(self, model_id: str, records: list[dict[str, Any]]) -> int:
        """
        Replace the parameter set of a model.

        Fresh rows are upserted on (model_id, parameter_name) first, then rows
        whose names are no longer present are deleted, so readers never see
        the model without parameters mid-replacement.

        Returns:
            Number of parameter rows written
        """
        if not records:
            self.delete_by_key(PARAMETERS_TABLE, "model_id", model_id)
            return 0

        names = [record["parameter_name"] for record in records]
        try:
            (
                self.supabase.table(PARAMETERS_TABLE)
                .upsert(_serialize_model_data(records), on_conflict="model_id,parameter_name")
                .execute()
            )
            (
                self.supabase.table(PARAMETERS_TABLE)
                .delete()
                .eq("model_id", model_id)
                .not_.in_("parameter_name", names)
                .execute()
            )
        except Exception as e:
            raise PersistenceError(f"Error replacing parameters for {model_id}: {e}") from e
        return len(records)

    def list_models(self, columns: str = "id, display_name") -> list[dict[str, Any]]:
        return self.select_rows(MODELS_TABLE, columns=columns)

    def get_active_credit_rate(self) -> float | None:
        """Return cost_per_credit_usd of the active credit config, or None"""
        row = self.select_by_key(
            CREDIT_CONFIG_TABLE, "is_active", True, columns="cost_per_credit_usd"
        )
        return row.get("cost_per_credit_usd") if row else None


def get_catalog_counts(store: CatalogStore) -> dict[str, int]:
    """Row counts of the catalog tables"""
    return {table: store.count_rows(table) for table in CATALOG_TABLES}
