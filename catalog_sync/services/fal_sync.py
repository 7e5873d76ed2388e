"""
Fal.ai model catalog synchronization
Fetches models, schemas and pricing from fal.ai and reconciles them into the catalog

One pass: connectivity check -> credit rate lookup -> model listing ->
pricing lookup -> per-model reconcile (model upsert, parameter replacement,
pricing upsert). A failing model is recorded on the result and never aborts
the pass; only a failed connectivity check or model listing does.
"""

import logging
import threading
import time
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from catalog_sync.config import Config
from catalog_sync.db.catalog_db import CatalogStore, utc_now_iso
from catalog_sync.models import (
    ModelParameter,
    ParameterRefreshResult,
    PricingQuote,
    PricingType,
    RemoteModel,
    SyncResult,
    TaskType,
)
from catalog_sync.services.credit_pricing import (
    calculate_credit_cost,
    get_active_credit_rate,
    resolve_pricing,
)
from catalog_sync.services.fal_client import FalCatalogClient
from catalog_sync.services.prometheus_metrics import record_model_outcome, record_sync_run
from catalog_sync.services.schema_parser import (
    extract_input_schema,
    get_component_schemas,
    parse_schema_to_parameters,
)
from catalog_sync.services.task_classifier import TaskClassifier, classify_task_type
from catalog_sync.utils.exceptions import (
    CatalogSyncError,
    SchemaUnavailable,
    UpstreamUnavailable,
    ValidationError,
)
from catalog_sync.utils.sanitize import sanitize_for_logging, sanitize_value

logger = logging.getLogger(__name__)

UNKNOWN_MODEL = "unknown"


def build_model_record(
    model: RemoteModel,
    task_type: TaskType,
    input_schema: dict[str, Any] | None,
    now: str,
) -> dict[str, Any]:
    """Transform a remote model into a models row"""
    endpoint_id = model.endpoint_id
    return {
        "id": endpoint_id,
        "provider_id": Config.FAL_PROVIDER_ID,
        "name": endpoint_id.removeprefix(f"{Config.FAL_PROVIDER_ID}/"),
        "display_name": model.metadata.display_name or endpoint_id.split("/")[-1] or endpoint_id,
        "description": model.metadata.description,
        "task_type": task_type.value,
        "category": model.metadata.category,
        "input_schema": input_schema or {},
        "is_active": model.metadata.status == "active",
        "updated_at": now,
    }


def build_pricing_record(
    model_id: str,
    quote: PricingQuote | None,
    price_per_call: float,
    pricing_type: PricingType,
    credit_cost: int,
    now: str,
) -> dict[str, Any]:
    """Transform a pricing quote into a model_pricing row"""
    return {
        "model_id": model_id,
        "price_per_call": price_per_call,
        "min_price": None,
        "max_price": None,
        "pricing_type": pricing_type.value,
        "credit_cost": credit_cost,
        "pricing_details": {"unit": quote.unit, "currency": quote.currency} if quote else {},
        "last_updated": now,
    }


def parse_openapi_parameters(
    openapi: dict[str, Any] | None,
) -> tuple[dict[str, Any] | None, list[ModelParameter]]:
    """Extract the input schema of an OpenAPI document and parse its parameters"""
    if not openapi:
        return None, []
    input_schema = extract_input_schema(openapi)
    if input_schema is None:
        return None, []
    return input_schema, parse_schema_to_parameters(input_schema, get_component_schemas(openapi))


class FalCatalogSync:
    """
    Drives a single catalog sync pass.

    The client and store are owned by the caller for the lifetime of the pass.
    Passes are not safe to run concurrently against the same catalog.
    """

    def __init__(
        self,
        client: FalCatalogClient,
        store: CatalogStore,
        classifier: TaskClassifier = classify_task_type,
        fetch_missing_schemas: bool | None = None,
        credit_rate_lookup: Callable[[CatalogStore], float] = get_active_credit_rate,
    ):
        self.client = client
        self.store = store
        self.classifier = classifier
        self.fetch_missing_schemas = (
            Config.FAL_FETCH_MISSING_SCHEMAS if fetch_missing_schemas is None else fetch_missing_schemas
        )
        self.credit_rate_lookup = credit_rate_lookup

    def run(self, cancel_event: threading.Event | None = None) -> SyncResult:
        """
        Run one sync pass.

        Args:
            cancel_event: When set, the pass stops before the next model and
                the result is marked cancelled

        Returns:
            SyncResult with counters and per-model errors

        Raises:
            UpstreamUnavailable: If the connectivity check fails
            UpstreamError: If the model listing fails
        """
        start_time = time.monotonic()
        result = SyncResult()
        logger.info("🚀 Starting Fal.ai model sync...")

        try:
            if not self.client.test_connection():
                raise UpstreamUnavailable("Failed to connect to Fal.ai API")

            credit_rate = self.credit_rate_lookup(self.store)
            logger.info(f"✅ Credit rate: ${credit_rate:.4f} per credit")

            models = self.client.fetch_models()
            logger.info(f"✅ Fetched {len(models)} models")
        except CatalogSyncError:
            record_sync_run("failed")
            raise

        pricing_map = self._fetch_pricing_map(models)

        logger.info("⚙️  Processing models...")
        for raw_model in models:
            if cancel_event is not None and cancel_event.is_set():
                logger.warning("🛑 Sync cancelled, stopping before the next model")
                result.cancelled = True
                break
            self._process_model(raw_model, pricing_map, credit_rate, result)

        result.duration = time.monotonic() - start_time
        record_sync_run("cancelled" if result.cancelled else "success", result.duration)
        log_sync_summary(result)
        return result

    def _fetch_pricing_map(self, models: list[Any]) -> dict[str, PricingQuote]:
        endpoint_ids = [
            model["endpoint_id"]
            for model in models
            if isinstance(model, dict) and isinstance(model.get("endpoint_id"), str) and model["endpoint_id"]
        ]

        try:
            quotes = self.client.fetch_pricing(endpoint_ids)
        except CatalogSyncError as e:
            logger.warning(
                f"⚠️ Pricing endpoint failed, all models will have minimum 1 credit cost: {e}"
            )
            return {}

        pricing_map = {quote.endpoint_id: quote for quote in quotes}
        missing = len(endpoint_ids) - len(pricing_map)
        logger.info(f"✅ Fetched pricing for {len(pricing_map)} of {len(endpoint_ids)} models")
        if missing > 0:
            logger.info(
                f"⚠️ {missing} models have no pricing data and will be stored as free (1 credit)"
            )
        return pricing_map

    def _process_model(
        self,
        raw_model: Any,
        pricing_map: dict[str, PricingQuote],
        credit_rate: float,
        result: SyncResult,
    ) -> None:
        try:
            model = validate_remote_model(raw_model)
        except ValidationError as e:
            raw_id = raw_model.get("endpoint_id") if isinstance(raw_model, dict) else None
            model_id = raw_id if isinstance(raw_id, str) and raw_id else UNKNOWN_MODEL
            logger.warning(f"⚠️ Skipping invalid model {sanitize_for_logging(model_id)}: {e}")
            result.add_error(model_id, str(e))
            record_model_outcome("failed")
            return

        try:
            created, parameter_count = self.reconcile_model(
                model, pricing_map.get(model.endpoint_id), credit_rate
            )
        except Exception as e:
            logger.error(f"  ❌ Error processing {sanitize_for_logging(model.endpoint_id)}: {e}")
            result.add_error(model.endpoint_id, str(e) or type(e).__name__)
            record_model_outcome("failed")
            return

        if created:
            result.models_added += 1
        else:
            result.models_updated += 1
        result.parameters_added += parameter_count
        result.pricing_updated += 1
        record_model_outcome("added" if created else "updated")

    def reconcile_model(
        self, model: RemoteModel, quote: PricingQuote | None, credit_rate: float
    ) -> tuple[bool, int]:
        """
        Merge one remote model into the catalog.

        Returns:
            (created, parameter_count) where created is True for a new model
        """
        endpoint_id = model.endpoint_id
        logger.debug(f"📌 Processing: {sanitize_for_logging(endpoint_id)}")

        task_type = self.classifier(model.metadata.category or endpoint_id)
        price_per_call, pricing_type = resolve_pricing(quote)
        credit_cost = calculate_credit_cost(price_per_call, credit_rate)

        input_schema, parameters = parse_openapi_parameters(self._load_openapi(model))

        now = utc_now_iso()
        model_data = sanitize_value(build_model_record(model, task_type, input_schema, now))
        created = self.store.upsert_model(endpoint_id, model_data)

        records = [sanitize_value(parameter.to_record(endpoint_id)) for parameter in parameters]
        parameter_count = self.store.replace_model_parameters(endpoint_id, records)

        pricing_data = sanitize_value(
            build_pricing_record(endpoint_id, quote, price_per_call, pricing_type, credit_cost, now)
        )
        self.store.upsert_pricing(endpoint_id, pricing_data)

        logger.debug(
            f"  {'✨ Added' if created else '✏️  Updated'} model with {parameter_count} parameters, "
            f"${price_per_call:.4f} = {credit_cost} credits"
        )
        return created, parameter_count

    def _load_openapi(self, model: RemoteModel) -> dict[str, Any] | None:
        if model.openapi:
            return model.openapi
        if not self.fetch_missing_schemas:
            return None
        return self.client.fetch_model_schema(model.endpoint_id)


def validate_remote_model(raw_model: Any) -> RemoteModel:
    """
    Validate a raw registry entry.

    Raises:
        ValidationError: If the entry lacks an endpoint id or metadata
    """
    if not isinstance(raw_model, dict):
        raise ValidationError("Model entry is not an object")
    try:
        return RemoteModel.model_validate(raw_model)
    except PydanticValidationError as e:
        fields = sorted({str(error["loc"][0]) for error in e.errors() if error.get("loc")})
        raise ValidationError(
            f"Model missing or invalid fields: {', '.join(fields) or 'endpoint_id, metadata'}"
        ) from e


def log_sync_summary(result: SyncResult) -> None:
    logger.info(
        "📊 Sync complete | "
        f"models_added={result.models_added} | models_updated={result.models_updated} | "
        f"parameters_added={result.parameters_added} | pricing_updated={result.pricing_updated} | "
        f"errors={len(result.errors)} | duration={result.duration:.2f}s"
        + (" | cancelled=True" if result.cancelled else "")
    )
    for error in result.errors:
        logger.warning(f"  - {sanitize_for_logging(error.model)}: {sanitize_for_logging(error.error)}")


def refresh_model_parameters(
    client: FalCatalogClient,
    store: CatalogStore,
    delay: float | None = None,
) -> ParameterRefreshResult:
    """
    Re-derive the parameters of every persisted model from its published schema.

    Models whose schema is unavailable, has no input schema or yields no
    parameters are skipped and keep their current parameters.

    Raises:
        PersistenceError: If the model list cannot be read
    """
    delay = Config.FAL_PARAMETER_REFRESH_DELAY if delay is None else delay
    models = store.list_models()
    result = ParameterRefreshResult(total=len(models))
    logger.info(f"🚀 Refreshing parameters for {len(models)} models...")

    for position, row in enumerate(models, start=1):
        model_id = row.get("id")
        if not model_id:
            result.skipped += 1
            continue

        try:
            openapi = client.fetch_model_schema(model_id)
        except SchemaUnavailable:
            logger.warning(f"  ⚠️ Schema not available for {sanitize_for_logging(model_id)}, skipping")
            result.skipped += 1
            continue
        except CatalogSyncError as e:
            logger.error(f"  ❌ Failed to fetch schema for {sanitize_for_logging(model_id)}: {e}")
            result.failed += 1
            continue

        input_schema, parameters = parse_openapi_parameters(openapi)
        if input_schema is None or not parameters:
            logger.info(f"  ℹ️  No parameters found for {sanitize_for_logging(model_id)}, skipping")
            result.skipped += 1
            continue

        try:
            store.replace_model_parameters(
                model_id,
                [sanitize_value(parameter.to_record(model_id)) for parameter in parameters],
            )
        except CatalogSyncError as e:
            logger.error(f"  ❌ Failed to update parameters for {sanitize_for_logging(model_id)}: {e}")
            result.failed += 1
            continue

        result.updated += 1
        if position < len(models):
            time.sleep(delay)

    logger.info(
        f"✅ Parameter refresh complete | updated={result.updated} | skipped={result.skipped} | "
        f"failed={result.failed} | total={result.total}"
    )
    return result


def sync_fal_models(
    api_key: str | None = None,
    store: CatalogStore | None = None,
    cancel_event: threading.Event | None = None,
) -> SyncResult:
    """Run one sync pass with a client built from configuration"""
    with FalCatalogClient(api_key) as client:
        return FalCatalogSync(client, store or CatalogStore()).run(cancel_event=cancel_event)


def estimate_generation_cost(model_id: str, call_quantity: int = 1, api_key: str | None = None) -> float:
    """Estimated USD cost per call of a model; 0.0 when unavailable"""
    try:
        with FalCatalogClient(api_key) as client:
            return client.estimate_cost(model_id, call_quantity)
    except ValueError as e:
        logger.warning(f"Cannot estimate cost: {e}")
        return 0.0


def refresh_fal_parameters(
    api_key: str | None = None, store: CatalogStore | None = None
) -> ParameterRefreshResult:
    """Refresh every persisted model's parameters with a client built from configuration"""
    with FalCatalogClient(api_key) as client:
        return refresh_model_parameters(client, store or CatalogStore())
