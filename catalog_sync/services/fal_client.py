"""
Fal.ai model registry client

Wraps every network call the catalog sync makes to fal.ai:
- cursor-paginated model listing (optionally with embedded OpenAPI schemas)
- batched pricing lookup with rate-limit backoff
- per-endpoint OpenAPI schema fetch
- cost estimation
"""

import logging
import time
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from catalog_sync.config import Config
from catalog_sync.models import PricingQuote
from catalog_sync.services.prometheus_metrics import (
    fal_pricing_rate_limit_retries,
    record_api_request,
)
from catalog_sync.utils.exceptions import RateLimited, SchemaUnavailable, UpstreamError
from catalog_sync.utils.retry import with_backoff
from catalog_sync.utils.sanitize import sanitize_for_logging, sanitize_value

logger = logging.getLogger(__name__)

MODELS_PATH = "/v1/models"
PRICING_PATH = "/v1/models/pricing"
ESTIMATE_PATH = "/v1/models/pricing/estimate"
OPENAPI_EXPAND = "openapi-3.0"
ESTIMATE_TYPE = "historical_api_price"


class FalCatalogClient:
    """Authenticated client for the fal.ai model registry.

    One instance owns one httpx connection pool; construct it per sync pass
    and close it (or use it as a context manager) when done.
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        base_url: str | None = None,
        schema_url: str | None = None,
        timeout: float | None = None,
        page_size: int | None = None,
        max_pages: int | None = None,
        pricing_batch_size: int | None = None,
        pricing_batch_delay: float | None = None,
        max_retries: int | None = None,
        backoff_initial: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.api_key = api_key or Config.FAL_API_KEY
        if not self.api_key:
            raise ValueError(
                "Fal.ai API key not configured. Please set FAL_API_KEY environment variable"
            )

        self.base_url = (base_url or Config.FAL_API_BASE).rstrip("/")
        self.schema_url = schema_url or Config.FAL_SCHEMA_URL
        self.page_size = page_size or Config.FAL_MODELS_PAGE_SIZE
        self.max_pages = max_pages or Config.FAL_MAX_MODEL_PAGES
        self.pricing_batch_size = min(pricing_batch_size or Config.FAL_PRICING_BATCH_SIZE, 50)
        self.pricing_batch_delay = (
            Config.FAL_PRICING_BATCH_DELAY if pricing_batch_delay is None else pricing_batch_delay
        )
        self.max_retries = Config.FAL_PRICING_MAX_RETRIES if max_retries is None else max_retries
        self.backoff_initial = (
            Config.FAL_PRICING_BACKOFF_INITIAL if backoff_initial is None else backoff_initial
        )

        self._client = httpx.Client(
            timeout=timeout or Config.FAL_REQUEST_TIMEOUT,
            headers={
                "Authorization": f"Key {self.api_key}",
                "Content-Type": "application/json",
            },
            transport=transport,
        )

    def __enter__(self) -> "FalCatalogClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(self, method: str, url: str, endpoint: str, **kwargs) -> Any:
        """Send a request and return the decoded JSON body.

        Raises:
            RateLimited: On HTTP 429
            UpstreamError: On any other non-2xx status, transport failure or invalid JSON
        """
        logger.debug(f"📡 Fal.ai API Request: {method} {url}")
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            record_api_request(endpoint, "error")
            raise UpstreamError(f"Fal.ai request error for {url}: {e}") from e

        record_api_request(endpoint, response.status_code)

        if response.status_code == 429:
            raise RateLimited(f"Fal.ai API Error (429): {self._error_detail(response)}")
        if response.is_error:
            raise UpstreamError(
                f"Fal.ai API Error ({response.status_code}): {self._error_detail(response)}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(
                f"Fal.ai API returned invalid JSON for {url}",
                status_code=response.status_code,
            ) from e

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text[:200] or response.reason_phrase
        if isinstance(data, dict):
            detail = data.get("message") or data.get("detail") or data.get("code")
            if detail:
                return str(detail)
        return response.text[:200]

    # ------------------------------------------------------------------
    # Models
    # ------------------------------------------------------------------

    def fetch_models(self, include_schemas: bool = True) -> list[dict[str, Any]]:
        """Fetch every model in the registry.

        When ``include_schemas`` is set each model carries its OpenAPI document
        under ``openapi``. If the API rejects the expansion (HTTP 400) the whole
        listing is restarted without it; cursors issued for the expanded
        listing are not reused.

        Raises:
            UpstreamError: If any page request fails
        """
        logger.info(f"🔍 Fetching all Fal.ai models{' with schemas' if include_schemas else ''}...")
        try:
            return self._fetch_all_model_pages(include_schemas)
        except UpstreamError as e:
            if include_schemas and e.status_code == 400:
                logger.warning("⚠️ OpenAPI expand not supported, retrying without schemas...")
                return self._fetch_all_model_pages(include_schemas=False)
            raise

    def _fetch_all_model_pages(self, include_schemas: bool) -> list[dict[str, Any]]:
        models: list[dict[str, Any]] = []
        cursor: str | None = None
        page = 0

        while True:
            if page >= self.max_pages:
                logger.warning(
                    f"Reached maximum page limit ({self.max_pages}) for Fal.ai models API"
                )
                break
            page += 1

            data = self._get_models_page(include_schemas, cursor, self.page_size)
            page_models = data.get("models")
            if isinstance(page_models, list):
                models.extend(sanitize_value(page_models))
                logger.debug(
                    f"  📄 Page {page}: Fetched {len(page_models)} models (total: {len(models)})"
                )

            cursor = data.get("next_cursor") if data.get("has_more") else None
            if not cursor:
                break

        logger.info(f"✅ Fetched {len(models)} models across {page} pages")
        return models

    def _get_models_page(
        self, include_schemas: bool, cursor: str | None, limit: int
    ) -> dict[str, Any]:
        params: dict[str, Any] = {"limit": limit}
        if include_schemas:
            params["expand"] = OPENAPI_EXPAND
        if cursor:
            params["cursor"] = cursor

        data = self._request("GET", f"{self.base_url}{MODELS_PATH}", "models", params=params)
        if not isinstance(data, dict):
            raise UpstreamError("Unexpected Fal.ai models response shape")
        return data

    def test_connection(self) -> bool:
        """Return True if a models page can be fetched"""
        logger.info("🔌 Testing Fal.ai API connection...")
        try:
            self._get_models_page(include_schemas=False, cursor=None, limit=1)
        except UpstreamError as e:
            logger.error(f"❌ Fal.ai API connection failed: {e}")
            return False
        logger.info("✅ Fal.ai API connection successful")
        return True

    # ------------------------------------------------------------------
    # Pricing
    # ------------------------------------------------------------------

    def fetch_pricing(self, endpoint_ids: list[str]) -> list[PricingQuote]:
        """Fetch pricing quotes in batches of at most 50 endpoint ids.

        Rate-limited batches are retried with exponential backoff; a batch
        answered with 404 contributes no quotes. Batches are separated by a
        fixed pause to stay under the API's rate ceiling. The result may cover
        only part of ``endpoint_ids``.

        Raises:
            RateLimited: If a batch is still rate limited after all retries
            UpstreamError: On any other batch failure
        """
        size = self.pricing_batch_size
        batches = [endpoint_ids[i : i + size] for i in range(0, len(endpoint_ids), size)]
        logger.info(f"💰 Fetching pricing for {len(endpoint_ids)} models in {len(batches)} batches...")

        fetch_batch = with_backoff(
            max_retries=self.max_retries,
            initial_delay=self.backoff_initial,
            exponential_base=2.0,
            exceptions=(RateLimited,),
            on_retry=lambda *_: fal_pricing_rate_limit_retries.inc(),
        )(self._fetch_pricing_batch)

        quotes: list[PricingQuote] = []
        for number, batch in enumerate(batches, start=1):
            try:
                batch_quotes = fetch_batch(batch)
            except UpstreamError as e:
                if e.status_code != 404:
                    raise
                logger.warning(
                    f"  ⚠️ Batch {number}/{len(batches)}: Some endpoints not found, skipping batch"
                )
                batch_quotes = []

            quotes.extend(batch_quotes)
            logger.debug(f"  💵 Batch {number}/{len(batches)}: Fetched {len(batch_quotes)} prices")

            if number < len(batches):
                time.sleep(self.pricing_batch_delay)

        logger.info(f"✅ Fetched pricing for {len(quotes)} models")
        return quotes

    def _fetch_pricing_batch(self, batch: list[str]) -> list[PricingQuote]:
        data = self._request(
            "GET",
            f"{self.base_url}{PRICING_PATH}",
            "pricing",
            params=[("endpoint_id", endpoint_id) for endpoint_id in batch],
        )
        prices = data.get("prices") if isinstance(data, dict) else None
        if not isinstance(prices, list):
            logger.warning("Fal.ai pricing response has no 'prices' list, treating batch as empty")
            return []

        quotes = []
        for item in sanitize_value(prices):
            try:
                quotes.append(PricingQuote.model_validate(item))
            except PydanticValidationError as e:
                logger.warning(
                    f"Skipping malformed pricing entry "
                    f"{sanitize_for_logging(item.get('endpoint_id') if isinstance(item, dict) else item)}: "
                    f"{e.error_count()} validation errors"
                )
        return quotes

    def estimate_cost(self, model_id: str, call_quantity: int = 1) -> float:
        """Estimate the per-call cost of a model.

        Advisory only: any failure is logged and yields 0.0.
        """
        try:
            estimates = self.estimate_batch({model_id: call_quantity})
        except Exception as e:
            logger.warning(f"❌ Failed to estimate cost for {sanitize_for_logging(model_id)}: {e}")
            return 0.0

        cost = estimates.get(model_id)
        if cost is None:
            logger.warning(f"⚠️ No estimate found for {sanitize_for_logging(model_id)}")
            return 0.0
        return cost

    def estimate_batch(self, quantities: dict[str, int]) -> dict[str, float]:
        """Estimate per-call cost for several models in one request.

        Args:
            quantities: Mapping of endpoint id to expected call quantity

        Returns:
            Mapping of endpoint id to cost per call; models without an estimate are omitted

        Raises:
            UpstreamError: If the request fails
        """
        payload = {
            "estimate_type": ESTIMATE_TYPE,
            "endpoints": {
                model_id: {"call_quantity": quantity} for model_id, quantity in quantities.items()
            },
        }
        data = self._request("POST", f"{self.base_url}{ESTIMATE_PATH}", "estimate", json=payload)
        estimates = data.get("estimates") if isinstance(data, dict) else None
        if not isinstance(estimates, dict):
            raise UpstreamError("Unexpected Fal.ai estimate response shape")

        costs: dict[str, float] = {}
        for model_id, estimate in estimates.items():
            if not isinstance(estimate, dict):
                continue
            try:
                costs[model_id] = float(estimate["cost_per_call"])
            except (KeyError, TypeError, ValueError):
                logger.debug(f"Estimate for {sanitize_for_logging(model_id)} has no cost_per_call")
        return costs

    # ------------------------------------------------------------------
    # Schemas
    # ------------------------------------------------------------------

    def fetch_model_schema(self, endpoint_id: str) -> dict[str, Any]:
        """Fetch the OpenAPI document of a single endpoint, sanitized.

        Raises:
            SchemaUnavailable: If the endpoint has no published schema
            RateLimited: On HTTP 429
            UpstreamError: On transport failure
        """
        logger.debug(f"📋 Fetching schema for {sanitize_for_logging(endpoint_id)}...")
        try:
            schema = self._request(
                "GET", self.schema_url, "openapi", params={"endpoint_id": endpoint_id}
            )
        except RateLimited:
            raise
        except UpstreamError as e:
            if e.status_code is None:
                raise
            raise SchemaUnavailable(
                f"Schema not available for {endpoint_id}: {e}", status_code=e.status_code
            ) from e

        if not isinstance(schema, dict):
            raise SchemaUnavailable(f"Schema for {endpoint_id} is not a JSON object")
        return sanitize_value(schema)
