"""
Tests for the fal.ai registry client

Covers:
- Auth header and missing key
- Cursor pagination, page cap and the 400 restart without schemas
- Pricing batches, 404 isolation, rate-limit backoff and inter-batch pauses
- Schema fetch error mapping
- Cost estimation
"""

import json

import httpx
import pytest

from catalog_sync.config import Config
from catalog_sync.services.fal_client import FalCatalogClient
from catalog_sync.utils.exceptions import RateLimited, SchemaUnavailable, UpstreamError


def make_client(handler, **kwargs):
    kwargs.setdefault("pricing_batch_delay", 5.0)
    return FalCatalogClient(
        "test-key",
        base_url="https://api.fal.test",
        schema_url="https://fal.test/api/openapi/queue/openapi.json",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def _model(endpoint_id):
    return {"endpoint_id": endpoint_id, "metadata": {"display_name": endpoint_id}}


class TestClientSetup:
    def test_sends_key_authorization_header(self):
        seen = []

        def handler(request):
            seen.append(request.headers["Authorization"])
            return httpx.Response(200, json={"models": [], "has_more": False})

        with make_client(handler) as client:
            client.fetch_models()

        assert seen == ["Key test-key"]

    def test_missing_api_key_raises(self, monkeypatch):
        monkeypatch.setattr(Config, "FAL_API_KEY", None)

        with pytest.raises(ValueError, match="API key not configured"):
            FalCatalogClient()

    def test_batch_size_capped_at_50(self):
        client = make_client(lambda r: httpx.Response(200, json={}), pricing_batch_size=500)
        assert client.pricing_batch_size == 50
        client.close()


class TestFetchModels:
    def test_concatenates_pages_in_order(self):
        pages = {
            None: {"models": [_model("a"), _model("b")], "has_more": True, "next_cursor": "c1"},
            "c1": {"models": [_model("c")], "has_more": True, "next_cursor": "c2"},
            "c2": {"models": [_model("d")], "has_more": False, "next_cursor": None},
        }
        seen = []

        def handler(request):
            assert request.url.path == "/v1/models"
            cursor = request.url.params.get("cursor")
            seen.append((cursor, request.url.params.get("expand"), request.url.params.get("limit")))
            return httpx.Response(200, json=pages[cursor])

        with make_client(handler) as client:
            models = client.fetch_models()

        assert [m["endpoint_id"] for m in models] == ["a", "b", "c", "d"]
        assert seen == [
            (None, "openapi-3.0", "100"),
            ("c1", "openapi-3.0", "100"),
            ("c2", "openapi-3.0", "100"),
        ]

    def test_stops_when_has_more_is_false_even_with_cursor(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(
                200, json={"models": [_model("a")], "has_more": False, "next_cursor": "ignored"}
            )

        with make_client(handler) as client:
            assert len(client.fetch_models()) == 1
        assert len(calls) == 1

    def test_page_cap(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(
                200,
                json={"models": [_model(f"m{len(calls)}")], "has_more": True, "next_cursor": "more"},
            )

        with make_client(handler, max_pages=2) as client:
            models = client.fetch_models()

        assert len(calls) == 2
        assert len(models) == 2

    def test_restarts_without_schemas_on_400(self):
        seen = []

        def handler(request):
            expand = request.url.params.get("expand")
            cursor = request.url.params.get("cursor")
            seen.append((expand, cursor))
            if expand and cursor:
                return httpx.Response(400, json={"message": "expand not supported"})
            if cursor is None:
                return httpx.Response(
                    200, json={"models": [_model("a")], "has_more": True, "next_cursor": "c1"}
                )
            return httpx.Response(200, json={"models": [_model("b")], "has_more": False})

        with make_client(handler) as client:
            models = client.fetch_models()

        assert [m["endpoint_id"] for m in models] == ["a", "b"]
        assert seen == [
            ("openapi-3.0", None),
            ("openapi-3.0", "c1"),
            (None, None),
            (None, "c1"),
        ]

    def test_other_errors_propagate(self):
        with make_client(lambda r: httpx.Response(500, text="boom")) as client:
            with pytest.raises(UpstreamError) as exc_info:
                client.fetch_models()
        assert exc_info.value.status_code == 500

    def test_sanitizes_model_strings(self):
        payload = {
            "models": [{"endpoint_id": "a", "metadata": {"description": "bad\ud83d text"}}],
            "has_more": False,
        }
        body = json.dumps(payload).encode()

        with make_client(lambda r: httpx.Response(200, content=body)) as client:
            models = client.fetch_models()

        assert models[0]["metadata"]["description"] == "bad text"


class TestConnection:
    def test_fetches_single_page(self):
        seen = []

        def handler(request):
            seen.append(dict(request.url.params))
            return httpx.Response(200, json={"models": [], "has_more": False})

        with make_client(handler) as client:
            assert client.test_connection() is True
        assert seen == [{"limit": "1"}]

    def test_returns_false_on_failure(self):
        with make_client(lambda r: httpx.Response(401, json={"detail": "bad key"})) as client:
            assert client.test_connection() is False


def _pricing_handler(calls, fail=None):
    def handler(request):
        assert request.url.path == "/v1/models/pricing"
        ids = request.url.params.get_list("endpoint_id")
        calls.append(ids)
        if fail is not None:
            response = fail(len(calls), ids)
            if response is not None:
                return response
        return httpx.Response(
            200,
            json={"prices": [{"endpoint_id": i, "unit_price": 0.01, "unit": "image"} for i in ids]},
        )

    return handler


class TestFetchPricing:
    def test_batches_of_fifty(self, _no_sleep):
        ids = [f"fal-ai/m{i}" for i in range(120)]
        calls = []

        with make_client(_pricing_handler(calls)) as client:
            quotes = client.fetch_pricing(ids)

        assert [len(batch) for batch in calls] == [50, 50, 20]
        assert [q.endpoint_id for q in quotes] == ids
        assert _no_sleep == [5.0, 5.0]

    def test_404_batch_contributes_nothing(self):
        ids = [f"fal-ai/m{i}" for i in range(120)]
        calls = []
        not_found = lambda n, _ids: httpx.Response(404, json={"detail": "nope"}) if n == 2 else None

        with make_client(_pricing_handler(calls, fail=not_found)) as client:
            quotes = client.fetch_pricing(ids)

        assert len(calls) == 3
        assert [q.endpoint_id for q in quotes] == ids[:50] + ids[100:]

    def test_rate_limited_batch_retried_with_backoff(self, _no_sleep):
        calls = []
        limited = lambda n, _ids: httpx.Response(429, json={"detail": "slow down"}) if n <= 2 else None

        with make_client(_pricing_handler(calls, fail=limited)) as client:
            quotes = client.fetch_pricing(["a", "b"])

        assert len(calls) == 3
        assert len(quotes) == 2
        assert _no_sleep == [2.0, 4.0]

    def test_fourth_rate_limit_fails(self, _no_sleep):
        calls = []
        always = lambda n, _ids: httpx.Response(429, json={"detail": "slow down"})

        with make_client(_pricing_handler(calls, fail=always)) as client:
            with pytest.raises(RateLimited):
                client.fetch_pricing(["a"])

        assert len(calls) == 4
        assert _no_sleep == [2.0, 4.0, 8.0]

    def test_other_failures_raise(self):
        calls = []
        broken = lambda n, _ids: httpx.Response(500, text="oops")

        with make_client(_pricing_handler(calls, fail=broken)) as client:
            with pytest.raises(UpstreamError):
                client.fetch_pricing(["a"])

    def test_missing_prices_list_is_empty(self):
        with make_client(lambda r: httpx.Response(200, json={"unexpected": True})) as client:
            assert client.fetch_pricing(["a"]) == []

    def test_malformed_entries_skipped(self):
        body = {"prices": [{"unit_price": 1.0}, {"endpoint_id": "b", "unit_price": -1}, {"endpoint_id": "c"}]}

        with make_client(lambda r: httpx.Response(200, json=body)) as client:
            quotes = client.fetch_pricing(["a", "b", "c"])

        assert [q.endpoint_id for q in quotes] == ["c"]
        assert quotes[0].unit_price == 0.0

    def test_no_ids_no_requests(self):
        calls = []
        with make_client(_pricing_handler(calls)) as client:
            assert client.fetch_pricing([]) == []
        assert calls == []


class TestFetchModelSchema:
    def test_returns_document(self):
        doc = {"openapi": "3.0.0", "paths": {}}
        seen = []

        def handler(request):
            seen.append(request.url.params.get("endpoint_id"))
            return httpx.Response(200, json=doc)

        with make_client(handler) as client:
            assert client.fetch_model_schema("fal-ai/flux/dev") == doc
        assert seen == ["fal-ai/flux/dev"]

    def test_http_error_is_schema_unavailable(self):
        with make_client(lambda r: httpx.Response(404, json={"detail": "missing"})) as client:
            with pytest.raises(SchemaUnavailable) as exc_info:
                client.fetch_model_schema("fal-ai/x")
        assert exc_info.value.status_code == 404

    def test_non_object_is_schema_unavailable(self):
        with make_client(lambda r: httpx.Response(200, json=["not", "a", "doc"])) as client:
            with pytest.raises(SchemaUnavailable):
                client.fetch_model_schema("fal-ai/x")

    def test_rate_limit_is_not_schema_unavailable(self):
        with make_client(lambda r: httpx.Response(429)) as client:
            with pytest.raises(RateLimited):
                client.fetch_model_schema("fal-ai/x")

    def test_transport_failure_propagates(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with make_client(handler) as client:
            with pytest.raises(UpstreamError) as exc_info:
                client.fetch_model_schema("fal-ai/x")

        assert not isinstance(exc_info.value, SchemaUnavailable)
        assert exc_info.value.status_code is None


class TestEstimateCost:
    def test_returns_cost_per_call(self):
        bodies = []

        def handler(request):
            assert request.method == "POST"
            assert request.url.path == "/v1/models/pricing/estimate"
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"estimates": {"fal-ai/x": {"cost_per_call": 0.04}}})

        with make_client(handler) as client:
            assert client.estimate_cost("fal-ai/x", 10) == pytest.approx(0.04)

        assert bodies == [
            {"estimate_type": "historical_api_price", "endpoints": {"fal-ai/x": {"call_quantity": 10}}}
        ]

    def test_failure_yields_zero(self):
        with make_client(lambda r: httpx.Response(500)) as client:
            assert client.estimate_cost("fal-ai/x") == 0.0

    def test_missing_estimate_yields_zero(self):
        with make_client(lambda r: httpx.Response(200, json={"estimates": {}})) as client:
            assert client.estimate_cost("fal-ai/x") == 0.0

    def test_batch_rejects_bad_shape(self):
        with make_client(lambda r: httpx.Response(200, json={"nope": 1})) as client:
            with pytest.raises(UpstreamError):
                client.estimate_batch({"fal-ai/x": 1})
