"""Tests for the openFDA and RxTerms HTTP clients.

These tests use httpx's MockTransport to simulate the remote APIs, so no
network access is needed.
"""

from collections.abc import Awaitable, Callable

import httpx
import pytest

from medcheck.providers import DetailProviderError
from medcheck.providers.openfda import NOT_LABELED, OpenFDAClient, label_to_detail
from medcheck.providers.rxterms import RxTermsClient, parse_search_response

# --- Test helpers ---

Handler = Callable[[httpx.Request], Awaitable[httpx.Response]]


def _label(**overrides: object) -> dict[str, object]:
    """Build a fake openFDA label result."""
    label: dict[str, object] = {
        "id": "label-1",
        "openfda": {
            "generic_name": ["WARFARIN SODIUM"],
            "brand_name": ["COUMADIN"],
            "pharm_class_epc": ["Vitamin K Antagonist [EPC]"],
        },
        "indications_and_usage": ["Prophylaxis and treatment of venous thrombosis."],
        "mechanism_of_action": ["Inhibits vitamin K dependent clotting factors."],
        "dosage_and_administration": ["Individualize dosing based on INR."],
        "warnings": ["Can cause major or fatal bleeding."],
        "adverse_reactions": ["Bleeding. Skin necrosis. Purple toe syndrome."],
        "contraindications": ["Pregnancy. Hemorrhagic tendencies."],
    }
    label.update(overrides)
    return label


def _openfda_client(handler: Handler, api_key: str = "") -> OpenFDAClient:
    client = OpenFDAClient(base_url="https://fda.test/drug", api_key=api_key)
    client._http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return client


def _rxterms_client(handler: Handler) -> RxTermsClient:
    client = RxTermsClient(base_url="https://rxterms.test/api")
    client._http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return client


# --- openFDA ---


class TestLabelMapping:
    """Tests for mapping an openFDA label onto a DrugDetail."""

    def test_sections_map_to_fields(self) -> None:
        detail = label_to_detail("warfarin", _label())

        assert detail.name == "warfarin"
        assert detail.generic_name == "Warfarin Sodium"
        assert detail.category == "Vitamin K Antagonist [EPC]"
        assert detail.indication.startswith("Prophylaxis")
        assert detail.monitoring == "Can cause major or fatal bleeding."
        assert detail.side_effects == (
            "Bleeding",
            "Skin necrosis",
            "Purple toe syndrome",
        )
        assert detail.contraindications == ("Pregnancy", "Hemorrhagic tendencies")

    def test_distinct_generic_name_is_serialized(self) -> None:
        detail = label_to_detail("warfarin", _label())

        assert detail.has_distinct_generic is True
        assert detail.model_dump()["has_distinct_generic"] is True

    def test_missing_sections_are_marked(self) -> None:
        detail = label_to_detail("mystery", {"openfda": {}})

        assert detail.category == "Uncategorized"
        assert detail.generic_name is None
        assert detail.dosing == NOT_LABELED
        assert detail.side_effects == ()

    def test_long_sections_are_truncated(self) -> None:
        detail = label_to_detail("x", _label(indications_and_usage=["word " * 500]))
        assert len(detail.indication) <= 600
        assert detail.indication.endswith("...")


class TestOpenFDAClient:
    """Tests for label lookups over HTTP."""

    @pytest.mark.asyncio
    async def test_get_drug_details_success(self) -> None:
        seen: list[httpx.Request] = []

        async def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"results": [_label()]})

        client = _openfda_client(handler)
        detail = await client.get_drug_details("warfarin")

        assert detail.generic_name == "Warfarin Sodium"
        assert seen[0].url.path == "/drug/label.json"
        assert 'openfda.generic_name:"warfarin"' in seen[0].url.params["search"]
        assert seen[0].url.params["limit"] == "1"
        assert "api_key" not in seen[0].url.params

        await client.close()

    @pytest.mark.asyncio
    async def test_api_key_is_sent_when_configured(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["api_key"] == "secret"
            return httpx.Response(200, json={"results": [_label()]})

        client = _openfda_client(handler, api_key="secret")
        await client.get_drug_details("warfarin")
        await client.close()

    @pytest.mark.asyncio
    async def test_no_match_raises(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"error": {"code": "NOT_FOUND"}})

        client = _openfda_client(handler)
        with pytest.raises(DetailProviderError, match="No openFDA label"):
            await client.get_drug_details("notadrug")
        await client.close()

    @pytest.mark.asyncio
    async def test_server_error_raises(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="Internal Server Error")

        client = _openfda_client(handler)
        with pytest.raises(DetailProviderError, match="500"):
            await client.get_drug_details("warfarin")
        await client.close()

    @pytest.mark.asyncio
    async def test_empty_results_raise(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"results": []})

        client = _openfda_client(handler)
        with pytest.raises(DetailProviderError, match="Unexpected"):
            await client.get_drug_details("warfarin")
        await client.close()

    @pytest.mark.asyncio
    async def test_transport_error_raises(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused")

        client = _openfda_client(handler)
        with pytest.raises(DetailProviderError, match="failed"):
            await client.get_drug_details("warfarin")
        await client.close()


# --- RxTerms ---


class TestRxTermsClient:
    """Tests for search-as-you-type suggestions."""

    def test_parse_prefers_display_strings(self) -> None:
        payload = [
            2,
            ["WARFARIN", "WARFARIN SODIUM"],
            None,
            [["Warfarin (Oral Pill)"], ["Warfarin Sodium (Oral Pill)"]],
        ]
        assert parse_search_response(payload) == [
            "Warfarin (Oral Pill)",
            "Warfarin Sodium (Oral Pill)",
        ]

    def test_parse_falls_back_to_names(self) -> None:
        assert parse_search_response([1, ["WARFARIN"]]) == ["WARFARIN"]
        assert parse_search_response({"unexpected": True}) == []

    @pytest.mark.asyncio
    async def test_suggest_success(self) -> None:
        seen: list[httpx.Request] = []

        async def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200, json=[3, ["A", "B", "C"], None, [["A"], ["B"], ["C"]]]
            )

        client = _rxterms_client(handler)
        suggestions = await client.suggest("war", limit=2)

        assert suggestions == ["A", "B"]
        assert seen[0].url.path == "/api/search"
        assert seen[0].url.params["terms"] == "war"
        assert seen[0].url.params["maxList"] == "2"
        await client.close()

    @pytest.mark.asyncio
    async def test_short_prefix_makes_no_request(self) -> None:
        calls: list[httpx.Request] = []

        async def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json=[0, []])

        client = _rxterms_client(handler)
        assert await client.suggest("w") == []
        assert calls == []
        await client.close()

    @pytest.mark.asyncio
    async def test_failure_returns_no_suggestions(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503)

        client = _rxterms_client(handler)
        assert await client.suggest("warfarin") == []
        await client.close()
