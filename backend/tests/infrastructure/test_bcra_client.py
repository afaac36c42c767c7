"""
Tests for the BCRA client: response parsing, precious-metal quotes,
pagination, 404 handling, malformed payloads and tenacity retries on
transient failures.
"""

from datetime import date

import pytest
from curl_cffi.curl import CurlError

from infrastructure.bcra_client import (
    BCRAClient,
    UpstreamUnavailableError,
    parse_currencies_response,
    parse_history_page,
    parse_rates_response,
)
from tests.conftest import FakeHTTPResponse, ReplaySession


def _client(session: ReplaySession, attempts: int = 3) -> BCRAClient:
    return BCRAClient(
        "https://bcra.test/v1.0",
        session=session,
        retry_attempts=attempts,
        retry_wait_min=0,
        retry_wait_max=0,
    )


RATES_PAYLOAD = {
    "status": 200,
    "results": {
        "fecha": "2025-06-17",
        "detalle": [
            {
                "codigoMoneda": "USD",
                "descripcion": "DOLAR E.E.U.U.",
                "tipoPase": 1.0,
                "tipoCotizacion": 1180.5,
            },
            {
                "codigoMoneda": "XAU",
                "descripcion": "ORO",
                "tipoPase": 3390.0,
                "tipoCotizacion": 0,
            },
        ],
    },
}


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


class TestParsing:
    def test_rates_should_map_each_detail_to_a_record(self):
        records = parse_rates_response(RATES_PAYLOAD)

        assert [r.code for r in records] == ["USD", "XAU"]
        assert records[0].buy == records[0].sell == 1180.5
        assert all(r.date == date(2025, 6, 17) for r in records)

    def test_precious_metal_should_fall_back_to_pase_when_cotizacion_is_zero(self):
        records = parse_rates_response(RATES_PAYLOAD)

        assert records[1].buy == 3390.0

    def test_rates_without_details_should_be_empty(self):
        empty_day = {"results": {"fecha": "2025-06-15", "detalle": []}}

        assert parse_rates_response(empty_day) == []
        assert parse_rates_response(None) == []

    def test_history_page_should_tolerate_missing_detail(self):
        payload = {
            "results": [
                {
                    "fecha": "2025-06-16",
                    "detalle": [{"codigoMoneda": "USD", "tipoCotizacion": 1175.0}],
                },
                {"fecha": "2025-06-17", "detalle": []},
            ]
        }

        points = parse_history_page(payload)

        assert points[0].buy == 1175.0
        assert points[1].buy is None

    def test_currencies_should_skip_entries_without_code(self):
        payload = {
            "results": [{"codigo": "USD", "denominacion": "DOLAR"}, {"denominacion": "?"}]
        }

        assert [c.code for c in parse_currencies_response(payload)] == ["USD"]


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class TestBCRAClient:
    @pytest.mark.asyncio
    async def test_get_rates_should_query_by_date(self):
        session = ReplaySession(FakeHTTPResponse(200, RATES_PAYLOAD))

        records = await _client(session).get_rates_for_date(date(2025, 6, 17))

        assert len(records) == 2
        url, params = session.calls[0]
        assert url == "https://bcra.test/v1.0/Cotizaciones"
        assert params == {"fecha": "2025-06-17"}

    @pytest.mark.asyncio
    async def test_404_should_mean_no_quotes(self):
        session = ReplaySession(FakeHTTPResponse(404))

        assert await _client(session).get_rates_for_date(date(2025, 6, 15)) == []

    @pytest.mark.asyncio
    async def test_transient_failure_should_be_retried(self):
        # Arrange
        session = ReplaySession(
            CurlError("connection reset"),
            FakeHTTPResponse(503),
            FakeHTTPResponse(200, RATES_PAYLOAD),
        )

        # Act
        records = await _client(session).get_rates_for_date(date(2025, 6, 17))

        # Assert
        assert len(records) == 2
        assert len(session.calls) == 3

    @pytest.mark.asyncio
    async def test_exhausted_retries_should_raise_upstream_unavailable(self):
        session = ReplaySession(*(CurlError("timeout") for _ in range(3)))

        with pytest.raises(UpstreamUnavailableError):
            await _client(session).get_rates_for_date(date(2025, 6, 17))
        assert len(session.calls) == 3

    @pytest.mark.asyncio
    async def test_client_error_should_not_be_retried(self):
        session = ReplaySession(FakeHTTPResponse(400))

        with pytest.raises(UpstreamUnavailableError):
            await _client(session).get_currencies()
        assert len(session.calls) == 1

    @pytest.mark.asyncio
    async def test_invalid_json_should_raise_upstream_unavailable(self):
        session = ReplaySession(FakeHTTPResponse(200, ValueError("not json")))

        with pytest.raises(UpstreamUnavailableError):
            await _client(session).get_currencies()

    @pytest.mark.asyncio
    async def test_history_should_walk_pages_and_sort_by_date(self, monkeypatch):
        # Arrange
        monkeypatch.setattr("infrastructure.bcra_client.BCRA_HISTORY_PAGE_LIMIT", 2)
        page_1 = {
            "results": [
                {"fecha": "2025-06-17", "detalle": [{"tipoCotizacion": 3.0}]},
                {"fecha": "2025-06-16", "detalle": [{"tipoCotizacion": 2.0}]},
            ]
        }
        page_2 = {"results": [{"fecha": "2025-06-13", "detalle": [{"tipoCotizacion": 1.0}]}]}
        session = ReplaySession(FakeHTTPResponse(200, page_1), FakeHTTPResponse(200, page_2))

        # Act
        points = await _client(session).get_rate_history(
            "USD", date(2025, 6, 10), date(2025, 6, 17)
        )

        # Assert
        assert [p.date.day for p in points] == [13, 16, 17]
        assert [params["offset"] for _, params in session.calls] == [0, 2]
        assert session.calls[0][0].endswith("/Cotizaciones/USD")

    @pytest.mark.asyncio
    async def test_malformed_rates_date_should_raise_upstream_unavailable(self):
        bad_day = {"results": {"fecha": "n/a", "detalle": [{"codigoMoneda": "USD"}]}}
        session = ReplaySession(FakeHTTPResponse(200, bad_day))

        with pytest.raises(UpstreamUnavailableError, match="Malformed"):
            await _client(session).get_rates_for_date(date(2025, 6, 18))
        assert len(session.calls) == 1

    @pytest.mark.asyncio
    async def test_history_row_without_date_should_raise_upstream_unavailable(self):
        page = {"results": [{"detalle": [{"tipoCotizacion": 1.0}]}]}
        session = ReplaySession(FakeHTTPResponse(200, page))

        with pytest.raises(UpstreamUnavailableError):
            await _client(session).get_rate_history(
                "USD", date(2025, 6, 10), date(2025, 6, 17)
            )

    @pytest.mark.asyncio
    async def test_non_numeric_quote_should_raise_upstream_unavailable(self):
        page = {"results": [{"fecha": "2025-06-17", "detalle": [{"tipoCotizacion": "x"}]}]}
        session = ReplaySession(FakeHTTPResponse(200, page))

        with pytest.raises(UpstreamUnavailableError):
            await _client(session).get_rate_history(
                "USD", date(2025, 6, 10), date(2025, 6, 17)
            )

    @pytest.mark.asyncio
    async def test_currency_list_of_wrong_shape_should_raise_upstream_unavailable(self):
        session = ReplaySession(FakeHTTPResponse(200, {"results": ["USD", "EUR"]}))

        with pytest.raises(UpstreamUnavailableError):
            await _client(session).get_currencies()
