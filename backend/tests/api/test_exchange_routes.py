"""Tests for the exchange-rate endpoints (currencies, rates, history, bulk history)."""

from datetime import date, timedelta

from tests.conftest import TODAY, make_points, make_rates

PREFIX = "/api/exchange"
FRIDAY = date(2025, 6, 13)


class TestCurrencies:
    def test_should_list_currencies(self, client):
        resp = client.get(f"{PREFIX}/currencies")

        assert resp.status_code == 200
        assert resp.json() == [
            {"code": "USD", "name": "Dolar E.E.U.U."},
            {"code": "EUR", "name": "Euro"},
        ]

    def test_upstream_failure_should_return_502(self, client, upstream):
        upstream.fail_currencies = True

        resp = client.get(f"{PREFIX}/currencies")

        assert resp.status_code == 502
        assert resp.json()["detail"]["error_code"] == "UPSTREAM_UNAVAILABLE"


class TestRates:
    def test_latest_should_report_served_date(self, client, upstream, time_source):
        # Arrange
        time_source.current = date(2025, 6, 16)
        upstream.rates_by_date[FRIDAY] = make_rates(FRIDAY)

        # Act
        resp = client.get(f"{PREFIX}/rates/latest")

        # Assert
        assert resp.status_code == 200
        data = resp.json()
        assert data["requested_date"] == "2025-06-16"
        assert data["date"] == "2025-06-13"
        assert data["from_previous_date"] is True
        assert [r["code"] for r in data["rates"]] == ["USD", "EUR"]

    def test_latest_with_no_data_should_return_empty_rates(self, client):
        resp = client.get(f"{PREFIX}/rates/latest")

        assert resp.status_code == 200
        data = resp.json()
        assert data["rates"] == []
        assert data["date"] is None
        assert data["source"] == "none"

    def test_explicit_date(self, client, upstream):
        upstream.rates_by_date[FRIDAY] = make_rates(FRIDAY)

        resp = client.get(f"{PREFIX}/rates/2025-06-13")

        assert resp.status_code == 200
        assert resp.json()["date"] == "2025-06-13"

    def test_malformed_date_should_return_400(self, client):
        resp = client.get(f"{PREFIX}/rates/2025-02-30")

        assert resp.status_code == 400
        assert resp.json()["detail"]["error_code"] == "INVALID_DATE"

    def test_future_date_should_return_400(self, client):
        future = (TODAY + timedelta(days=3)).isoformat()

        resp = client.get(f"{PREFIX}/rates/{future}")

        assert resp.status_code == 400
        assert resp.json()["detail"]["error_code"] == "FUTURE_DATE_REQUESTED"


class TestCurrencyHistory:
    def test_should_return_points(self, client, upstream):
        upstream.history["USD"] = make_points(date(2025, 6, 12), date(2025, 6, 13))

        resp = client.get(f"{PREFIX}/rates/usd/2025-06-10/2025-06-17")

        assert resp.status_code == 200
        data = resp.json()
        assert data["code"] == "USD"
        assert [p["date"] for p in data["points"]] == ["2025-06-12", "2025-06-13"]

    def test_inverted_range_should_return_400(self, client, upstream):
        resp = client.get(f"{PREFIX}/rates/USD/2025-06-17/2025-06-10")

        assert resp.status_code == 400
        assert resp.json()["detail"]["error_code"] == "INVALID_DATE_RANGE"
        assert upstream.history_calls == []

    def test_upstream_failure_should_return_502(self, client, upstream):
        upstream.failing_codes.add("USD")

        resp = client.get(f"{PREFIX}/rates/USD/2025-06-10/2025-06-17")

        assert resp.status_code == 502


class TestBulkHistory:
    def test_should_return_requested_and_actual_range(self, client, upstream):
        # Arrange
        upstream.history["USD"] = make_points(date(2025, 6, 5))
        upstream.failing_codes.add("EUR")

        # Act
        resp = client.get(f"{PREFIX}/history/bulk/2025-06-01/2025-06-13")

        # Assert
        assert resp.status_code == 200
        data = resp.json()
        assert data["requested_range"] == {"start": "2025-06-01", "end": "2025-06-13"}
        assert data["actual_range"] == data["requested_range"]
        assert list(data["series"]) == ["USD"]

    def test_no_data_should_return_404(self, client):
        resp = client.get(f"{PREFIX}/history/bulk/2025-06-01/2025-06-13")

        assert resp.status_code == 404
        assert resp.json()["detail"]["error_code"] == "NO_DATA_FOR_RANGE"

    def test_future_end_should_return_400(self, client):
        resp = client.get(f"{PREFIX}/history/bulk/2025-06-01/2030-01-01")

        assert resp.status_code == 400
        assert resp.json()["detail"]["error_code"] == "FUTURE_DATE_REQUESTED"
