"""Tests for the cache administration endpoints."""

from domain.entities import CurrenciesPayload, CurrencyInfo, RatesPayload
from domain.enums import CacheName, DatasetType

PREFIX = "/api/exchange"


def _seed(store):
    store.set(CacheName.RATES, store.key(DatasetType.RATES, "2025-06-17"), RatesPayload(()))
    store.set(
        CacheName.METADATA,
        store.key(DatasetType.CURRENCIES, "all"),
        CurrenciesPayload((CurrencyInfo("USD", "Dolar"),)),
    )


class TestCacheStats:
    def test_stats_should_list_every_cache(self, client, store):
        # Arrange
        _seed(store)

        # Act
        resp = client.get(f"{PREFIX}/cache/stats")

        # Assert
        assert resp.status_code == 200
        stats = resp.json()
        assert set(stats) == {"rates", "historical", "metadata"}
        assert stats["rates"]["key_count"] == 1
        assert stats["rates"]["capacity"] == 1000
        assert stats["historical"]["default_ttl_seconds"] == 604800

    def test_stats_should_count_hits_and_misses(self, client, store):
        _seed(store)
        store.get(CacheName.METADATA, store.key(DatasetType.CURRENCIES, "all"))
        store.get(CacheName.METADATA, store.key(DatasetType.CURRENCIES, "none"))

        stats = client.get(f"{PREFIX}/cache/stats").json()

        assert stats["metadata"]["hit_count"] == 1
        assert stats["metadata"]["miss_count"] == 1
        assert stats["metadata"]["key_count"] == 1


class TestCacheClear:
    def test_clear_should_flush_every_cache(self, client, store):
        _seed(store)

        resp = client.delete(f"{PREFIX}/cache/clear")

        assert resp.status_code == 200
        assert resp.json()["removed"] == {"rates": 1, "historical": 0, "metadata": 1}
        assert all(s["key_count"] == 0 for s in store.all_stats().values())

    def test_clear_should_be_idempotent(self, client):
        resp1 = client.delete(f"{PREFIX}/cache/clear")
        resp2 = client.delete(f"{PREFIX}/cache/clear")

        assert resp1.status_code == 200
        assert resp1.json() == resp2.json()

    def test_clear_one_should_leave_other_caches(self, client, store):
        _seed(store)

        resp = client.delete(f"{PREFIX}/cache/rates")

        assert resp.status_code == 200
        assert resp.json()["removed"] == {"rates": 1}
        assert store.stats(CacheName.METADATA)["key_count"] == 1

    def test_clear_unknown_cache_should_return_404(self, client):
        resp = client.delete(f"{PREFIX}/cache/bogus")

        assert resp.status_code == 404
        assert resp.json()["detail"]["error_code"] == "UNKNOWN_CACHE_NAME"
