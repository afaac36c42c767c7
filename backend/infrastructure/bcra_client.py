"""
Infrastructure — BCRA exchange-rate API adapter (estadisticascambiarias v1.0).
Async HTTP via curl_cffi, with tenacity exponential-backoff retries for
transient network / 5xx failures. Network, HTTP and malformed-payload
failures surface as UpstreamUnavailableError; "no quotes for that day" is an
empty list.
"""

from collections.abc import Callable
from datetime import date

from curl_cffi.curl import CurlError
from curl_cffi.requests import AsyncSession
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from domain import constants
from domain.constants import (
    BCRA_HISTORY_MAX_PAGES,
    BCRA_HISTORY_PAGE_LIMIT,
    BCRA_REQUEST_TIMEOUT,
    BCRA_RETRY_ATTEMPTS,
    BCRA_RETRY_WAIT_MAX,
    BCRA_RETRY_WAIT_MIN,
    BCRA_USER_AGENT,
    CURL_CFFI_IMPERSONATE,
    PRECIOUS_METAL_CODES,
)
from domain.dates import format_iso_date, parse_iso_date
from domain.entities import CurrencyInfo, HistoryPoint, RateRecord
from logging_config import get_logger

logger = get_logger(__name__)


class UpstreamUnavailableError(Exception):
    """Network, HTTP or payload failure talking to the upstream exchange-rate API."""


class _UpstreamServerError(Exception):
    """5xx answer; retryable."""


_RETRYABLE_EXCEPTIONS = (CurlError, ConnectionError, OSError, _UpstreamServerError)

# A payload that does not match the documented shape
_PARSE_EXCEPTIONS = (ValueError, KeyError, TypeError, AttributeError)


# ---------------------------------------------------------------------------
# Response Parsing
# ---------------------------------------------------------------------------


def _quote_value(detail: dict) -> float | None:
    """
    Peso value of one quote.
    tipoCotizacion is used for every currency; gold and silver fall back to
    tipoPase when tipoCotizacion is 0.
    """
    value = detail.get("tipoCotizacion")
    if (
        detail.get("codigoMoneda") in PRECIOUS_METAL_CODES
        and not value
        and detail.get("tipoPase")
    ):
        value = detail.get("tipoPase")
    return float(value) if value is not None else None


def parse_rates_response(payload: dict | None) -> list[RateRecord]:
    """Map a /Cotizaciones answer to RateRecords."""
    if not payload:
        return []
    results = payload.get("results") or {}
    raw_date = results.get("fecha")
    details = results.get("detalle") or []
    if not raw_date or not details:
        return []
    quote_date = parse_iso_date(raw_date)
    records = []
    for detail in details:
        value = _quote_value(detail)
        records.append(
            RateRecord(
                code=detail.get("codigoMoneda", ""),
                name=detail.get("descripcion", ""),
                buy=value,
                sell=value,
                date=quote_date,
            )
        )
    return records


def parse_history_page(payload: dict | None) -> list[HistoryPoint]:
    """Map one /Cotizaciones/{code} page to HistoryPoints (empty detalle → None)."""
    if not payload:
        return []
    points = []
    for row in payload.get("results") or []:
        details = row.get("detalle") or []
        value = _quote_value(details[0]) if details else None
        points.append(
            HistoryPoint(date=parse_iso_date(row["fecha"]), buy=value, sell=value)
        )
    return points


def parse_currencies_response(payload: dict | None) -> list[CurrencyInfo]:
    if not payload:
        return []
    return [
        CurrencyInfo(code=item["codigo"], name=item.get("denominacion", ""))
        for item in payload.get("results") or []
        if item.get("codigo")
    ]


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class BCRAClient:
    """ExchangeRateProvider backed by the BCRA public API."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        verify_tls: bool | None = None,
        timeout: float = BCRA_REQUEST_TIMEOUT,
        retry_attempts: int = BCRA_RETRY_ATTEMPTS,
        retry_wait_min: float = BCRA_RETRY_WAIT_MIN,
        retry_wait_max: float = BCRA_RETRY_WAIT_MAX,
        session: AsyncSession | None = None,
    ):
        self._base_url = (base_url or constants.BCRA_API_BASE_URL).rstrip("/")
        self._verify_tls = (
            constants.BCRA_VERIFY_TLS if verify_tls is None else verify_tls
        )
        self._timeout = timeout
        self._retry_attempts = retry_attempts
        self._retry_wait_min = retry_wait_min
        self._retry_wait_max = retry_wait_max
        self._session = session

    def _get_session(self) -> AsyncSession:
        if self._session is None:
            self._session = AsyncSession(impersonate=CURL_CFFI_IMPERSONATE)
        return self._session

    async def aclose(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def _request_once(self, path: str, params: dict | None) -> dict | None:
        response = await self._get_session().get(
            f"{self._base_url}{path}",
            params=params,
            headers={"User-Agent": BCRA_USER_AGENT, "Accept": "application/json"},
            timeout=self._timeout,
            verify=self._verify_tls,
        )
        status = response.status_code
        if status == 404:
            # BCRA answers 404 when there are no quotes for the requested day.
            return None
        if status >= 500:
            raise _UpstreamServerError(f"HTTP {status} from {path}")
        if status >= 400:
            raise UpstreamUnavailableError(f"HTTP {status} from {path}")
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamUnavailableError(f"Invalid JSON from {path}") from exc

    async def _get_json(self, path: str, params: dict | None = None) -> dict | None:
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._retry_attempts),
                wait=wait_exponential(
                    min=self._retry_wait_min, max=self._retry_wait_max
                ),
                retry=retry_if_exception_type(_RETRYABLE_EXCEPTIONS),
                reraise=True,
            ):
                with attempt:
                    return await self._request_once(path, params)
        except _RETRYABLE_EXCEPTIONS as exc:
            logger.warning(
                "BCRA request failed after retries (%s): %s",
                path,
                exc,
                extra={"upstream_path": path},
            )
            raise UpstreamUnavailableError(
                f"BCRA request failed: {path}: {exc}"
            ) from exc
        return None

    @staticmethod
    def _parse(parser: Callable[[dict | None], list], payload, path: str) -> list:
        """Run a parser; a malformed payload counts as an unavailable upstream."""
        try:
            return parser(payload)
        except _PARSE_EXCEPTIONS as exc:
            logger.warning(
                "Malformed BCRA response from %s: %r",
                path,
                exc,
                extra={"upstream_path": path},
            )
            raise UpstreamUnavailableError(
                f"Malformed response from {path}: {exc!r}"
            ) from exc

    async def get_rates_for_date(self, day: date) -> list[RateRecord]:
        payload = await self._get_json(
            "/Cotizaciones", params={"fecha": format_iso_date(day)}
        )
        records = self._parse(parse_rates_response, payload, "/Cotizaciones")
        logger.debug("BCRA rates for %s: %d records", day, len(records))
        return records

    async def get_rate_history(
        self, code: str, start: date, end: date
    ) -> list[HistoryPoint]:
        """Walks limit/offset pages until an empty or short page."""
        points: list[HistoryPoint] = []
        offset = 0
        path = f"/Cotizaciones/{code}"
        for _ in range(BCRA_HISTORY_MAX_PAGES):
            payload = await self._get_json(
                path,
                params={
                    "fechaDesde": format_iso_date(start),
                    "fechaHasta": format_iso_date(end),
                    "limit": BCRA_HISTORY_PAGE_LIMIT,
                    "offset": offset,
                },
            )
            page = self._parse(parse_history_page, payload, path)
            points.extend(page)
            if len(page) < BCRA_HISTORY_PAGE_LIMIT:
                break
            offset += BCRA_HISTORY_PAGE_LIMIT
        else:
            logger.warning(
                "BCRA history for %s hit the page limit (%d pages).",
                code,
                BCRA_HISTORY_MAX_PAGES,
            )
        points.sort(key=lambda p: p.date)
        return points

    async def get_currencies(self) -> list[CurrencyInfo]:
        payload = await self._get_json("/Maestros/Divisas")
        return self._parse(parse_currencies_response, payload, "/Maestros/Divisas")
