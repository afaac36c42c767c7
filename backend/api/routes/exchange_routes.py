"""
API — exchange-rate routes.
Currency list, latest / dated rates, per-currency history and bulk history.
"""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_rate_service
from api.schemas import (
    BulkHistoryResponse,
    CurrencyResponse,
    DateRangeResponse,
    HistoryPointResponse,
    HistoryResponse,
    RateRecordResponse,
    RatesResponse,
)
from application.rate_service import (
    FutureDateRequestedError,
    InvalidDateRangeError,
    NoDataForRangeError,
    RateService,
    UpstreamUnavailableError,
)
from domain.constants import (
    ERROR_FUTURE_DATE,
    ERROR_INVALID_DATE,
    ERROR_INVALID_DATE_RANGE,
    ERROR_NO_DATA_FOR_RANGE,
    ERROR_UPSTREAM_UNAVAILABLE,
)
from domain.dates import format_iso_date, parse_iso_date
from domain.entities import HistoryPoint, RatesResult
from logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Mapping Helpers
# ---------------------------------------------------------------------------


def _parse_date_param(value: str) -> date:
    try:
        return parse_iso_date(value)
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail={
                "error_code": ERROR_INVALID_DATE,
                "detail": f"Invalid date '{value}', expected YYYY-MM-DD",
            },
        ) from None


def _to_points(points: tuple[HistoryPoint, ...]) -> list[HistoryPointResponse]:
    return [
        HistoryPointResponse(date=format_iso_date(p.date), buy=p.buy, sell=p.sell)
        for p in points
    ]


def _to_rates_response(result: RatesResult) -> RatesResponse:
    return RatesResponse(
        requested_date=format_iso_date(result.requested_date),
        date=format_iso_date(result.served_date) if result.served_date else None,
        from_previous_date=result.from_previous_date,
        source=result.source.value,
        rates=[
            RateRecordResponse(
                code=r.code,
                name=r.name,
                buy=r.buy,
                sell=r.sell,
                date=format_iso_date(r.date),
            )
            for r in result.records
        ],
    )


def _upstream_error(e: UpstreamUnavailableError) -> HTTPException:
    logger.error("Upstream unavailable: %s", e)
    return HTTPException(
        status_code=502,
        detail={"error_code": ERROR_UPSTREAM_UNAVAILABLE, "detail": str(e)},
    )


def _request_error(e: Exception) -> HTTPException:
    if isinstance(e, InvalidDateRangeError):
        code = ERROR_INVALID_DATE_RANGE
    else:
        code = ERROR_FUTURE_DATE
    return HTTPException(status_code=400, detail={"error_code": code, "detail": str(e)})


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.get(
    "/currencies",
    response_model=list[CurrencyResponse],
    summary="List the currencies quoted by BCRA",
)
async def list_currencies(
    service: RateService = Depends(get_rate_service),
) -> list[CurrencyResponse]:
    try:
        currencies = await service.get_currencies()
    except UpstreamUnavailableError as e:
        raise _upstream_error(e) from e
    return [CurrencyResponse(code=c.code, name=c.name) for c in currencies]


@router.get(
    "/rates/latest",
    response_model=RatesResponse,
    summary="Latest published rates (falls back to previous days)",
)
async def get_latest_rates(
    service: RateService = Depends(get_rate_service),
) -> RatesResponse:
    return _to_rates_response(await service.get_latest_rates())


@router.get(
    "/rates/{day}",
    response_model=RatesResponse,
    summary="Rates for a given date (falls back to previous days)",
)
async def get_rates_for_date(
    day: str,
    service: RateService = Depends(get_rate_service),
) -> RatesResponse:
    requested = _parse_date_param(day)
    try:
        result = await service.get_rates_for_date(requested)
    except FutureDateRequestedError as e:
        raise _request_error(e) from e
    return _to_rates_response(result)


@router.get(
    "/rates/{currency}/{start}/{end}",
    response_model=HistoryResponse,
    summary="History of one currency over a date range",
)
async def get_currency_history(
    currency: str,
    start: str,
    end: str,
    service: RateService = Depends(get_rate_service),
) -> HistoryResponse:
    start_date, end_date = _parse_date_param(start), _parse_date_param(end)
    try:
        result = await service.get_currency_history(currency, start_date, end_date)
    except (InvalidDateRangeError, FutureDateRequestedError) as e:
        raise _request_error(e) from e
    except UpstreamUnavailableError as e:
        raise _upstream_error(e) from e
    return HistoryResponse(
        code=result.code,
        start=format_iso_date(result.start),
        end=format_iso_date(result.end),
        source=result.source.value,
        points=_to_points(result.points),
    )


@router.get(
    "/history/bulk/{start}/{end}",
    response_model=BulkHistoryResponse,
    summary="History of every currency over a date range",
)
async def get_bulk_history(
    start: str,
    end: str,
    service: RateService = Depends(get_rate_service),
) -> BulkHistoryResponse:
    start_date, end_date = _parse_date_param(start), _parse_date_param(end)
    try:
        result = await service.get_bulk_history(start_date, end_date)
    except (InvalidDateRangeError, FutureDateRequestedError) as e:
        raise _request_error(e) from e
    except NoDataForRangeError as e:
        raise HTTPException(
            status_code=404,
            detail={"error_code": ERROR_NO_DATA_FOR_RANGE, "detail": str(e)},
        ) from e
    except UpstreamUnavailableError as e:
        raise _upstream_error(e) from e
    return BulkHistoryResponse(
        requested_range=DateRangeResponse(
            start=format_iso_date(result.requested_start),
            end=format_iso_date(result.requested_end),
        ),
        actual_range=DateRangeResponse(
            start=format_iso_date(result.actual_start),
            end=format_iso_date(result.actual_end),
        ),
        source=result.source.value,
        series={code: _to_points(points) for code, points in result.series.items()},
    )
