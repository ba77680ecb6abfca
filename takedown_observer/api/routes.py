"""HTTP route definitions for report intake, listing and export."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from ..domain.account import Account
from ..domain.errors import ReportRejected, StorageFailure
from ..domain.service import MAX_PAGE, ReportService
from ..domain.validation import validate_report

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

CSV_FILENAME = "takedowns.csv"


class ReportedAccount(BaseModel):
    """Account object embedded in a report; missing fields fail validation later."""

    id: str = ""
    name: str = ""
    countries: list[str] = Field(default_factory=list)


class ReportRequest(BaseModel):
    """Payload sent by a client observing a taken-down account."""

    client_id: str = ""
    data_format_version: str = ""
    account: ReportedAccount = Field(default_factory=ReportedAccount)


class ReportResponse(BaseModel):
    status: str = "success"
    outcome: str


class AccountResponse(BaseModel):
    """Public representation of an `Account`; the reporter set is never exposed."""

    id: str
    name: str
    countries: list[str]
    last_reported_at: str
    report_count: int
    data_format_version: str

    @classmethod
    def from_domain(cls, account: Account) -> "AccountResponse":
        """Build a response model from the domain aggregate."""
        return cls(
            id=account.account_id,
            name=account.name,
            countries=account.countries,
            last_reported_at=account.last_reported_at.isoformat(),
            report_count=account.report_count,
            data_format_version=account.data_format_version,
        )


class AccountsResponse(BaseModel):
    """Envelope for one page of the account listing."""

    model_config = ConfigDict(populate_by_name=True)

    accounts: list[AccountResponse]
    total_count: int = Field(alias="totalCount")
    current_page: int = Field(alias="currentPage")
    total_pages: int = Field(alias="totalPages")
    unique_countries: list[str] = Field(alias="uniqueCountries")


def get_service(request: Request) -> ReportService:
    """Resolve the `ReportService` stored on the FastAPI application state."""
    service: ReportService = request.app.state.report_service
    return service


def _parse_page(raw: str | None) -> int:
    # unparseable or out-of-range page numbers fall back to the first page
    try:
        page = int(raw)
    except (TypeError, ValueError):
        return 1
    return page if 1 <= page <= MAX_PAGE else 1


def _error_location(loc: tuple) -> str:
    parts = [str(part) for part in loc if part != "body"]
    return ".".join(parts) or "body"


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Reject malformed payloads with a 400 naming only the offending fields.

    The submitted values are never included in the response.
    """
    locations = sorted({_error_location(tuple(error.get("loc", ()))) for error in exc.errors()})
    logger.info("malformed request to %s: %s", request.url.path, ", ".join(locations))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": f"invalid request body: {', '.join(locations)}"},
    )


@router.post("/report", response_model=ReportResponse, status_code=status.HTTP_201_CREATED)
def submit_report(
    response: Response,
    payload: ReportRequest,
    service: ReportService = Depends(get_service),
) -> ReportResponse:
    """Validate a report and fold it into the reported account."""
    try:
        intake = validate_report(
            client_id=payload.client_id,
            data_format_version=payload.data_format_version,
            account_id=payload.account.id,
            name=payload.account.name,
            countries=payload.account.countries,
        )
    except ReportRejected as exc:
        service.record_rejection()
        logger.info("report rejected: %s", exc)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    try:
        result = service.submit(intake)
    except StorageFailure as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="database error"
        ) from exc

    response.status_code = status.HTTP_201_CREATED if result.created else status.HTTP_200_OK
    return ReportResponse(outcome=result.outcome.value)


@router.get("/accounts", response_model=AccountsResponse)
def list_accounts(
    page: str | None = Query(default=None),
    country: str | None = Query(default=None),
    search: str | None = Query(default=None),
    service: ReportService = Depends(get_service),
) -> AccountsResponse:
    """Return one page of reported accounts with the global country facet."""
    try:
        result = service.list_accounts(country=country, search=search, page=_parse_page(page))
    except StorageFailure as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="database error"
        ) from exc

    return AccountsResponse(
        accounts=[AccountResponse.from_domain(account) for account in result.accounts],
        total_count=result.total_count,
        current_page=result.current_page,
        total_pages=result.total_pages,
        unique_countries=result.unique_countries,
    )


@router.get("/download")
def download_csv(service: ReportService = Depends(get_service)) -> Response:
    """Return every reported account as a CSV attachment."""
    try:
        body = service.export_csv()
    except StorageFailure as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="database error"
        ) from exc
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={CSV_FILENAME}"},
    )
