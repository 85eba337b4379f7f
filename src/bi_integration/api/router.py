"""bi_integration REST endpoints.

GET    /v1/bank/findAll                      — list all records
GET    /v1/bank/findById/{id}                — record by id (404 when empty)
GET    /v1/bank/findByIdentityDni/{dni}      — record by identity document (404 when empty)
POST   /v1/bank/                             — create (201 + Location, 404 when empty)
PUT    /v1/bank/{id}                         — update (201 + Location, 400 when empty)
DELETE /v1/bank/{id}                         — delete (200 empty body, 404 when empty)

Each handler runs the service call under its own "api.*" breaker, on top of
the service's own guard. The outer deadline is the longer one, so a slow store
trips the "integration.*" breaker rather than cancelling it.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Annotated, Any

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse, Response

from src.bi_common.resilience import ResilienceRegistry, absent, empty_list
from src.bi_integration.api.dependencies import (
    get_location_base_url,
    get_resilience,
    get_service,
)
from src.bi_integration.application.schemas import (
    BankIntegrationPatch,
    BankIntegrationRequest,
    BankIntegrationResponse,
)
from src.bi_integration.application.service import BankIntegrationService
from src.bi_integration.domain.models import BankIntegration

logger = logging.getLogger("bi.integration")

router = APIRouter(prefix="/v1/bank", tags=["bank-integration"])

ServiceDep = Annotated[BankIntegrationService, Depends(get_service)]
ResilienceDep = Annotated[ResilienceRegistry, Depends(get_resilience)]
LocationDep = Annotated[str, Depends(get_location_base_url)]

_INVALID = {400: {"description": "Invalid parameters"}}
_NOT_FOUND = {404: {"description": "No record found"}}


async def _guarded(
    resilience: ResilienceRegistry,
    name: str,
    func: Callable[..., Awaitable[Any]],
    *args: Any,
    fallback: Callable[..., Any],
) -> Any:
    """Run a service call under its api.* breaker with the outer deadline."""
    return await resilience.call(
        name, func, *args, fallback=fallback, timeout=resilience.outer_timeout_seconds
    )


def _record_response(record: BankIntegration, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=BankIntegrationResponse.from_domain(record).to_json(),
    )


def _created_response(record: BankIntegration, base_url: str) -> JSONResponse:
    resp = _record_response(record, status.HTTP_201_CREATED)
    resp.headers["Location"] = f"{base_url.rstrip('/')}/{record.id}"
    return resp


@router.get(
    "/findAll",
    summary="List every registered bank integration record",
    response_model=list[BankIntegrationResponse],
    responses=_INVALID,
)
async def find_all(service: ServiceDep, resilience: ResilienceDep) -> Response:
    logger.info("find_all executed")
    records = await _guarded(resilience, "api.findAll", service.find_all, fallback=empty_list)
    return JSONResponse(
        content=[BankIntegrationResponse.from_domain(r).to_json() for r in records]
    )


@router.get(
    "/findById/{integration_id}",
    summary="Get a bank integration record by id",
    response_model=BankIntegrationResponse,
    responses={**_INVALID, **_NOT_FOUND},
)
async def find_by_id(
    integration_id: str, service: ServiceDep, resilience: ResilienceDep
) -> Response:
    record = await _guarded(
        resilience, "api.findById", service.find_by_id, integration_id, fallback=absent
    )
    if record is None:
        return Response(status_code=status.HTTP_404_NOT_FOUND)
    return _record_response(record)


@router.get(
    "/findByIdentityDni/{identity_dni}",
    summary="Get a bank integration record by identity document number",
    response_model=BankIntegrationResponse,
    responses={**_INVALID, **_NOT_FOUND},
)
async def find_by_identity_dni(
    identity_dni: str, service: ServiceDep, resilience: ResilienceDep
) -> Response:
    logger.info("find_by_identity_dni executed %s", identity_dni)
    record = await _guarded(
        resilience,
        "api.findByIdentityDni",
        service.find_by_identity_dni,
        identity_dni,
        fallback=absent,
    )
    if record is None:
        return Response(status_code=status.HTTP_404_NOT_FOUND)
    return _record_response(record)


@router.post(
    "/",
    summary="Register a bank integration record",
    status_code=status.HTTP_201_CREATED,
    response_model=BankIntegrationResponse,
    responses={
        **_INVALID,
        **_NOT_FOUND,
        409: {"description": "Identity document already registered"},
    },
)
async def create(
    body: BankIntegrationRequest,
    service: ServiceDep,
    resilience: ResilienceDep,
    location_base_url: LocationDep,
) -> Response:
    logger.info("create executed %s", body.identity_dni)
    record = await _guarded(
        resilience, "api.create", service.create, body.to_domain(), fallback=absent
    )
    if record is None:
        return Response(status_code=status.HTTP_404_NOT_FOUND)
    return _created_response(record, location_base_url)


@router.put(
    "/{integration_id}",
    summary="Update a bank integration record by id",
    status_code=status.HTTP_201_CREATED,
    response_model=BankIntegrationResponse,
    responses={**_INVALID, 409: {"description": "Identity document already registered"}},
)
async def update_by_id(
    integration_id: str,
    body: BankIntegrationPatch,
    service: ServiceDep,
    resilience: ResilienceDep,
    location_base_url: LocationDep,
) -> Response:
    changes = body.changes()
    logger.info("update_by_id executed %s:%s", integration_id, sorted(changes))
    record = await _guarded(
        resilience, "api.update", service.update, integration_id, changes, fallback=absent
    )
    if record is None:
        return Response(status_code=status.HTTP_400_BAD_REQUEST)
    return _created_response(record, location_base_url)


@router.delete(
    "/{integration_id}",
    summary="Delete a bank integration record by id",
    responses={200: {"description": "Record deleted"}, **_INVALID, **_NOT_FOUND},
)
async def delete_by_id(
    integration_id: str, service: ServiceDep, resilience: ResilienceDep
) -> Response:
    logger.info("delete_by_id executed %s", integration_id)
    record = await _guarded(
        resilience, "api.delete", service.delete, integration_id, fallback=absent
    )
    if record is None:
        return Response(status_code=status.HTTP_404_NOT_FOUND)
    return Response(status_code=status.HTTP_200_OK)
