from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Query, Request, Response

from src.api.schemas.address import (
    AddressCreatedResponse,
    AddressDocument,
    AddressListResponse,
    AddressSubmission,
    ErrorResponse,
)
from src.core.dependencies import AddressServiceDep
from src.core.rate_limit.rate_limit import limiter, RATE_LIMITS

router = APIRouter(tags=["Addresses"], prefix="/api/address")

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
}


@router.post("", response_model=AddressCreatedResponse, responses=ERROR_RESPONSES)
@limiter.limit(RATE_LIMITS["write"])
async def create_address(
    request: Request,
    response: Response,
    submission: AddressSubmission,
    background_tasks: BackgroundTasks,
    service: AddressServiceDep,
):
    """
    Cria um endereço de entrega.

    Com `default` verdadeiro, os outros endereços padrão do mesmo email são
    desmarcados depois que a resposta é enviada.
    """
    result = await service.submit(submission, schedule=background_tasks.add_task)
    return AddressCreatedResponse(address=AddressDocument.model_validate(result.address))


@router.get("", response_model=AddressListResponse, responses=ERROR_RESPONSES)
@limiter.limit(RATE_LIMITS["read"])
async def list_addresses(
    request: Request,
    response: Response,
    service: AddressServiceDep,
    email: Optional[str] = Query(None),
):
    """Lista os endereços de um cliente, mais recentes primeiro"""
    addresses = await service.list_addresses(email)
    return AddressListResponse(
        addresses=[AddressDocument.model_validate(doc) for doc in addresses]
    )


@router.get("/{address_id}", response_model=AddressCreatedResponse, responses=ERROR_RESPONSES)
@limiter.limit(RATE_LIMITS["read"])
async def get_address(
    request: Request,
    response: Response,
    address_id: str,
    service: AddressServiceDep,
):
    document = await service.get_address(address_id)
    return AddressCreatedResponse(address=AddressDocument.model_validate(document))
