# src/core/dependencies.py

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from src.api.app.services.address_service import AddressService


def get_address_service(request: Request) -> AddressService:
    """Service criado no lifespan da aplicação"""
    service = getattr(request.app.state, "address_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Address service not initialized")
    return service


AddressServiceDep = Annotated[AddressService, Depends(get_address_service)]
