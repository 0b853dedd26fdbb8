# src/api/schemas/address.py
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AddressSubmission(BaseModel):
    """Payload de criação de endereço. Só `email` é obrigatório (validado no service)."""

    # Campos desconhecidos são descartados; os conhecidos passam sem validação de formato
    model_config = ConfigDict(extra="ignore")

    name: Any = None
    email: Any = None
    address: Any = None
    city: Any = None
    state: Any = None
    zip: Any = None
    default: Any = None


class AddressDocument(BaseModel):
    """Documento de endereço como armazenado no Sanity"""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(..., alias="_id")
    type: str = Field("address", alias="_type")
    rev: Optional[str] = Field(None, alias="_rev")
    store_created_at: Optional[str] = Field(None, alias="_createdAt")
    store_updated_at: Optional[str] = Field(None, alias="_updatedAt")
    name: Any = None
    email: Any = None
    address: Any = None
    city: Any = None
    state: Any = None
    zip: Any = None
    # Documentos editados fora da API podem trazer qualquer valor
    default: Any = False
    created_at: Any = Field(None, alias="createdAt")


class AddressCreatedResponse(BaseModel):
    success: bool = True
    address: AddressDocument


class AddressListResponse(BaseModel):
    success: bool = True
    addresses: List[AddressDocument] = []


class ErrorResponse(BaseModel):
    error: str
