# schemas/__init__.py
from .address import (
    AddressSubmission,
    AddressDocument,
    AddressCreatedResponse,
    AddressListResponse,
    ErrorResponse,
)

__all__ = [
    "AddressSubmission", "AddressDocument",
    "AddressCreatedResponse", "AddressListResponse", "ErrorResponse",
]
