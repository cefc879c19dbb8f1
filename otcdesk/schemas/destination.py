"""
Pydantic schemas for settlement destinations. Bank account numbers are
only ever returned masked.
"""

from uuid import UUID

from pydantic import BaseModel

from otcdesk.models.destination import BankAccount, CryptoWallet, DestinationKind


class DestinationResponse(BaseModel):
    id: UUID
    kind: DestinationKind
    currency: str
    label: str
    is_verified: bool

    @classmethod
    def from_destination(cls, destination: BankAccount | CryptoWallet) -> "DestinationResponse":
        if isinstance(destination, BankAccount):
            label = f"{destination.bank_name} {destination.masked_account_number()}"
        else:
            address = destination.wallet_address
            label = f"{address[:6]}...{address[-4:]}"
        return cls(
            id=destination.id,
            kind=destination.kind,
            currency=destination.currency,
            label=label,
            is_verified=destination.is_verified,
        )


class DestinationListResponse(BaseModel):
    items: list[DestinationResponse]
    total: int
