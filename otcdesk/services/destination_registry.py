"""
Settlement destination registry — read-only lookup of payout targets.

Bank accounts receive fiat (sell orders); crypto wallets receive crypto
(buy and swap orders). Only verified destinations are ever returned for
trading purposes.
"""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from otcdesk.models.destination import BankAccount, CryptoWallet

Destination = BankAccount | CryptoWallet


class SettlementDestinationRegistry:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_verified_destinations(
        self, user_id: uuid.UUID, currency: str,
    ) -> list[Destination]:
        """Verified bank accounts and wallets the user holds in *currency*."""
        destinations: list[Destination] = []
        for model in (BankAccount, CryptoWallet):
            result = await self.db.execute(
                select(model).where(
                    model.user_id == user_id,
                    model.currency == currency.upper(),
                    model.is_verified.is_(True),
                ).order_by(model.created_at)
            )
            destinations.extend(result.scalars().all())
        return destinations

    async def get_destination(self, destination_id: uuid.UUID) -> Destination | None:
        """Bank account or wallet by id, regardless of owner or verification."""
        account = await self.db.get(BankAccount, destination_id)
        if account is not None:
            return account
        return await self.db.get(CryptoWallet, destination_id)
