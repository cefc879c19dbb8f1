"""
Development data seeder — populates the database with a usable desk.

Usage:
    python scripts/seed_data.py

Creates:
  - the currency catalog (ZAR, NAD, USD fiat; BTC, ETH, USDT, USDC crypto)
  - 1 operator, 2 customers (one flagged privileged)
  - verified bank accounts and crypto wallets for the customers
  - trading limits for the standard customer
  - derived rates for every pair, priced from the mock market-data feed

Idempotent: existing currencies and users (by email) are left untouched.
"""

import asyncio
from decimal import Decimal

from sqlalchemy import select

from otcdesk.database import async_session, engine
from otcdesk.models.currency import AssetClass, Currency
from otcdesk.models.destination import BankAccount, BankAccountType, CryptoWallet, WalletType
from otcdesk.models.trading_limit import TradingLimit
from otcdesk.models.user import User, UserRole
from otcdesk.redis_client import redis
from otcdesk.services.market_data import MockMarketDataFeed
from otcdesk.services.rate_service import RateService

# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

SAMPLE_CURRENCIES: list[dict] = [
    {"code": "ZAR", "name": "South African Rand", "symbol": "R", "asset_class": AssetClass.FIAT, "decimals": 2},
    {"code": "NAD", "name": "Namibian Dollar", "symbol": "N$", "asset_class": AssetClass.FIAT, "decimals": 2},
    {"code": "USD", "name": "US Dollar", "symbol": "$", "asset_class": AssetClass.FIAT, "decimals": 2},
    {"code": "BTC", "name": "Bitcoin", "symbol": "₿", "asset_class": AssetClass.CRYPTO, "decimals": 8},
    {"code": "ETH", "name": "Ethereum", "symbol": "Ξ", "asset_class": AssetClass.CRYPTO, "decimals": 8},
    {"code": "USDT", "name": "Tether", "symbol": "₮", "asset_class": AssetClass.CRYPTO, "decimals": 6},
    {"code": "USDC", "name": "USD Coin", "symbol": None, "asset_class": AssetClass.CRYPTO, "decimals": 6},
]

# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

SAMPLE_USERS: list[dict] = [
    {
        "email": "desk@otcdesk.test",
        "full_name": "Desk Operator",
        "phone": "+27821230001",
        "role": UserRole.OPERATOR,
    },
    {
        "email": "thandi@example.com",
        "full_name": "Thandi Nkosi",
        "phone": "+27821230002",
        "role": UserRole.CUSTOMER,
    },
    {
        "email": "fund@example.com",
        "full_name": "Kalahari Capital Fund",
        "phone": "+264811230003",
        "role": UserRole.CUSTOMER,
        "is_privileged": True,
        "privileged_notes": "Institutional client, desk-negotiated rates",
    },
]

SAMPLE_BANK_ACCOUNTS = {
    "thandi@example.com": [
        ("ZAR", "First National Bank", "62812345678", "250655", BankAccountType.CURRENT),
    ],
    "fund@example.com": [
        ("NAD", "Bank Windhoek", "8001234567", "483872", BankAccountType.CURRENT),
        ("ZAR", "Standard Bank", "10098765432", "051001", BankAccountType.TRANSMISSION),
    ],
}

SAMPLE_WALLETS = {
    "thandi@example.com": [
        ("BTC", "bc1qxy2kgdygjrsqtzq2n0yrf2493p83kkfjhx0wlh", WalletType.PERSONAL, None),
        ("USDT", "TQn9Y2khEsLJW1ChVWFMSMeRDow5KcbLSE", WalletType.EXCHANGE, "Luno"),
    ],
    "fund@example.com": [
        ("BTC", "bc1q9h6tq8yq3d5c0zj0n8m2v4x7k5e3w6r8t2p4s0", WalletType.PERSONAL, None),
        ("ETH", "0x71C7656EC7ab88b098defB751B7401B5f6d8976F", WalletType.PERSONAL, None),
    ],
}

# (daily, monthly) caps for the standard customer, per source currency
SAMPLE_LIMITS = {
    "ZAR": (Decimal("250000"), Decimal("2000000")),
    "BTC": (Decimal("1.5"), Decimal("10")),
}


# ---------------------------------------------------------------------------
# Main seed routine
# ---------------------------------------------------------------------------


async def seed() -> None:
    """Insert sample data into the database. Safe to run multiple times."""

    async with async_session() as session:
        # ==================================================================
        # 1. CURRENCIES
        # ==================================================================

        existing_codes = set((await session.execute(select(Currency.code))).scalars().all())
        new_currencies = [c for c in SAMPLE_CURRENCIES if c["code"] not in existing_codes]
        for data in new_currencies:
            session.add(Currency(**data))
        await session.flush()
        print(f"  Currencies: {len(new_currencies)} new, {len(existing_codes)} existing")

        # ==================================================================
        # 2. USERS, DESTINATIONS, LIMITS
        # ==================================================================

        existing_emails = set((await session.execute(select(User.email))).scalars().all())
        users: dict[str, User] = {}
        for data in SAMPLE_USERS:
            if data["email"] in existing_emails:
                continue
            user = User(**data)
            session.add(user)
            users[user.email] = user
        await session.flush()
        print(f"  Users: {len(users)} new, {len(existing_emails)} existing")

        for email, user in users.items():
            for currency, bank, number, branch, account_type in SAMPLE_BANK_ACCOUNTS.get(email, []):
                account = BankAccount(
                    user_id=user.id,
                    currency=currency,
                    account_holder_name=user.full_name,
                    bank_name=bank,
                    account_number="",
                    branch_code=branch,
                    account_type=account_type,
                    is_verified=True,
                )
                account.set_account_number(number)
                session.add(account)
            for currency, address, wallet_type, exchange in SAMPLE_WALLETS.get(email, []):
                session.add(CryptoWallet(
                    user_id=user.id,
                    currency=currency,
                    wallet_address=address,
                    wallet_type=wallet_type,
                    exchange_name=exchange,
                    is_verified=True,
                ))

        customer = users.get("thandi@example.com")
        if customer is not None:
            for currency, (daily, monthly) in SAMPLE_LIMITS.items():
                session.add(TradingLimit(
                    user_id=customer.id,
                    currency=currency,
                    daily_limit=daily,
                    monthly_limit=monthly,
                ))
        await session.flush()

        # ==================================================================
        # 3. RATES
        # ==================================================================

        report = await RateService(session, redis, feed=MockMarketDataFeed()).refresh_all()
        print(f"  Rates: {len(report.refreshed)} pairs priced, {len(report.failed)} failed")
        for pair, reason in report.failed.items():
            print(f"    {pair}: {reason}")

        await session.commit()

    await engine.dispose()
    await redis.aclose()
    print("\n  Seed complete! Run scripts/dev_credentials.py for bearer tokens.")


if __name__ == "__main__":
    asyncio.run(seed())
