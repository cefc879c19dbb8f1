"""
Settlement destination models — where an order's proceeds are paid out.

- BankAccount: fiat payouts for sell orders; account number Fernet-encrypted at rest
- CryptoWallet: crypto payouts for buy and swap orders

Adding and verifying destinations happens outside the trading core; the
core only reads verified rows when an order is materialized.
"""

import enum
import uuid
from datetime import datetime, timezone

from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy import Boolean, DateTime, ForeignKey, String, event
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from otcdesk.config import settings
from otcdesk.database import Base, pg_enum

# ---------------------------------------------------------------------------
# Fernet cipher — lazily initialised from settings
# ---------------------------------------------------------------------------

_fernet: Fernet | None = None


def _get_fernet() -> Fernet:
    global _fernet
    if _fernet is None:
        _fernet = Fernet(settings.FERNET_KEY.encode())
    return _fernet


def configure_fernet(key: str | bytes) -> None:
    """Override the Fernet key at runtime (used in tests)."""
    global _fernet
    if isinstance(key, str):
        key = key.encode()
    _fernet = Fernet(key)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class DestinationKind(str, enum.Enum):
    BANK_ACCOUNT = "bank_account"
    CRYPTO_WALLET = "crypto_wallet"


class BankAccountType(str, enum.Enum):
    SAVINGS = "savings"
    CURRENT = "current"
    TRANSMISSION = "transmission"


class WalletType(str, enum.Enum):
    EXCHANGE = "exchange"
    PERSONAL = "personal"


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class BankAccount(Base):
    __tablename__ = "bank_accounts"

    kind = DestinationKind.BANK_ACCOUNT

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), index=True, nullable=False,
    )
    currency: Mapped[str] = mapped_column(
        String(10), ForeignKey("currencies.code"), nullable=False,
    )
    account_holder_name: Mapped[str] = mapped_column(String(200), nullable=False)
    bank_name: Mapped[str] = mapped_column(String(100), nullable=False)
    account_number: Mapped[str] = mapped_column(String(256), nullable=False)  # encrypted
    branch_code: Mapped[str | None] = mapped_column(String(20))
    account_type: Mapped[BankAccountType] = mapped_column(
        pg_enum(BankAccountType, "bankaccounttype"), default=BankAccountType.CURRENT,
    )
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def set_account_number(self, plaintext: str) -> None:
        """Encrypt and store the account number."""
        self.account_number = _get_fernet().encrypt(plaintext.encode()).decode()

    def get_account_number(self) -> str:
        """Return the decrypted account number. Raises ValueError on failure."""
        try:
            return _get_fernet().decrypt(self.account_number.encode()).decode()
        except InvalidToken:
            raise ValueError("Failed to decrypt value — invalid key or corrupted data")

    def masked_account_number(self) -> str:
        return f"****{self.get_account_number()[-4:]}"

    def __repr__(self) -> str:
        return f"<BankAccount {self.bank_name} {self.currency} verified={self.is_verified}>"


class CryptoWallet(Base):
    __tablename__ = "crypto_wallets"

    kind = DestinationKind.CRYPTO_WALLET

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), index=True, nullable=False,
    )
    currency: Mapped[str] = mapped_column(
        String(10), ForeignKey("currencies.code"), nullable=False,
    )
    wallet_address: Mapped[str] = mapped_column(String(128), nullable=False)
    wallet_type: Mapped[WalletType] = mapped_column(
        pg_enum(WalletType, "wallettype"), default=WalletType.PERSONAL,
    )
    exchange_name: Mapped[str | None] = mapped_column(String(100))
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<CryptoWallet {self.currency} {self.wallet_address[:10]}… verified={self.is_verified}>"


def _set_destination_defaults(target, args, kwargs):
    if "id" not in kwargs:
        target.id = uuid.uuid4()
    if "is_verified" not in kwargs:
        target.is_verified = False
    if "created_at" not in kwargs:
        target.created_at = datetime.now(timezone.utc)
    if "updated_at" not in kwargs:
        target.updated_at = datetime.now(timezone.utc)


event.listen(BankAccount, "init", _set_destination_defaults)
event.listen(CryptoWallet, "init", _set_destination_defaults)
