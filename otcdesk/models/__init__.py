"""SQLAlchemy ORM models for the OTC desk."""

from otcdesk.models.user import User, UserRole, UserStatus
from otcdesk.models.currency import AssetClass, Currency
from otcdesk.models.exchange_rate import ExchangeRate
from otcdesk.models.admin_setting import AdminSetting
from otcdesk.models.destination import BankAccount, CryptoWallet, DestinationKind
from otcdesk.models.trading_limit import TradingLimit
from otcdesk.models.quote import Quote, QuoteOrigin, QuoteStatus, TradeType
from otcdesk.models.order import Order, OrderStatus

__all__ = [
    "User", "UserRole", "UserStatus",
    "AssetClass", "Currency",
    "ExchangeRate",
    "AdminSetting",
    "BankAccount", "CryptoWallet", "DestinationKind",
    "TradingLimit",
    "Quote", "QuoteOrigin", "QuoteStatus", "TradeType",
    "Order", "OrderStatus",
]
