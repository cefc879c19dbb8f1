"""
Pydantic schemas for the currency catalog.
"""

from pydantic import BaseModel, ConfigDict, Field

from otcdesk.models.currency import AssetClass


class CurrencyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    code: str
    name: str
    symbol: str | None
    asset_class: AssetClass
    decimals: int
    is_active: bool


class CurrencyUpsertRequest(BaseModel):
    """Operator create/update of one catalog entry (code comes from the path)."""
    name: str = Field(..., min_length=1, max_length=100, examples=["Bitcoin"])
    symbol: str | None = Field(None, max_length=10, examples=["₿"])
    asset_class: AssetClass
    decimals: int = Field(..., ge=0, le=18, examples=[8])
    is_active: bool = True


class CurrencyListResponse(BaseModel):
    items: list[CurrencyResponse]
    total: int
