"""Trade model for storage and API responses."""

from typing import Literal, Optional
from pydantic import BaseModel, Field, ConfigDict


class Trade(BaseModel):
    """
    Normalized trade execution record.

    This is the processed/normalized version of a KrakenTrade,
    as stored in the local cache and returned by the API.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(description="Kraken trade txid, unique across the store")
    orderId: Optional[str] = Field(default=None, description="Order txid")
    positionId: Optional[str] = Field(default=None, description="Position txid")
    pair: str = Field(description="Asset pair")
    time: int = Field(description="Unix timestamp in seconds")
    side: Literal["buy", "sell"]
    orderType: str = Field(description="e.g. 'limit', 'market'")
    price: str = Field(description="Average execution price (quote currency)")
    cost: str = Field(description="Total cost (quote currency)")
    fee: str = Field(description="Total fee (quote currency)")
    volume: str = Field(description="Volume (base currency)")
    margin: str = Field(default="0", description="Initial margin (quote currency)")
    leverage: Optional[str] = None
    misc: Optional[str] = None
    tradeId: Optional[int] = None
    isMaker: bool = False
    positionStatus: Optional[Literal["open", "closed"]] = None
    closePrice: Optional[float] = None
    closeCost: Optional[float] = None
    closeFee: Optional[float] = None
    closeVolume: Optional[float] = None
    closeMargin: Optional[float] = None
    netPnl: Optional[float] = Field(default=None, description="Net PnL of the closed portion")
    ledgerIds: Optional[list[str]] = None
    closingTradeIds: Optional[list[str]] = None

    @property
    def cost_amount(self) -> float:
        """Get cost as float."""
        return float(self.cost)

    @property
    def fee_amount(self) -> float:
        """Get fee as float."""
        return float(self.fee)

    @property
    def is_buy(self) -> bool:
        return self.side == "buy"
