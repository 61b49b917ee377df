"""Raw trade model as returned by Kraken's TradesHistory endpoint."""

from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .trade import Trade


class KrakenTrade(BaseModel):
    """
    A single trade entry from Kraken, keyed by its txid in the result map.

    This is the raw wire data, before normalization into a Trade.
    Kraken sends decimal quantities as strings; they are kept as strings.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    ordertxid: Optional[str] = Field(default=None, description="Order responsible for the trade")
    postxid: Optional[str] = Field(default=None, description="Position responsible for the trade")
    pair: str
    time: float = Field(description="Unix timestamp with fractional seconds")
    type: str = Field(description="'buy' or 'sell'")
    ordertype: str
    price: str
    cost: str
    fee: str
    vol: str
    margin: str = "0"
    leverage: Optional[str] = None
    misc: Optional[str] = None
    trade_id: Optional[int] = None
    maker: bool = False
    posstatus: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("posstatus", "poststatus"),
    )
    cprice: Optional[float] = None
    ccost: Optional[float] = None
    cfee: Optional[float] = None
    cvol: Optional[float] = None
    cmargin: Optional[float] = None
    net: Optional[float] = None
    ledgers: Optional[list[str]] = None
    trades: Optional[list[str]] = None

    @field_validator("price", "cost", "fee", "vol", "margin", "leverage", mode="before")
    @classmethod
    def _decimal_as_string(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    def to_trade(self, trade_id: str) -> Trade:
        """Normalize into a Trade using the result map key as id."""
        return Trade(
            id=trade_id,
            orderId=self.ordertxid or None,
            positionId=self.postxid or None,
            pair=self.pair,
            time=int(self.time),
            side=self.type,
            orderType=self.ordertype,
            price=self.price,
            cost=self.cost,
            fee=self.fee,
            volume=self.vol,
            margin=self.margin,
            leverage=self.leverage or None,
            misc=self.misc or None,
            tradeId=self.trade_id,
            isMaker=self.maker,
            positionStatus=self.posstatus or None,
            closePrice=self.cprice,
            closeCost=self.ccost,
            closeFee=self.cfee,
            closeVolume=self.cvol,
            closeMargin=self.cmargin,
            netPnl=self.net,
            ledgerIds=self.ledgers,
            closingTradeIds=self.trades,
        )
