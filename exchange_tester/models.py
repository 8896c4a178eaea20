"""Pydantic models for exchange, bank and audit log payloads."""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TradeType(str, Enum):
    BUY = "buy"
    SELL = "sell"


class LogTag:
    """Tags attached to audit log events."""
    SIGNUP = "signup"
    SIGNIN = "signin"
    SIGNOUT = "signout"
    BUY_ORDER = "buy.order"
    SELL_ORDER = "sell.order"
    BUY_ERROR = "buy.error"
    SELL_ERROR = "sell.error"
    BUY_DELETE = "buy.delete"
    SELL_DELETE = "sell.delete"
    BUY_TRADE = "buy.trade"
    SELL_TRADE = "sell.trade"
    CLOSE = "close"
    TRADE = "trade"

    @staticmethod
    def for_side(side: TradeType, event: str) -> str:
        """Side-specific tag, e.g. ``for_side(TradeType.BUY, "order") == "buy.order"``."""
        return f"{side.value}.{event}"


@dataclass(frozen=True)
class SimulatedUser:
    """Identity behind one exchange client for the duration of a run."""
    bank_id: str
    name: str
    password: str

    @classmethod
    def generate(cls, prefix: str, name: str, password: str,
                 now: Optional[float] = None) -> "SimulatedUser":
        """Create a user whose bank id is unique per run (timestamp based)."""
        stamp = int(now if now is not None else time.time())
        return cls(bank_id=f"{prefix}{stamp}@isucon.net", name=name, password=password)


class Trade(BaseModel):
    id: int
    amount: int
    price: int
    created_at: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class Order(BaseModel):
    id: int
    type: TradeType
    amount: int
    price: int
    user_id: Optional[int] = None
    closed_at: Optional[str] = None
    trade_id: Optional[int] = None
    created_at: Optional[str] = None
    trade: Optional[Trade] = None

    model_config = ConfigDict(extra="ignore")


class Info(BaseModel):
    cursor: Optional[int] = None
    traded_orders: List[Order] = Field(default_factory=list)
    lowest_sell_price: Optional[int] = None
    highest_buy_price: Optional[int] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("traded_orders", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class SigninResponse(BaseModel):
    id: int
    name: str

    model_config = ConfigDict(extra="ignore")


class SignupLog(BaseModel):
    name: str
    bank_id: str
    user_id: Optional[int] = None


class OrderErrorLog(BaseModel):
    amount: int
    price: int
    error: Optional[str] = None
    user_id: Optional[int] = None


class AuditEvent(BaseModel):
    """A single audit log record; ``data`` depends on ``tag``."""
    tag: str
    time: Optional[str] = None
    user_id: Optional[int] = None
    data: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="ignore")

    @property
    def signup(self) -> SignupLog:
        return SignupLog.model_validate(self.data)

    @property
    def order_error(self) -> OrderErrorLog:
        return OrderErrorLog.model_validate(self.data)
