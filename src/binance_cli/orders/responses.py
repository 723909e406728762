"""
Order submission outcomes.

``TradeResponse`` is a closed set of variants; presentation code switches on
the concrete class. Response bodies whose shape is not recognised become
``SuccessUnknown`` so they are shown rather than dropped.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from binance_cli.common.json_safe import json_safe
from binance_cli.common.time_utils import time_ms_to_utc
from binance_cli.exchange.base import RawOrderResponse

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class OrderState(str, Enum):
    TEST_OK = "TEST_OK"
    ACKED = "ACKED"
    FILLED = "FILLED"
    PARTIALLY_FILLED = "PARTIALLY_FILLED"
    UNKNOWN = "UNKNOWN"
    REJECTED = "REJECTED"
    EXCHANGE_REJECTED = "EXCHANGE_REJECTED"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"


class _OrderModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class Fill(_OrderModel):
    price: Decimal
    qty: Decimal
    commission: Decimal = ZERO
    commission_asset: str = Field(default="", alias="commissionAsset")
    trade_id: int = Field(default=0, alias="tradeId")


class AckRec(_OrderModel):
    symbol: str
    order_id: int = Field(alias="orderId")
    order_list_id: int = Field(default=-1, alias="orderListId")
    client_order_id: str = Field(default="", alias="clientOrderId")
    transact_time: int = Field(default=0, alias="transactTime")


class ResultRec(AckRec):
    price: Decimal = ZERO
    orig_qty: Decimal = Field(alias="origQty")
    executed_qty: Decimal = Field(alias="executedQty")
    cummulative_quote_qty: Decimal = Field(alias="cummulativeQuoteQty")
    status: str
    time_in_force: str = Field(default="", alias="timeInForce")
    order_type: str = Field(default="MARKET", alias="type")
    side: str


class FullRec(ResultRec):
    fills: Tuple[Fill, ...] = ()

    @property
    def avg_fill_price(self) -> Decimal:
        if self.executed_qty <= 0:
            return ZERO
        return self.cummulative_quote_qty / self.executed_qty


def _status_state(status: str) -> OrderState:
    if status == "FILLED":
        return OrderState.FILLED
    if status == "PARTIALLY_FILLED":
        return OrderState.PARTIALLY_FILLED
    return OrderState.ACKED


@dataclass(frozen=True)
class TradeResponse:
    test: bool
    query: str

    @property
    def state(self) -> OrderState:
        raise NotImplementedError

    @property
    def is_success(self) -> bool:
        return self.state not in {
            OrderState.REJECTED,
            OrderState.EXCHANGE_REJECTED,
            OrderState.TRANSPORT_ERROR,
        }

    def _payload(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        return json_safe(
            {
                "kind": type(self).__name__,
                "state": self.state,
                "test": self.test,
                "query": self.query,
                **self._payload(),
            }
        )


@dataclass(frozen=True)
class SuccessTest(TradeResponse):
    @property
    def state(self) -> OrderState:
        return OrderState.TEST_OK

    def __str__(self) -> str:
        return "TEST OK"


@dataclass(frozen=True)
class SuccessAck(TradeResponse):
    rec: AckRec

    @property
    def state(self) -> OrderState:
        return OrderState.ACKED

    def _payload(self) -> Dict[str, Any]:
        return {"response": self.rec}

    def __str__(self) -> str:
        return (
            f"PENDING {self.rec.symbol} order_id: {self.rec.order_id} "
            f"client_order_id: {self.rec.client_order_id} "
            f"transact_time: {time_ms_to_utc(self.rec.transact_time).isoformat()}"
        )


@dataclass(frozen=True)
class SuccessResult(TradeResponse):
    rec: ResultRec

    @property
    def state(self) -> OrderState:
        return _status_state(self.rec.status)

    def _payload(self) -> Dict[str, Any]:
        return {"response": self.rec}

    def __str__(self) -> str:
        return (
            f"{self.rec.status} {self.rec.side} {self.rec.executed_qty} of {self.rec.symbol} "
            f"for {self.rec.cummulative_quote_qty} order_id: {self.rec.order_id}"
        )


@dataclass(frozen=True)
class SuccessFull(TradeResponse):
    rec: FullRec

    @property
    def state(self) -> OrderState:
        return _status_state(self.rec.status)

    def _payload(self) -> Dict[str, Any]:
        return {"response": self.rec}

    def __str__(self) -> str:
        return (
            f"{self.rec.status} {self.rec.side} {self.rec.executed_qty} of {self.rec.symbol} "
            f"for {self.rec.cummulative_quote_qty} avg price: {self.rec.avg_fill_price:.8f} "
            f"fills: {len(self.rec.fills)} order_id: {self.rec.order_id}"
        )


@dataclass(frozen=True)
class SuccessUnknown(TradeResponse):
    body: str
    error_internal: str = ""

    @property
    def state(self) -> OrderState:
        return OrderState.UNKNOWN

    def _payload(self) -> Dict[str, Any]:
        return {"body": self.body, "error_internal": self.error_internal}

    def __str__(self) -> str:
        return f"UNKNOWN response: {self.body}"


@dataclass(frozen=True)
class FailureResponse(TradeResponse):
    status_code: int
    body: str

    @property
    def state(self) -> OrderState:
        return OrderState.EXCHANGE_REJECTED

    def _payload(self) -> Dict[str, Any]:
        return {"status_code": self.status_code, "body": self.body}

    def __str__(self) -> str:
        return f"FAILED HTTP {self.status_code}: {self.body}"


@dataclass(frozen=True)
class FailureInternal(TradeResponse):
    reason: str
    message: str

    @property
    def state(self) -> OrderState:
        return OrderState.REJECTED

    def _payload(self) -> Dict[str, Any]:
        return {"reason": self.reason, "message": self.message}

    def __str__(self) -> str:
        return f"REJECTED {self.reason}: {self.message}"


@dataclass(frozen=True)
class FailureTransport(TradeResponse):
    message: str

    @property
    def state(self) -> OrderState:
        return OrderState.TRANSPORT_ERROR

    def _payload(self) -> Dict[str, Any]:
        return {"message": self.message}

    def __str__(self) -> str:
        return f"TRANSPORT ERROR: {self.message}"


def parse_trade_response(raw: RawOrderResponse, *, test: bool) -> TradeResponse:
    if not raw.ok:
        logger.warning("order rejected: HTTP %s %s", raw.status_code, raw.body)
        return FailureResponse(test=test, query=raw.query, status_code=raw.status_code, body=raw.body)
    if test:
        return SuccessTest(test=True, query=raw.query)

    try:
        payload = json.loads(raw.body)
    except json.JSONDecodeError as exc:
        return SuccessUnknown(test=test, query=raw.query, body=raw.body, error_internal=str(exc))
    if not isinstance(payload, dict):
        return SuccessUnknown(test=test, query=raw.query, body=raw.body, error_internal="body is not an object")

    try:
        if "fills" in payload:
            return SuccessFull(test=test, query=raw.query, rec=FullRec.model_validate(payload))
        if "status" in payload:
            return SuccessResult(test=test, query=raw.query, rec=ResultRec.model_validate(payload))
        if "orderId" in payload:
            return SuccessAck(test=test, query=raw.query, rec=AckRec.model_validate(payload))
    except ValidationError as exc:
        return SuccessUnknown(test=test, query=raw.query, body=raw.body, error_internal=str(exc))
    return SuccessUnknown(test=test, query=raw.query, body=raw.body)
