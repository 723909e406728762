import json
from decimal import Decimal

from binance_cli.exchange.base import RawOrderResponse
from binance_cli.orders.responses import (
    FailureInternal,
    FailureResponse,
    OrderState,
    SuccessAck,
    SuccessFull,
    SuccessResult,
    SuccessTest,
    SuccessUnknown,
    parse_trade_response,
)

ACK_BODY = {
    "symbol": "BNBUSD",
    "orderId": 28,
    "orderListId": -1,
    "clientOrderId": "6gCrw2kRUAF9CvJDGP16IP",
    "transactTime": 1507725176595,
}
RESULT_BODY = {
    **ACK_BODY,
    "price": "0.00000000",
    "origQty": "10.00000000",
    "executedQty": "10.00000000",
    "cummulativeQuoteQty": "10.00000000",
    "status": "FILLED",
    "timeInForce": "GTC",
    "type": "MARKET",
    "side": "SELL",
}
FULL_BODY = {
    **RESULT_BODY,
    "status": "PARTIALLY_FILLED",
    "executedQty": "3.00000000",
    "cummulativeQuoteQty": "12.00000000",
    "fills": [
        {"price": "4.00000000", "qty": "1.00000000", "commission": "0.004", "commissionAsset": "USD", "tradeId": 56},
        {"price": "4.00000000", "qty": "2.00000000", "commission": "0.008", "commissionAsset": "USD", "tradeId": 57},
    ],
}


def _raw(body, status_code: int = 200) -> RawOrderResponse:
    text = body if isinstance(body, str) else json.dumps(body)
    return RawOrderResponse(status_code=status_code, body=text, query="symbol=BNBUSD&signature=<redacted>")


def test_test_mode_success() -> None:
    response = parse_trade_response(_raw("{}"), test=True)
    assert isinstance(response, SuccessTest)
    assert response.state is OrderState.TEST_OK
    assert response.is_success


def test_ack_result_and_full_shapes() -> None:
    ack = parse_trade_response(_raw(ACK_BODY), test=False)
    assert isinstance(ack, SuccessAck)
    assert ack.rec.order_id == 28
    assert ack.state is OrderState.ACKED

    result = parse_trade_response(_raw(RESULT_BODY), test=False)
    assert isinstance(result, SuccessResult)
    assert result.rec.executed_qty == Decimal("10")
    assert result.state is OrderState.FILLED

    full = parse_trade_response(_raw(FULL_BODY), test=False)
    assert isinstance(full, SuccessFull)
    assert len(full.rec.fills) == 2
    assert full.rec.fills[1].trade_id == 57
    assert full.rec.avg_fill_price == Decimal("4")
    assert full.state is OrderState.PARTIALLY_FILLED
    assert "PARTIALLY_FILLED SELL 3.00000000 of BNBUSD" in str(full)


def test_unrecognised_bodies_are_unknown_successes() -> None:
    unknown = parse_trade_response(_raw({"hello": "world"}), test=False)
    assert isinstance(unknown, SuccessUnknown)
    assert unknown.state is OrderState.UNKNOWN
    assert unknown.is_success

    garbled = parse_trade_response(_raw("not json"), test=False)
    assert isinstance(garbled, SuccessUnknown)
    assert garbled.error_internal

    bad_shape = parse_trade_response(_raw({"orderId": "abc", "symbol": "BNBUSD"}), test=False)
    assert isinstance(bad_shape, SuccessUnknown)


def test_non_2xx_is_failure_response_with_body() -> None:
    body = '{"code":-2010,"msg":"Account has insufficient balance for requested action."}'
    response = parse_trade_response(_raw(body, status_code=400), test=True)
    assert isinstance(response, FailureResponse)
    assert response.status_code == 400
    assert response.body == body
    assert response.state is OrderState.EXCHANGE_REJECTED
    assert not response.is_success


def test_to_dict_is_json_safe() -> None:
    full = parse_trade_response(_raw(FULL_BODY), test=False)
    payload = full.to_dict()
    json.dumps(payload)
    assert payload["kind"] == "SuccessFull"
    assert payload["state"] == "PARTIALLY_FILLED"
    assert payload["response"]["fills"][0]["commissionAsset"] == "USD"
    assert payload["response"]["executedQty"] == "3.00000000"

    internal = FailureInternal(test=False, query="", reason="BELOW_MIN_NOTIONAL", message="too small")
    assert internal.to_dict()["reason"] == "BELOW_MIN_NOTIONAL"
    assert str(internal) == "REJECTED BELOW_MIN_NOTIONAL: too small"
