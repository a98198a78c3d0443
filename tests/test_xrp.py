import json

import httpx
import pytest

from chainlookup.models import Network
from chainlookup.services.blockchains.xrp import (
    MISSING_DESTINATION_TAG,
    XrpResolver,
    decode_currency,
    flatten_tx_result,
)

TX_HASH = "E" * 64
PRIMARY = "https://xrp-a.test"
SECONDARY = "https://xrp-b.test"
RIPPLE_DATE = 757382400  # 2024-01-01T00:00:00Z


def payment(**overrides):
    tx = {
        "hash": TX_HASH,
        "TransactionType": "Payment",
        "Account": "rSender",
        "Destination": "rExchange",
        "Amount": "25000000",
        "Fee": "12",
        "date": RIPPLE_DATE,
        "ledger_index": 85_000_000,
        "validated": True,
        "meta": {"TransactionResult": "tesSUCCESS"},
    }
    tx.update(overrides)
    return tx


def rippled(tx=None, flags=0, down=(), calls=None):
    """method 별로 응답하는 rippled 흉내. down 에 포함된 호스트는 503"""
    def handler(request):
        body = request_body(request)
        if calls is not None:
            calls.append((request.url.host, body["method"]))
        if f"https://{request.url.host}" in down:
            return httpx.Response(503)
        if body["method"] == "tx":
            if tx is None:
                return httpx.Response(200, json={"result": {"error": "txnNotFound", "status": "error"}})
            return httpx.Response(200, json={"result": tx})
        if body["method"] == "account_info":
            return httpx.Response(200, json={"result": {"account_data": {"Flags": flags}}})
        return httpx.Response(400)
    return handler


def request_body(request):
    return json.loads(request.content)


def resolver(client):
    return XrpResolver(endpoints=[PRIMARY, SECONDARY], client=client)


@pytest.mark.asyncio
async def test_native_payment(make_client):
    client = make_client(rippled(payment(DestinationTag=12345), flags=0x00020000))
    result = await resolver(client).get_transaction(TX_HASH)

    assert result.network == Network.XRP
    assert result.network_type == "Native"
    assert result.coin == "XRP"
    assert result.token_name == "Ripple"
    assert result.amount == "25"
    assert result.fee == "0.000012 XRP"
    assert result.timestamp == 1704067200
    assert result.destination_tag == 12345
    assert result.error is None
    assert result.transaction_result == "tesSUCCESS"
    assert result.status == "success"
    assert result.block_number == 85_000_000


@pytest.mark.asyncio
async def test_missing_destination_tag_is_flagged(make_client):
    client = make_client(rippled(payment(), flags=0x00020000 | 0x00100000))
    result = await resolver(client).get_transaction(TX_HASH)

    assert result.error == MISSING_DESTINATION_TAG
    assert "destination tag" in result.error_details
    assert result.to_dict()["destinationTag"] is None


@pytest.mark.asyncio
async def test_destination_without_flag_has_no_error(make_client):
    client = make_client(rippled(payment(), flags=0))
    result = await resolver(client).get_transaction(TX_HASH)
    assert result.error is None
    assert result.error_details is None


@pytest.mark.asyncio
async def test_account_deletion_error(make_client):
    tx = payment(DestinationTag=1, meta={"TransactionResult": "tecNO_DST_INSUF_XRP"})
    client = make_client(rippled(tx))
    result = await resolver(client).get_transaction(TX_HASH)

    assert result.error == "Account Deletion"
    assert result.status == "failed"


@pytest.mark.asyncio
async def test_falls_back_to_secondary_endpoint(make_client):
    calls = []
    client = make_client(rippled(payment(DestinationTag=1), down={PRIMARY}, calls=calls))
    result = await resolver(client).get_transaction(TX_HASH)

    assert result is not None
    assert calls[:2] == [("xrp-a.test", "tx"), ("xrp-b.test", "tx")]


@pytest.mark.asyncio
async def test_not_found_on_every_endpoint_returns_none(make_client):
    calls = []
    client = make_client(rippled(None, calls=calls))
    assert await resolver(client).get_transaction(TX_HASH) is None
    assert [host for host, _ in calls] == ["xrp-a.test", "xrp-b.test"]


@pytest.mark.asyncio
async def test_account_check_failure_assumes_no_tag_required(make_client):
    def handler(request):
        if request_body(request)["method"] == "account_info":
            return httpx.Response(503)
        return httpx.Response(200, json={"result": payment()})

    result = await resolver(make_client(handler)).get_transaction(TX_HASH)
    assert result.error is None


@pytest.mark.asyncio
async def test_non_payment_returns_none(make_client):
    client = make_client(rippled(payment(TransactionType="OfferCreate")))
    assert await resolver(client).get_transaction(TX_HASH) is None


@pytest.mark.asyncio
async def test_issued_currency_payment(make_client):
    amount = {"value": "100.50", "currency": "USD", "issuer": "rIssuer"}
    client = make_client(rippled(payment(Amount=amount, DestinationTag=7)))
    result = await resolver(client).get_transaction(TX_HASH)

    assert result.network_type == "IOU"
    assert result.coin == "USD"
    assert result.contract_address == "rIssuer"
    assert result.amount == "100.5"


@pytest.mark.asyncio
async def test_api_v2_tx_json_shape(make_client):
    moved = ("meta", "validated", "hash", "date", "ledger_index", "Amount")
    tx_json = {key: value for key, value in payment(DestinationTag=9).items() if key not in moved}
    tx_json["DeliverMax"] = "25000000"
    result_v2 = {
        "hash": TX_HASH,
        "tx_json": tx_json,
        "meta": {"TransactionResult": "tesSUCCESS"},
        "validated": True,
        "ledger_index": 85_000_000,
        "close_time_iso": "2024-01-01T00:00:00Z",
    }
    client = make_client(rippled(result_v2))
    result = await resolver(client).get_transaction(TX_HASH)

    assert result.amount == "25"
    assert result.network_type == "Native"
    assert result.destination_tag == 9
    assert result.block_number == 85_000_000
    assert result.timestamp == 1704067200
    assert result.timestamp_is_estimated is False


@pytest.mark.asyncio
async def test_amount_preferred_over_deliver_max(make_client):
    client = make_client(rippled(payment(DestinationTag=1, DeliverMax="99000000")))
    result = await resolver(client).get_transaction(TX_HASH)
    assert result.amount == "25"


@pytest.mark.asyncio
async def test_unvalidated_transaction_is_pending(make_client):
    client = make_client(rippled(payment(DestinationTag=1, meta={}, validated=False)))
    result = await resolver(client).get_transaction(TX_HASH)
    assert result.status == "pending"


def test_flatten_tx_result_keeps_flat_shape():
    assert flatten_tx_result({"Account": "r1"}) == {"Account": "r1"}


def test_decode_hex_currency():
    assert decode_currency("534F4C4F00000000000000000000000000000000") == "SOLO"
    assert decode_currency("USD") == "USD"
