import httpx
import pytest

from chainlookup.models import Network
from chainlookup.services.blockchains.eos import MISSING_MEMO, EosResolver, memo_missing, split_quantity

TX_HASH = "d" * 64
PRIMARY = "https://eos-a.test"
SECONDARY = "https://eos-b.test"
EXCHANGES = frozenset({"binancecleos", "huobideposit", "okbtothemoon", "krakenkraken"})


def eos_tx(actions, status="executed", block_time="2024-01-01T00:00:00.000"):
    return {
        "id": TX_HASH,
        "trx": {
            "receipt": {"status": status},
            "trx": {"expiration": "2024-01-01T00:00:30", "actions": actions},
        },
        "block_time": block_time,
        "block_num": 350_000_000,
    }


def transfer(to="binancecleos", memo="", quantity="10.0000 EOS", account="eosio.token"):
    return {
        "account": account,
        "name": "transfer",
        "authorization": [{"actor": "alice", "permission": "active"}],
        "data": {"from": "alice", "to": to, "quantity": quantity, "memo": memo},
    }


def history(payload, down=()):
    def handler(request):
        if f"https://{request.url.host}" in down:
            return httpx.Response(502)
        assert request.url.path == "/v1/history/get_transaction"
        return httpx.Response(200, json=payload)
    return handler


def resolver(client):
    return EosResolver(endpoints=[PRIMARY, SECONDARY], exchange_accounts=EXCHANGES, client=client)


@pytest.mark.asyncio
async def test_transfer_to_exchange_without_memo_is_flagged(make_client):
    client = make_client(history(eos_tx([transfer(memo="")])))
    result = await resolver(client).get_transaction(TX_HASH)

    assert result.network == Network.EOS
    assert result.amount == "10"
    assert result.coin == "EOS"
    assert result.fee == "0 EOS"
    assert result.error == MISSING_MEMO
    assert result.memo is None
    assert result.status == "success"
    assert result.timestamp == 1704067200
    assert result.block_number == 350_000_000


@pytest.mark.asyncio
async def test_transfer_with_memo_has_no_error(make_client):
    client = make_client(history(eos_tx([transfer(memo="123456")])))
    result = await resolver(client).get_transaction(TX_HASH)

    assert result.memo == "123456"
    assert result.error is None
    assert result.to_dict()["memo"] == "123456"


@pytest.mark.asyncio
async def test_transfer_to_personal_account_without_memo(make_client):
    client = make_client(history(eos_tx([transfer(to="bob", memo="")])))
    result = await resolver(client).get_transaction(TX_HASH)
    assert result.error is None


@pytest.mark.asyncio
async def test_custom_token_contract(make_client):
    action = transfer(to="bob", memo="x", quantity="5.0000 USDT", account="tethertether")
    client = make_client(history(eos_tx([action])))
    result = await resolver(client).get_transaction(TX_HASH)

    assert result.network_type == "Token"
    assert result.coin == "USDT"
    assert result.contract_address == "tethertether"


@pytest.mark.asyncio
async def test_non_transfer_returns_partial_record(make_client):
    action = {"account": "eosio", "name": "buyrambytes",
              "authorization": [{"actor": "alice", "permission": "active"}], "data": {}}
    client = make_client(history(eos_tx([action], block_time=None)))
    result = await resolver(client).get_transaction(TX_HASH)

    assert result.amount == "0"
    assert result.from_address == "alice"
    assert result.to_address == "Unknown"
    assert result.timestamp == 1704067230
    assert result.timestamp_is_estimated is True


@pytest.mark.asyncio
async def test_failed_receipt(make_client):
    client = make_client(history(eos_tx([transfer(memo="1")], status="hard_fail")))
    result = await resolver(client).get_transaction(TX_HASH)
    assert result.status == "failed"


@pytest.mark.asyncio
async def test_falls_back_to_secondary_endpoint(make_client):
    client = make_client(history(eos_tx([transfer(memo="1")]), down={PRIMARY}))
    result = await resolver(client).get_transaction(TX_HASH)
    assert result is not None


@pytest.mark.asyncio
async def test_all_endpoints_down_returns_none(make_client):
    client = make_client(history({}, down={PRIMARY, SECONDARY}))
    assert await resolver(client).get_transaction(TX_HASH) is None


def test_memo_missing_heuristic():
    assert memo_missing("", "binancecleos", EXCHANGES)
    assert memo_missing("   ", "krakenkraken", EXCHANGES)
    assert not memo_missing("42", "binancecleos", EXCHANGES)
    assert not memo_missing(None, "someone", EXCHANGES)


def test_split_quantity():
    assert split_quantity("1.2345 EOS") == ("1.2345", "EOS")
    assert split_quantity("") == ("0", "EOS")


@pytest.mark.asyncio
async def test_unknown_transaction_returns_none(make_client):
    def handler(request):
        return httpx.Response(500, json={"code": 500, "message": "Internal Service Error",
                                         "error": {"name": "tx_not_found"}})

    assert await resolver(make_client(handler)).get_transaction(TX_HASH) is None
