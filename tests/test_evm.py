import httpx
import pytest

from chainlookup.models import Network
from chainlookup.services import tokens
from chainlookup.services.blockchains.evm import (
    BSC,
    ETHEREUM,
    POLYGON,
    EvmResolver,
    calculate_fee,
    receipt_status,
    topic_to_address,
)

TX_HASH = "0x" + "ab" * 32
SENDER = "0x1111111111111111111111111111111111111111"
RECIPIENT = "0x2222222222222222222222222222222222222222"
USDT = "0xdac17f958d2ee523a2206206994597c13d831ec7"
BLOCK_TIME = 1704067200


def word(value: int) -> str:
    return "0x" + f"{value:064x}"


def address_topic(address: str) -> str:
    return "0x" + "0" * 24 + address[2:]


def native_tx(value="0xde0b6b3a7640000"):
    return {
        "hash": TX_HASH,
        "from": SENDER,
        "to": RECIPIENT,
        "value": value,
        "gasPrice": "0x4a817c800",
        "blockNumber": "0x121eac0",
    }


def receipt(status="0x1", logs=None):
    return {"status": status, "gasUsed": "0x5208", "logs": logs or []}


def transfer_log(contract=USDT, amount=1_000_000):
    return {
        "address": contract,
        "topics": [tokens.TRANSFER_TOPIC, address_topic(SENDER), address_topic(RECIPIENT)],
        "data": word(amount),
    }


def explorer_handler(tx=None, tx_receipt=None, block=None, calls=None, seen=None):
    """Etherscan proxy 모듈 흉내 (action 파라미터로 분기)"""
    def handler(request):
        params = request.url.params
        if seen is not None:
            seen.append(dict(params))
        action = params["action"]
        if action == "eth_getTransactionByHash":
            result = tx
        elif action == "eth_getTransactionReceipt":
            result = tx_receipt
        elif action == "eth_getBlockByNumber":
            result = block if block is not None else {"timestamp": hex(BLOCK_TIME)}
        elif action == "eth_call":
            if calls is None:
                return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "execution reverted"}})
            result = calls.get(params["data"], "0x")
        else:
            return httpx.Response(400)
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": result})
    return handler


def resolver(client, chain=ETHEREUM):
    return EvmResolver(chain, api_url="https://explorer.test/v2/api", api_key="KEY", client=client)


@pytest.mark.asyncio
async def test_native_transfer(make_client):
    seen = []
    client = make_client(explorer_handler(tx=native_tx(), tx_receipt=receipt(), seen=seen))

    result = await resolver(client).get_transaction(TX_HASH)

    assert result.network == Network.ETHEREUM
    assert result.network_type == "Native"
    assert result.coin == "ETH"
    assert result.contract_address is None
    assert result.from_address == SENDER
    assert result.to_address == RECIPIENT
    assert result.amount == "1"
    assert result.fee == "0.000420 ETH"
    assert result.status == "success"
    assert result.timestamp == BLOCK_TIME
    assert result.date_time == "2024-01-01T00:00:00.000Z"
    assert result.timestamp_is_estimated is False
    assert result.block_number == 0x121eac0
    assert all(params["chainid"] == "1" and params["apikey"] == "KEY" for params in seen)


@pytest.mark.asyncio
async def test_missing_transaction_returns_none(make_client):
    client = make_client(explorer_handler(tx=None))
    assert await resolver(client).get_transaction(TX_HASH) is None


@pytest.mark.asyncio
async def test_known_token_transfer(make_client):
    client = make_client(explorer_handler(tx=native_tx(value="0x0"), tx_receipt=receipt(logs=[transfer_log()])))

    result = await resolver(client).get_transaction(TX_HASH)

    assert result.network_type == "ERC20"
    assert result.coin == "USDT"
    assert result.token_name == "Tether USD"
    assert result.contract_address == USDT
    assert result.from_address == SENDER
    assert result.to_address == RECIPIENT
    assert result.amount == "1.000000"
    assert result.fee == "0.000420 ETH"


@pytest.mark.asyncio
async def test_bsc_token_uses_bep20_table(make_client):
    bsc_usdt = "0x55d398326f99059ff775485246999027b3197955"
    client = make_client(explorer_handler(
        tx=native_tx(value="0x0"),
        tx_receipt=receipt(logs=[transfer_log(contract=bsc_usdt, amount=25 * 10 ** 18)]),
    ))

    result = await resolver(client, chain=BSC).get_transaction(TX_HASH)

    assert result.network == Network.BSC
    assert result.network_type == "BEP20"
    assert result.amount == "25.000000"
    assert result.fee == "0.000420 BNB"


@pytest.mark.asyncio
async def test_huge_token_amount_is_not_truncated(make_client):
    client = make_client(explorer_handler(tx=native_tx(value="0x0"), tx_receipt=receipt(logs=[transfer_log(amount=2 ** 255)])))

    result = await resolver(client).get_transaction(TX_HASH)

    whole, fraction = divmod(2 ** 255, 10 ** 6)
    assert result is not None
    assert result.coin == "USDT"
    assert result.amount == f"{whole}.{fraction:06d}"


@pytest.mark.asyncio
async def test_empty_transfer_data_is_zero_amount(make_client):
    log = dict(transfer_log(), data="0x")
    client = make_client(explorer_handler(tx=native_tx(value="0x0"), tx_receipt=receipt(logs=[log])))

    result = await resolver(client).get_transaction(TX_HASH)

    assert result.amount == "0.000000"


@pytest.mark.asyncio
async def test_unknown_token_is_introspected(make_client):
    contract = "0x" + "3" * 40
    calls = {
        tokens.SYMBOL_SELECTOR: "0x" + f"{32:064x}" + f"{3:064x}" + b"TST".hex().ljust(64, "0"),
        tokens.NAME_SELECTOR: "0x" + f"{32:064x}" + f"{10:064x}" + b"Test Token".hex().ljust(64, "0"),
        tokens.DECIMALS_SELECTOR: word(8),
    }
    client = make_client(explorer_handler(
        tx=native_tx(value="0x0"),
        tx_receipt=receipt(logs=[transfer_log(contract=contract, amount=150_000_000)]),
        calls=calls,
    ))

    result = await resolver(client).get_transaction(TX_HASH)

    assert result.coin == "TST"
    assert result.token_name == "Test Token"
    assert result.amount == "1.500000"


@pytest.mark.asyncio
async def test_token_metadata_failure_uses_placeholders(make_client):
    contract = "0x" + "4" * 40
    client = make_client(explorer_handler(
        tx=native_tx(value="0x0"),
        tx_receipt=receipt(logs=[transfer_log(contract=contract, amount=10 ** 18)]),
        calls=None,
    ))

    result = await resolver(client).get_transaction(TX_HASH)

    assert result.coin == "UNKNOWN"
    assert result.token_name == "Unknown Token"
    assert result.amount == "1.000000"
    assert result.contract_address == contract


@pytest.mark.asyncio
async def test_failed_receipt_status(make_client):
    client = make_client(explorer_handler(tx=native_tx(), tx_receipt=receipt(status="0x0")))
    result = await resolver(client).get_transaction(TX_HASH)
    assert result.status == "failed"


@pytest.mark.asyncio
async def test_pending_transaction_without_receipt(make_client):
    pending = dict(native_tx(), blockNumber=None)
    client = make_client(explorer_handler(tx=pending, tx_receipt=None))

    result = await resolver(client).get_transaction(TX_HASH)

    assert result.status == "pending"
    assert result.fee == "0.000000 ETH"
    assert result.block_number is None
    assert result.timestamp_is_estimated is True


@pytest.mark.asyncio
async def test_undecodable_value_becomes_zero(make_client):
    client = make_client(explorer_handler(tx=native_tx(value="0xnot-hex"), tx_receipt=receipt()))
    result = await resolver(client).get_transaction(TX_HASH)
    assert result.amount == "0"


@pytest.mark.asyncio
async def test_explorer_error_returns_none(make_client):
    client = make_client(lambda request: httpx.Response(
        200, json={"status": "0", "message": "NOTOK", "result": "Invalid API Key"}
    ))
    assert await resolver(client).get_transaction(TX_HASH) is None


@pytest.mark.asyncio
async def test_rpc_mode_posts_json_rpc(make_client, read_body):
    methods = []

    def handler(request):
        body = read_body(request)
        methods.append(body["method"])
        assert request.method == "POST"
        results = {
            "eth_getTransactionByHash": native_tx(),
            "eth_getTransactionReceipt": receipt(),
            "eth_getBlockByNumber": {"timestamp": hex(BLOCK_TIME)},
        }
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": results[body["method"]]})

    client = make_client(handler)
    polygon = EvmResolver(POLYGON, rpc_url="https://polygon-rpc.test", client=client)

    result = await polygon.get_transaction(TX_HASH)

    assert result.coin == "MATIC"
    assert result.fee == "0.000420 MATIC"
    assert methods == ["eth_getTransactionByHash", "eth_getTransactionReceipt", "eth_getBlockByNumber"]


@pytest.mark.asyncio
async def test_same_hash_gives_same_record(make_client):
    client = make_client(explorer_handler(tx=native_tx(), tx_receipt=receipt(logs=[transfer_log()])))
    first = await resolver(client).get_transaction(TX_HASH)
    second = await resolver(client).get_transaction(TX_HASH)
    assert first == second


def test_fee_calculation():
    assert calculate_fee("0x4a817c800", "0x5208", "ETH") == "0.000420 ETH"
    assert calculate_fee(None, "0x5208", "ETH") == "0.000000 ETH"


def test_receipt_status_mapping():
    assert receipt_status(None) == "pending"


def test_topic_to_address():
    assert topic_to_address(address_topic(SENDER)) == SENDER
    assert topic_to_address(None) == "Unknown"
