"""
Tron 리졸버 (TronGrid)

트랜잭션 본문(gettransactionbyid)과 실행 정보(gettransactioninfobyid)를 따로 조회한다.
- TriggerSmartContract: 실행 정보 로그에서 TRC20 Transfer 이벤트 디코딩
- TransferContract: 컨트랙트 파라미터에서 네이티브 TRX 전송
- 그 외 타입: None
"""
import logging
from typing import Optional

import base58
import httpx
from pydantic import BaseModel, ConfigDict, Field

from chainlookup.configuration import config
from chainlookup.exceptions import ChainLookupError
from chainlookup.models import NATIVE, Network, NormalizedTransaction, TokenMetadata, TxStatus
from chainlookup.services import tokens
from chainlookup.services.blockchains.base import ChainResolver
from chainlookup.services.units import format_amount, format_fee, resolve_timestamp

logger = logging.getLogger(__name__)

SUN_DECIMALS = 6
TRON_ADDRESS_PREFIX = "41"
# 상수 호출용 더미 owner 주소
ZERO_OWNER_ADDRESS = "410000000000000000000000000000000000000000"
TRANSFER_TOPIC = tokens.TRANSFER_TOPIC[2:]


def hex_to_base58(hex_address: Optional[str]) -> Optional[str]:
    """
    Tron hex 주소(41 접두 21바이트, 또는 접두 없는 20바이트)를 base58check 주소(T...)로 변환.
    변환할 수 없는 값은 그대로 반환한다.
    """
    if not hex_address:
        return hex_address
    value = hex_address[2:] if hex_address.lower().startswith("0x") else hex_address
    if len(value) == 40:
        value = TRON_ADDRESS_PREFIX + value
    if len(value) != 42 or not value.lower().startswith(TRON_ADDRESS_PREFIX):
        return hex_address
    try:
        raw = bytes.fromhex(value)
    except ValueError:
        return hex_address
    return base58.b58encode_check(raw).decode("ascii")


def base58_to_hex(address: str) -> str:
    """base58check 주소 → 41 접두 hex (체크섬 불일치 시 ValueError)"""
    return base58.b58decode_check(address).hex()


# --- 응답 페이로드 ---
class TronContract(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str
    parameter: dict = {}

    @property
    def value(self) -> dict:
        return self.parameter.get("value") or {}


class TronRawData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    contract: list[TronContract] = []
    timestamp: Optional[int] = None


class TronRet(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    contract_ret: Optional[str] = Field(default=None, alias="contractRet")


class TronTransaction(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    tx_id: str = Field(alias="txID")
    raw_data: TronRawData
    ret: list[TronRet] = []


class TronLog(BaseModel):
    model_config = ConfigDict(extra="ignore")

    address: Optional[str] = None
    topics: list[str] = []
    data: Optional[str] = None


class TronReceipt(BaseModel):
    model_config = ConfigDict(extra="ignore")

    result: Optional[str] = None


class TronTransactionInfo(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    fee: Optional[int] = None
    block_number: Optional[int] = Field(default=None, alias="blockNumber")
    block_timestamp: Optional[int] = Field(default=None, alias="blockTimeStamp")
    receipt: TronReceipt = TronReceipt()
    log: list[TronLog] = []


def calculate_fee(info: Optional[TronTransactionInfo]) -> str:
    if not info or not info.fee:
        return "0 TRX"
    return format_fee(info.fee, SUN_DECIMALS, SUN_DECIMALS, "TRX")


def transaction_status(tx: TronTransaction, info: Optional[TronTransactionInfo]) -> TxStatus:
    # 실행 정보가 아직 없으면 블록에 포함되지 않은 상태
    if info is None or info.block_number is None:
        return TxStatus.PENDING
    result = info.receipt.result or (tx.ret[0].contract_ret if tx.ret else None)
    return TxStatus.SUCCESS if result == "SUCCESS" else TxStatus.FAILED


def find_transfer_log(logs: list) -> Optional[TronLog]:
    for log in logs:
        if log.topics and log.topics[0].lower().removeprefix("0x") == TRANSFER_TOPIC and len(log.topics) >= 3:
            return log
    return None


def topic_to_base58(topic: str) -> str:
    return hex_to_base58(TRON_ADDRESS_PREFIX + topic[-40:])


class TronResolver(ChainResolver):
    network = Network.TRON
    symbol = "TRX"
    aliases = ("tron", "trx")

    def __init__(self, api_url: Optional[str] = None, api_key: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self.api_url = (api_url or config.TRONGRID_API_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else config.TRONGRID_API_KEY

    @property
    def headers(self) -> dict:
        return {"TRON-PRO-API-KEY": self.api_key} if self.api_key else {}

    async def _wallet(self, client: httpx.AsyncClient, path: str, payload: dict):
        return await self._post_json(client, f"{self.api_url}/wallet/{path}", payload, headers=self.headers)

    async def _transaction_info(self, client: httpx.AsyncClient, tx_hash: str) -> Optional[TronTransactionInfo]:
        try:
            data = await self._wallet(client, "gettransactioninfobyid", {"value": tx_hash})
        except ChainLookupError as e:
            logger.debug(f"[{self.name}] 실행 정보 조회 실패 → {e.message}")
            return None
        if not data:
            return None
        return TronTransactionInfo.model_validate(data)

    async def introspect_token(self, client: httpx.AsyncClient, contract: str) -> TokenMetadata:
        """triggerconstantcontract로 name()/symbol()/decimals() 조회"""
        contract_hex = base58_to_hex(contract)
        results = {}
        for selector in ("name()", "symbol()", "decimals()"):
            data = await self._wallet(client, "triggerconstantcontract", {
                "owner_address": ZERO_OWNER_ADDRESS,
                "contract_address": contract_hex,
                "function_selector": selector,
                "parameter": "",
            })
            constant = (data or {}).get("constant_result") or []
            results[selector] = constant[0] if constant else None
        return tokens.metadata_from_abi(
            results["symbol()"], results["decimals()"], results["name()"], default_decimals=SUN_DECIMALS
        )

    async def _parse_trc20(
        self, client: httpx.AsyncClient, contract: TronContract, info: Optional[TronTransactionInfo]
    ) -> Optional[dict]:
        if not info or not info.log:
            return None
        transfer_log = find_transfer_log(info.log)
        if transfer_log is None:
            return None

        contract_hex = contract.value.get("contract_address") or transfer_log.address
        contract_address = hex_to_base58(contract_hex)
        metadata = await tokens.resolve_token_metadata(
            tokens.TRC20_TOKENS,
            contract_address,
            lambda address: self.introspect_token(client, address),
            default_decimals=SUN_DECIMALS,
            chain=self.name,
        )
        return dict(
            network_type="TRC20",
            coin=metadata.symbol,
            token_name=metadata.name,
            contract_address=contract_address,
            from_address=topic_to_base58(transfer_log.topics[1]),
            to_address=topic_to_base58(transfer_log.topics[2]),
            amount=format_amount(tokens.decode_transfer_value(transfer_log.data), metadata.decimals),
        )

    async def _resolve(self, client: httpx.AsyncClient, tx_hash: str) -> Optional[NormalizedTransaction]:
        data = await self._wallet(client, "gettransactionbyid", {"value": tx_hash})
        # 없는 해시는 빈 객체 {} 로 응답
        if not data or "raw_data" not in data:
            logger.debug(f"[{self.name}] 트랜잭션을 찾을 수 없음: {tx_hash}")
            return None
        tx = TronTransaction.model_validate(data)
        if not tx.raw_data.contract:
            return None
        contract = tx.raw_data.contract[0]
        info = await self._transaction_info(client, tx_hash)

        if contract.type == "TriggerSmartContract":
            fields = await self._parse_trc20(client, contract, info)
        elif contract.type == "TransferContract":
            value = contract.value
            fields = dict(
                network_type=NATIVE,
                coin="TRX",
                token_name="Tron",
                contract_address=None,
                from_address=hex_to_base58(value.get("owner_address")) or "Unknown",
                to_address=hex_to_base58(value.get("to_address")) or "Unknown",
                amount=format_amount(value.get("amount", 0), SUN_DECIMALS),
            )
        else:
            logger.debug(f"[{self.name}] 지원하지 않는 컨트랙트 타입: {contract.type}")
            return None

        if fields is None:
            logger.debug(f"[{self.name}] TRC20 Transfer 로그 없음: {tx_hash}")
            return None

        # TronGrid 타임스탬프는 밀리초
        millis = (info.block_timestamp if info else None) or tx.raw_data.timestamp
        timestamp, date_time, estimated = resolve_timestamp(millis // 1000 if millis else None)

        return NormalizedTransaction(
            hash=tx_hash,
            network=self.network,
            timestamp=timestamp,
            date_time=date_time,
            timestamp_is_estimated=estimated,
            status=transaction_status(tx, info),
            fee=calculate_fee(info),
            block_number=info.block_number if info else None,
            **fields,
        )
