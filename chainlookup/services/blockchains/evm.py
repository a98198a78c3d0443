"""
EVM 계열 리졸버 (Ethereum, BSC, Polygon)

체인마다 엔드포인트, 네이티브 코인, 토큰 테이블만 다르고 조회 순서는 같다.
  1. eth_getTransactionByHash  (없으면 None)
  2. eth_getTransactionReceipt (status, logs, gasUsed)
  3. eth_getBlockByNumber      (timestamp, 없으면 현재 시각으로 추정)
  4. Transfer 이벤트 로그가 있으면 토큰 전송, 없으면 네이티브 전송
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Mapping, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field

from chainlookup.configuration import config
from chainlookup.exceptions import MalformedResponseError, UpstreamError
from chainlookup.models import NATIVE, Network, NormalizedTransaction, TokenMetadata, TxStatus
from chainlookup.services import tokens
from chainlookup.services.blockchains.base import ChainResolver
from chainlookup.services.units import format_amount, format_fee, parse_int, resolve_timestamp

logger = logging.getLogger(__name__)

NATIVE_DECIMALS = 18
TOKEN_AMOUNT_PLACES = 6
FEE_PLACES = 6


@dataclass(frozen=True)
class EvmChain:
    """EVM 체인별 설정"""
    network: Network
    chain_id: int
    native_symbol: str
    native_name: str
    token_standard: str
    tokens: Mapping[str, TokenMetadata]
    aliases: tuple = ()


ETHEREUM = EvmChain(Network.ETHEREUM, 1, "ETH", "Ethereum", "ERC20", tokens.ERC20_TOKENS, ("ethereum", "eth"))
BSC = EvmChain(Network.BSC, 56, "BNB", "Binance Coin", "BEP20", tokens.BEP20_TOKENS, ("bsc", "bnb"))
POLYGON = EvmChain(Network.POLYGON, 137, "MATIC", "Polygon", "ERC20", tokens.POLYGON_TOKENS, ("polygon", "matic", "pol"))


# --- 응답 페이로드 (필요한 필드만 명시) ---
class EvmLog(BaseModel):
    model_config = ConfigDict(extra="ignore")

    address: str
    topics: list[str] = []
    data: Optional[str] = None


class EvmTransaction(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    hash: Optional[str] = None
    from_address: str = Field(alias="from")
    to_address: Optional[str] = Field(default=None, alias="to")
    value: Optional[str] = None
    gas_price: Optional[str] = Field(default=None, alias="gasPrice")
    block_number: Optional[str] = Field(default=None, alias="blockNumber")


class EvmReceipt(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    status: Optional[str] = None
    gas_used: Optional[str] = Field(default=None, alias="gasUsed")
    effective_gas_price: Optional[str] = Field(default=None, alias="effectiveGasPrice")
    contract_address: Optional[str] = Field(default=None, alias="contractAddress")
    logs: list[EvmLog] = []


class EvmBlock(BaseModel):
    model_config = ConfigDict(extra="ignore")

    timestamp: Optional[str] = None


@dataclass(frozen=True)
class TokenTransfer:
    contract: str
    metadata: TokenMetadata
    from_address: str
    to_address: str
    amount: str


def find_transfer_log(logs: list) -> Optional[EvmLog]:
    """topics[0]이 Transfer 시그니처인 첫 번째 로그"""
    for log in logs:
        if log.topics and log.topics[0].lower() == tokens.TRANSFER_TOPIC:
            return log
    return None


def topic_to_address(topic: Optional[str]) -> str:
    """32바이트 topic의 오른쪽 20바이트를 주소로"""
    if not topic:
        return "Unknown"
    return "0x" + topic[-40:].lower()


def receipt_status(receipt: Optional[EvmReceipt]) -> TxStatus:
    if receipt is None:
        return TxStatus.PENDING
    return TxStatus.SUCCESS if receipt.status == "0x1" else TxStatus.FAILED


def calculate_fee(gas_price: Optional[str], gas_used: Optional[str], unit: str) -> str:
    price = parse_int(gas_price)
    used = parse_int(gas_used)
    fee_wei = price * used if price is not None and used is not None else 0
    return format_fee(fee_wei, NATIVE_DECIMALS, FEE_PLACES, unit)


# 익스플로러 proxy 모듈 파라미터 매핑 (JSON-RPC params → 쿼리스트링)
def _explorer_params(method: str, params: list) -> dict:
    if method in ("eth_getTransactionByHash", "eth_getTransactionReceipt"):
        return {"txhash": params[0]}
    if method == "eth_getBlockByNumber":
        return {"tag": params[0], "boolean": "true" if params[1] else "false"}
    if method == "eth_call":
        call, tag = params
        return {"to": call["to"], "data": call["data"], "tag": tag}
    raise ValueError(f"지원하지 않는 메서드: {method}")


class EvmResolver(ChainResolver):
    """Etherscan 계열 익스플로러 proxy API 또는 JSON-RPC 노드로 조회"""

    def __init__(
        self,
        chain: EvmChain,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        rpc_url: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.chain = chain
        self.network = chain.network
        self.symbol = chain.native_symbol
        self.aliases = chain.aliases
        self.api_url = api_url or config.ETHERSCAN_API_URL
        self.api_key = api_key
        self.rpc_url = rpc_url

    @property
    def rpc_mode(self) -> bool:
        return bool(self.rpc_url)

    async def _call(self, client: httpx.AsyncClient, method: str, *params):
        if self.rpc_mode:
            payload = {"jsonrpc": "2.0", "method": method, "params": list(params), "id": 1}
            data = await self._post_json(client, self.rpc_url, payload)
        else:
            query = {"chainid": self.chain.chain_id, "module": "proxy", "action": method}
            query.update(_explorer_params(method, list(params)))
            if self.api_key:
                query["apikey"] = self.api_key
            data = await self._get_json(client, self.api_url, params=query)

        if not isinstance(data, dict):
            raise MalformedResponseError(f"{method} 응답이 객체가 아님: {str(data)[:200]}", self.name)
        if data.get("error"):
            raise UpstreamError(f"{method} RPC 오류 → {data['error']}", self.name, endpoint=self.rpc_url or self.api_url)
        result = data.get("result")
        # 익스플로러 오류 응답: {"status": "0", "message": "NOTOK", "result": "Invalid API Key"}
        if data.get("status") == "0" and isinstance(result, str):
            raise UpstreamError(f"{method} 익스플로러 오류 → {result}", self.name, endpoint=self.api_url)
        return result

    async def _call_object(self, client: httpx.AsyncClient, method: str, *params) -> Optional[dict]:
        result = await self._call(client, method, *params)
        if result is None:
            return None
        if not isinstance(result, dict):
            raise MalformedResponseError(f"{method} result가 객체가 아님: {str(result)[:200]}", self.name)
        return result

    async def introspect_token(self, client: httpx.AsyncClient, contract: str) -> TokenMetadata:
        """eth_call로 name()/symbol()/decimals() 조회"""
        name_hex, symbol_hex, decimals_hex = await asyncio.gather(
            self._call(client, "eth_call", {"to": contract, "data": tokens.NAME_SELECTOR}, "latest"),
            self._call(client, "eth_call", {"to": contract, "data": tokens.SYMBOL_SELECTOR}, "latest"),
            self._call(client, "eth_call", {"to": contract, "data": tokens.DECIMALS_SELECTOR}, "latest"),
        )
        return tokens.metadata_from_abi(symbol_hex, decimals_hex, name_hex, default_decimals=NATIVE_DECIMALS)

    async def parse_token_transfer(self, client: httpx.AsyncClient, log: EvmLog) -> TokenTransfer:
        contract = log.address.lower()
        metadata = await tokens.resolve_token_metadata(
            self.chain.tokens,
            contract,
            lambda address: self.introspect_token(client, address),
            default_decimals=NATIVE_DECIMALS,
            chain=self.name,
        )
        topics = log.topics
        raw_amount = tokens.decode_transfer_value(log.data)
        return TokenTransfer(
            contract=contract,
            metadata=metadata,
            from_address=topic_to_address(topics[1] if len(topics) > 1 else None),
            to_address=topic_to_address(topics[2] if len(topics) > 2 else None),
            amount=format_amount(raw_amount, metadata.decimals, TOKEN_AMOUNT_PLACES),
        )

    async def _block_timestamp(self, client: httpx.AsyncClient, block_number: Optional[str]) -> Optional[int]:
        if block_number is None:
            return None
        block_data = await self._call_object(client, "eth_getBlockByNumber", block_number, False)
        if not block_data:
            return None
        return parse_int(EvmBlock.model_validate(block_data).timestamp)

    async def _resolve(self, client: httpx.AsyncClient, tx_hash: str) -> Optional[NormalizedTransaction]:
        tx_data = await self._call_object(client, "eth_getTransactionByHash", tx_hash)
        if not tx_data:
            logger.debug(f"[{self.name}] 트랜잭션을 찾을 수 없음: {tx_hash}")
            return None
        tx = EvmTransaction.model_validate(tx_data)

        receipt_data = await self._call_object(client, "eth_getTransactionReceipt", tx_hash)
        receipt = EvmReceipt.model_validate(receipt_data) if receipt_data else None

        timestamp, date_time, estimated = resolve_timestamp(await self._block_timestamp(client, tx.block_number))

        gas_price = tx.gas_price or (receipt.effective_gas_price if receipt else None)
        common = dict(
            hash=tx_hash,
            network=self.network,
            timestamp=timestamp,
            date_time=date_time,
            timestamp_is_estimated=estimated,
            status=receipt_status(receipt),
            fee=calculate_fee(gas_price, receipt.gas_used if receipt else None, self.chain.native_symbol),
            block_number=parse_int(tx.block_number),
        )

        transfer_log = find_transfer_log(receipt.logs) if receipt else None
        if transfer_log is not None:
            transfer = await self.parse_token_transfer(client, transfer_log)
            logger.debug(f"[{self.name}] {self.chain.token_standard} 전송 감지: {transfer.contract}")
            return NormalizedTransaction(
                network_type=self.chain.token_standard,
                coin=transfer.metadata.symbol,
                token_name=transfer.metadata.name,
                contract_address=transfer.contract,
                from_address=transfer.from_address,
                to_address=transfer.to_address,
                amount=transfer.amount,
                **common,
            )

        # 컨트랙트 생성 트랜잭션은 to가 없음
        to_address = tx.to_address or (receipt.contract_address if receipt else None) or "Unknown"
        return NormalizedTransaction(
            network_type=NATIVE,
            coin=self.chain.native_symbol,
            token_name=self.chain.native_name,
            contract_address=None,
            from_address=tx.from_address,
            to_address=to_address,
            amount=format_amount(parse_int(tx.value) if tx.value is not None else 0, NATIVE_DECIMALS),
            **common,
        )


def ethereum_resolver(**kwargs) -> EvmResolver:
    kwargs.setdefault("api_key", config.ETHERSCAN_API_KEY)
    kwargs.setdefault("rpc_url", config.ETHEREUM_RPC_URL)
    return EvmResolver(ETHEREUM, **kwargs)


def bsc_resolver(**kwargs) -> EvmResolver:
    kwargs.setdefault("api_key", config.BSCSCAN_API_KEY)
    kwargs.setdefault("rpc_url", config.BSC_RPC_URL)
    return EvmResolver(BSC, **kwargs)


def polygon_resolver(**kwargs) -> EvmResolver:
    kwargs.setdefault("api_key", config.POLYGONSCAN_API_KEY)
    kwargs.setdefault("rpc_url", config.POLYGON_RPC_URL)
    return EvmResolver(POLYGON, **kwargs)
