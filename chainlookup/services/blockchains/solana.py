"""
Solana 리졸버 (JSON-RPC getTransaction, jsonParsed 인코딩)

파싱된 instruction 중 첫 번째 transfer 를 사용한다.
- spl-token transfer / transferChecked: SPL 토큰 전송 (mint는 토큰 잔액 정보에서 보완)
- system transfer: 네이티브 SOL 전송
- 둘 다 없으면 계정별 lamports 잔액 변화로 송신자/수신자/금액 추정
"""
import logging
from typing import Any, Optional, Union

import base58
import httpx
from pydantic import BaseModel, ConfigDict, Field

from chainlookup.configuration import config
from chainlookup.exceptions import UpstreamError
from chainlookup.models import NATIVE, Network, NormalizedTransaction, TxStatus
from chainlookup.services import tokens
from chainlookup.services.blockchains.base import ChainResolver
from chainlookup.services.units import format_amount, format_fee, parse_int, resolve_timestamp

logger = logging.getLogger(__name__)

LAMPORT_DECIMALS = 9
SIGNATURE_BYTES = 64
TRANSFER_TYPES = ("transfer", "transferChecked")

# 테이블에 없는 SPL 토큰
SPL_SYMBOL = "SPL"
SPL_TOKEN_NAME = "Solana Token"
SPL_DEFAULT_DECIMALS = 9


class SolanaAccountKey(BaseModel):
    model_config = ConfigDict(extra="ignore")

    pubkey: str


class SolanaInstruction(BaseModel):
    model_config = ConfigDict(extra="ignore")

    program: Optional[str] = None
    # memo 프로그램 등은 문자열로 파싱됨
    parsed: Union[dict, str, None] = None


class SolanaMessage(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    account_keys: list[Union[SolanaAccountKey, str]] = Field(default=[], alias="accountKeys")
    instructions: list[SolanaInstruction] = []


class SolanaEnvelope(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message: SolanaMessage = SolanaMessage()


class SolanaTokenBalance(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    account_index: int = Field(alias="accountIndex")
    mint: str
    owner: Optional[str] = None
    ui_token_amount: dict = Field(default={}, alias="uiTokenAmount")


class SolanaMeta(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    err: Any = None
    fee: int = 0
    pre_balances: list[int] = Field(default=[], alias="preBalances")
    post_balances: list[int] = Field(default=[], alias="postBalances")
    pre_token_balances: list[SolanaTokenBalance] = Field(default=[], alias="preTokenBalances")
    post_token_balances: list[SolanaTokenBalance] = Field(default=[], alias="postTokenBalances")


class SolanaTransaction(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    slot: Optional[int] = None
    block_time: Optional[int] = Field(default=None, alias="blockTime")
    meta: Optional[SolanaMeta] = None
    transaction: SolanaEnvelope = SolanaEnvelope()

    @property
    def account_keys(self) -> list:
        return [key.pubkey if isinstance(key, SolanaAccountKey) else key for key in self.transaction.message.account_keys]


def is_signature(tx_hash: str) -> bool:
    """base58 디코딩 결과가 64바이트 서명인지"""
    try:
        return len(base58.b58decode(tx_hash)) == SIGNATURE_BYTES
    except ValueError:
        return False


def find_transfer(tx: SolanaTransaction) -> Optional[SolanaInstruction]:
    for instruction in tx.transaction.message.instructions:
        parsed = instruction.parsed
        if isinstance(parsed, dict) and parsed.get("type") in TRANSFER_TYPES:
            if instruction.program in ("spl-token", "system"):
                return instruction
    return None


def token_balance_for(tx: SolanaTransaction, address: Optional[str]) -> Optional[SolanaTokenBalance]:
    """토큰 계정 주소에 해당하는 잔액 항목 (mint, decimals 확인용)"""
    if not address or tx.meta is None:
        return None
    keys = tx.account_keys
    if address not in keys:
        return None
    index = keys.index(address)
    for balance in tx.meta.post_token_balances + tx.meta.pre_token_balances:
        if balance.account_index == index:
            return balance
    return None


def transaction_status(tx: SolanaTransaction) -> TxStatus:
    if tx.meta is None:
        return TxStatus.PENDING
    return TxStatus.SUCCESS if tx.meta.err is None else TxStatus.FAILED


def balance_change_transfer(tx: SolanaTransaction) -> tuple:
    """(from, to, lamports): 잔액이 줄어든 마지막 계정 → 늘어난 마지막 계정"""
    keys = tx.account_keys
    sender = keys[0] if keys else "Unknown"
    receiver = "Unknown"
    moved = 0
    if tx.meta is None:
        return sender, receiver, moved
    for index, (pre, post) in enumerate(zip(tx.meta.pre_balances, tx.meta.post_balances)):
        if index >= len(keys):
            break
        diff = post - pre
        if diff < 0:
            sender = keys[index]
            moved = -diff
        elif diff > 0:
            receiver = keys[index]
    return sender, receiver, moved


class SolanaResolver(ChainResolver):
    network = Network.SOLANA
    symbol = "SOL"
    aliases = ("solana", "sol")

    def __init__(self, rpc_url: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self.rpc_url = rpc_url or config.SOLANA_RPC_URL

    def _spl_transfer(self, tx: SolanaTransaction, info: dict) -> dict:
        balance = token_balance_for(tx, info.get("destination")) or token_balance_for(tx, info.get("source"))
        mint = info.get("mint") or (balance.mint if balance else None)
        known = tokens.lookup_known_token(tokens.SPL_TOKENS, mint) if mint else None

        token_amount = info.get("tokenAmount") or {}
        decimals = token_amount.get("decimals")
        if decimals is None and balance is not None:
            decimals = balance.ui_token_amount.get("decimals")
        if decimals is None:
            decimals = known.decimals if known else SPL_DEFAULT_DECIMALS

        raw_amount = parse_int(info.get("amount") or token_amount.get("amount") or 0)
        return dict(
            network_type="SPL",
            coin=known.symbol if known else SPL_SYMBOL,
            token_name=known.name if known else SPL_TOKEN_NAME,
            contract_address=mint or "Unknown",
            from_address=info.get("source") or info.get("authority") or "Unknown",
            to_address=info.get("destination") or "Unknown",
            amount=format_amount(raw_amount, decimals),
        )

    def _native(self, from_address: str, to_address: str, lamports: Optional[int]) -> dict:
        return dict(
            network_type=NATIVE,
            coin="SOL",
            token_name="Solana",
            contract_address=None,
            from_address=from_address or "Unknown",
            to_address=to_address or "Unknown",
            amount=format_amount(lamports, LAMPORT_DECIMALS),
        )

    async def _resolve(self, client: httpx.AsyncClient, tx_hash: str) -> Optional[NormalizedTransaction]:
        if not is_signature(tx_hash):
            logger.debug(f"[{self.name}] Solana 서명 형식이 아님: {tx_hash}")
            return None

        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "getTransaction",
            "params": [tx_hash, {"encoding": "jsonParsed", "maxSupportedTransactionVersion": 0}],
        }
        data = await self._post_json(client, self.rpc_url, payload)
        if isinstance(data, dict) and data.get("error"):
            raise UpstreamError(f"getTransaction RPC 오류 → {data['error']}", self.name, endpoint=self.rpc_url)
        result = data.get("result") if isinstance(data, dict) else None
        if not result:
            logger.debug(f"[{self.name}] 트랜잭션을 찾을 수 없음: {tx_hash}")
            return None
        tx = SolanaTransaction.model_validate(result)

        instruction = find_transfer(tx)
        if instruction is None:
            logger.debug(f"[{self.name}] transfer instruction 없음, 잔액 변화로 추정: {tx_hash}")
            transfer = self._native(*balance_change_transfer(tx))
        else:
            info = instruction.parsed.get("info") or {}
            if instruction.program == "spl-token":
                transfer = self._spl_transfer(tx, info)
            else:
                transfer = self._native(info.get("source"), info.get("destination"), parse_int(info.get("lamports")))

        timestamp, date_time, estimated = resolve_timestamp(tx.block_time)
        return NormalizedTransaction(
            hash=tx_hash,
            network=self.network,
            timestamp=timestamp,
            date_time=date_time,
            timestamp_is_estimated=estimated,
            status=transaction_status(tx),
            fee=format_fee(tx.meta.fee if tx.meta else 0, LAMPORT_DECIMALS, LAMPORT_DECIMALS, "SOL"),
            block_number=tx.slot,
            **transfer,
        )
