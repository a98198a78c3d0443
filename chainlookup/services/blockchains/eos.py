"""
EOS 리졸버 (history 노드 /v1/history/get_transaction)

transfer 액션이 없는 트랜잭션은 None 이 아니라 금액 0 의 부분 레코드를 반환한다.
memo 누락 감지는 알려진 거래소 계정 목록 기반 휴리스틱이다.
"""
import logging
from typing import Optional, Sequence

import httpx
from pydantic import BaseModel, ConfigDict

from chainlookup.configuration import config
from chainlookup.models import NATIVE, Network, NormalizedTransaction, TxStatus
from chainlookup.services.blockchains.base import ChainResolver
from chainlookup.services.http import first_success
from chainlookup.services.units import decimal_string, parse_iso_seconds, resolve_timestamp

logger = logging.getLogger(__name__)

SYSTEM_TOKEN_ACCOUNT = "eosio.token"
MISSING_MEMO = "Missing Memo"
MISSING_MEMO_DETAILS = (
    "This destination account may require a memo. The transaction may not be credited properly."
)


class EosAuthorization(BaseModel):
    model_config = ConfigDict(extra="ignore")

    actor: str


class EosAction(BaseModel):
    model_config = ConfigDict(extra="ignore")

    account: str
    name: str
    authorization: list[EosAuthorization] = []
    data: dict = {}


class EosInnerTransaction(BaseModel):
    model_config = ConfigDict(extra="ignore")

    expiration: Optional[str] = None
    actions: list[EosAction] = []


class EosReceipt(BaseModel):
    model_config = ConfigDict(extra="ignore")

    status: Optional[str] = None


class EosTrx(BaseModel):
    model_config = ConfigDict(extra="ignore")

    receipt: EosReceipt = EosReceipt()
    trx: EosInnerTransaction


class EosTransaction(BaseModel):
    model_config = ConfigDict(extra="ignore")

    trx: EosTrx
    block_time: Optional[str] = None
    block_num: Optional[int] = None


class TransferData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    from_account: str = ""
    to_account: str = ""
    quantity: str = "0 EOS"
    memo: Optional[str] = None

    @classmethod
    def from_action(cls, action: EosAction) -> "TransferData":
        data = action.data or {}
        return cls(
            from_account=data.get("from") or "",
            to_account=data.get("to") or "",
            quantity=data.get("quantity") or "0 EOS",
            memo=data.get("memo"),
        )


def split_quantity(quantity: str) -> tuple:
    """'1.2345 EOS' → ('1.2345', 'EOS')"""
    parts = quantity.split()
    amount = decimal_string(parts[0]) if parts else "0"
    coin = parts[1] if len(parts) > 1 else "EOS"
    return amount, coin


def memo_missing(memo: Optional[str], to_account: str, exchange_accounts) -> bool:
    """memo 가 비어 있고 목적지가 memo 필수 거래소 계정이면 True"""
    return (not memo or not memo.strip()) and to_account in exchange_accounts


def receipt_status(tx: EosTransaction) -> TxStatus:
    return TxStatus.SUCCESS if tx.trx.receipt.status == "executed" else TxStatus.FAILED


class EosResolver(ChainResolver):
    network = Network.EOS
    symbol = "EOS"
    aliases = ("eos",)

    def __init__(
        self,
        endpoints: Optional[Sequence[str]] = None,
        exchange_accounts=None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.endpoints = tuple(endpoints or config.EOS_API_URLS)
        self.exchange_accounts = frozenset(
            exchange_accounts if exchange_accounts is not None else config.EOS_MEMO_REQUIRED_ACCOUNTS
        )

    async def _fetch(self, client: httpx.AsyncClient, endpoint: str, tx_hash: str) -> Optional[dict]:
        data = await self._post_json(client, f"{endpoint}/v1/history/get_transaction", {"id": tx_hash})
        if not isinstance(data, dict) or not data.get("trx"):
            return None
        return data

    def _partial_record(self, tx_hash: str, tx: EosTransaction) -> NormalizedTransaction:
        """transfer 액션이 없는 트랜잭션"""
        actions = tx.trx.trx.actions
        first_actor = actions[0].authorization[0].actor if actions and actions[0].authorization else None

        seconds = parse_iso_seconds(tx.block_time)
        estimated = seconds is None
        if seconds is None:
            # 블록 시간이 없으면 만료 시각으로 대체 (추정값)
            seconds = parse_iso_seconds(tx.trx.trx.expiration)
        timestamp, date_time, _ = resolve_timestamp(seconds)

        return NormalizedTransaction(
            hash=tx_hash,
            network=self.network,
            network_type=NATIVE,
            coin="EOS",
            token_name="EOS",
            contract_address=None,
            from_address=first_actor or "Unknown",
            to_address="Unknown",
            amount="0",
            timestamp=timestamp,
            date_time=date_time,
            timestamp_is_estimated=estimated,
            status=receipt_status(tx),
            fee="0 EOS",
            block_number=tx.block_num,
            memo=None,
            error=None,
        )

    async def _resolve(self, client: httpx.AsyncClient, tx_hash: str) -> Optional[NormalizedTransaction]:
        data = await first_success(
            self.endpoints,
            lambda endpoint: self._fetch(client, endpoint, tx_hash),
            chain=self.name,
            timeout=self.request_timeout,
        )
        tx = EosTransaction.model_validate(data)

        transfer_action = next((action for action in tx.trx.trx.actions if action.name == "transfer"), None)
        if transfer_action is None:
            logger.debug(f"[{self.name}] transfer 액션 없음, 부분 레코드 반환: {tx_hash}")
            return self._partial_record(tx_hash, tx)

        transfer = TransferData.from_action(transfer_action)
        memo = transfer.memo or None

        error = None
        error_details = None
        if memo_missing(memo, transfer.to_account, self.exchange_accounts):
            error = MISSING_MEMO
            error_details = MISSING_MEMO_DETAILS

        amount, coin = split_quantity(transfer.quantity)
        # eosio.token 이 아닌 컨트랙트가 발행한 토큰은 심볼이 EOS 여도 토큰으로 취급
        contract_address = transfer_action.account if transfer_action.account != SYSTEM_TOKEN_ACCOUNT else None
        timestamp, date_time, estimated = resolve_timestamp(parse_iso_seconds(tx.block_time))

        return NormalizedTransaction(
            hash=tx_hash,
            network=self.network,
            network_type="Token" if contract_address else NATIVE,
            coin=coin,
            token_name=coin,
            contract_address=contract_address,
            from_address=transfer.from_account or "Unknown",
            to_address=transfer.to_account or "Unknown",
            amount=amount,
            timestamp=timestamp,
            date_time=date_time,
            timestamp_is_estimated=estimated,
            status=receipt_status(tx),
            fee="0 EOS",
            block_number=tx.block_num,
            memo=memo,
            error=error,
            error_details=error_details,
        )
