"""
XRP Ledger 리졸버 (rippled JSON-RPC)

엔드포인트 목록을 순서대로 시도하고 처음 성공한 응답을 사용한다.
Payment 트랜잭션만 처리하며, 목적지 계정의 RequireDestTag 플래그를 확인해
destination tag 누락을 표시한다.
"""
import logging
from typing import Optional, Sequence, Union

import httpx
from pydantic import BaseModel, ConfigDict, Field

from chainlookup.configuration import config
from chainlookup.exceptions import EndpointsExhaustedError
from chainlookup.models import NATIVE, Network, NormalizedTransaction, TxStatus
from chainlookup.services.blockchains.base import ChainResolver
from chainlookup.services.http import first_success
from chainlookup.services.units import (
    RIPPLE_EPOCH_OFFSET,
    decimal_string,
    format_amount,
    format_fee,
    parse_int,
    parse_iso_seconds,
    resolve_timestamp,
)

logger = logging.getLogger(__name__)

DROPS_DECIMALS = 6
# lsfRequireDestTag
REQUIRE_DEST_TAG_FLAG = 0x00020000

MISSING_DESTINATION_TAG = "Missing Destination Tag"
MISSING_DESTINATION_TAG_DETAILS = (
    "This address requires a destination tag. The transaction may not be credited properly."
)
ACCOUNT_DELETION = "Account Deletion"
ACCOUNT_DELETION_DETAILS = (
    "Destination account does not have enough XRP to meet the reserve requirement."
)


class IssuedAmount(BaseModel):
    model_config = ConfigDict(extra="ignore")

    value: str
    currency: str
    issuer: Optional[str] = None


class XrpMeta(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    transaction_result: Optional[str] = Field(default=None, alias="TransactionResult")


class XrpTransaction(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    transaction_type: Optional[str] = Field(default=None, alias="TransactionType")
    account: str = Field(alias="Account")
    destination: Optional[str] = Field(default=None, alias="Destination")
    amount: Union[str, IssuedAmount, None] = Field(default=None, alias="Amount")
    # API v2 Payment는 Amount 대신 DeliverMax
    deliver_max: Union[str, IssuedAmount, None] = Field(default=None, alias="DeliverMax")
    fee: Optional[str] = Field(default=None, alias="Fee")
    destination_tag: Optional[int] = Field(default=None, alias="DestinationTag")
    source_tag: Optional[int] = Field(default=None, alias="SourceTag")
    date: Optional[int] = None
    close_time_iso: Optional[str] = None
    ledger_index: Optional[int] = None
    validated: Optional[bool] = None
    meta: XrpMeta = XrpMeta()


def transaction_status(tx: XrpTransaction) -> TxStatus:
    result = tx.meta.transaction_result
    if result is None and tx.validated is False:
        return TxStatus.PENDING
    return TxStatus.SUCCESS if result == "tesSUCCESS" else TxStatus.FAILED


def flatten_tx_result(result: dict) -> dict:
    """API v2 응답(tx_json 하위 필드)을 v1과 같은 평평한 구조로"""
    tx_json = result.get("tx_json")
    if isinstance(tx_json, dict):
        return {**result, **tx_json}
    return result


def decode_currency(code: str) -> str:
    """40자리 hex 통화 코드를 출력 가능한 ASCII로 변환 (불가능하면 원본)"""
    if len(code) != 40:
        return code
    try:
        text = bytes.fromhex(code).rstrip(b"\x00").decode("ascii")
    except (ValueError, UnicodeDecodeError):
        return code
    return text if text and text.isprintable() else code


class XrpResolver(ChainResolver):
    network = Network.XRP
    symbol = "XRP"
    aliases = ("xrp", "ripple")

    def __init__(
        self,
        endpoints: Optional[Sequence[str]] = None,
        tx_timeout: Optional[float] = None,
        account_timeout: Optional[float] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.endpoints = tuple(endpoints or config.XRP_API_URLS)
        self.tx_timeout = tx_timeout if tx_timeout is not None else config.XRP_TX_TIMEOUT
        self.account_timeout = account_timeout if account_timeout is not None else config.XRP_ACCOUNT_TIMEOUT

    async def _fetch_tx(self, client: httpx.AsyncClient, endpoint: str, tx_hash: str) -> Optional[dict]:
        payload = {"method": "tx", "params": [{"transaction": tx_hash, "binary": False}]}
        data = await self._post_json(client, endpoint, payload, timeout=self.tx_timeout)
        result = data.get("result") if isinstance(data, dict) else None
        if not result or result.get("error"):
            if result:
                logger.debug(f"[{self.name}] {endpoint} 오류 응답: {result.get('error')}")
            return None
        return flatten_tx_result(result)

    async def requires_destination_tag(self, client: httpx.AsyncClient, address: Optional[str]) -> bool:
        """목적지 계정의 RequireDestTag 플래그 확인. 어떤 엔드포인트도 응답하지 않으면 False"""
        if not address:
            return False

        async def attempt(endpoint: str) -> Optional[dict]:
            payload = {"method": "account_info", "params": [{"account": address, "ledger_index": "current"}]}
            data = await self._post_json(client, endpoint, payload, timeout=self.account_timeout)
            if not isinstance(data, dict):
                return None
            # 응답을 받았으면 계정이 없더라도 확정 (빈 dict → flags 0)
            return (data.get("result") or {}).get("account_data") or {}

        try:
            account_data = await first_success(
                self.endpoints, attempt, chain=self.name, timeout=self.account_timeout
            )
        except EndpointsExhaustedError:
            logger.debug(f"[{self.name}] account_info 조회 실패, destination tag 불필요로 간주: {address}")
            return False

        flags = parse_int(account_data.get("Flags")) or 0
        return (flags & REQUIRE_DEST_TAG_FLAG) != 0

    async def _resolve(self, client: httpx.AsyncClient, tx_hash: str) -> Optional[NormalizedTransaction]:
        result = await first_success(
            self.endpoints,
            lambda endpoint: self._fetch_tx(client, endpoint, tx_hash),
            chain=self.name,
            timeout=self.tx_timeout,
        )
        tx = XrpTransaction.model_validate(result)

        if tx.transaction_type != "Payment":
            logger.debug(f"[{self.name}] Payment가 아닌 트랜잭션: {tx.transaction_type}")
            return None

        error = None
        error_details = None
        if tx.destination_tag is None and await self.requires_destination_tag(client, tx.destination):
            error = MISSING_DESTINATION_TAG
            error_details = MISSING_DESTINATION_TAG_DETAILS

        transaction_result = tx.meta.transaction_result
        if transaction_result == "tecNO_DST_INSUF_XRP":
            error = ACCOUNT_DELETION
            error_details = ACCOUNT_DELETION_DETAILS

        amount = "0"
        coin = "XRP"
        contract_address = None
        sent = tx.amount if tx.amount is not None else tx.deliver_max
        if isinstance(sent, str):
            amount = format_amount(parse_int(sent), DROPS_DECIMALS)
        elif isinstance(sent, IssuedAmount):
            amount = decimal_string(sent.value)
            coin = decode_currency(sent.currency)
            contract_address = sent.issuer

        if tx.date is not None:
            seconds = tx.date + RIPPLE_EPOCH_OFFSET
        else:
            seconds = parse_iso_seconds(tx.close_time_iso)
        timestamp, date_time, estimated = resolve_timestamp(seconds)

        return NormalizedTransaction(
            hash=tx_hash,
            network=self.network,
            network_type="IOU" if contract_address else NATIVE,
            coin=coin,
            token_name="Ripple" if coin == "XRP" else coin,
            contract_address=contract_address,
            from_address=tx.account,
            to_address=tx.destination or "Unknown",
            amount=amount,
            timestamp=timestamp,
            date_time=date_time,
            timestamp_is_estimated=estimated,
            status=transaction_status(tx),
            fee=format_fee(parse_int(tx.fee), DROPS_DECIMALS, DROPS_DECIMALS, "XRP"),
            block_number=tx.ledger_index,
            destination_tag=tx.destination_tag,
            source_tag=tx.source_tag,
            error=error,
            error_details=error_details,
            transaction_result=transaction_result,
        )
