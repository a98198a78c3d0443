"""
Bitcoin Cash 리졸버 (Blockchair dashboards API)
"""
import logging
from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict

from chainlookup.configuration import config
from chainlookup.models import NATIVE, Network, NormalizedTransaction, TxStatus
from chainlookup.services.blockchains.base import ChainResolver
from chainlookup.services.units import format_amount, format_fee, parse_iso_seconds, resolve_timestamp

logger = logging.getLogger(__name__)

SATOSHI_DECIMALS = 8


class BlockchairEntry(BaseModel):
    model_config = ConfigDict(extra="ignore")

    recipient: Optional[str] = None
    value: int = 0


class BlockchairTransaction(BaseModel):
    model_config = ConfigDict(extra="ignore")

    # 멤풀 트랜잭션은 -1
    block_id: Optional[int] = None
    # "2024-01-01 00:00:00" (UTC)
    time: Optional[str] = None
    fee: int = 0


class BlockchairDashboard(BaseModel):
    model_config = ConfigDict(extra="ignore")

    transaction: BlockchairTransaction
    inputs: list[BlockchairEntry] = []
    outputs: list[BlockchairEntry] = []


def find_dashboard(data, tx_hash: str) -> Optional[dict]:
    """응답 data 에서 해시 키의 항목. 없는 해시는 data가 빈 리스트/객체"""
    entries = data.get("data") if isinstance(data, dict) else None
    if not isinstance(entries, dict):
        return None
    return entries.get(tx_hash) or entries.get(tx_hash.lower())


class BitcoinCashResolver(ChainResolver):
    network = Network.BITCOIN_CASH
    symbol = "BCH"
    aliases = ("bitcoincash", "bch")

    def __init__(self, api_url: Optional[str] = None, api_key: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self.api_url = (api_url or config.BLOCKCHAIR_API_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else config.BLOCKCHAIR_API_KEY

    async def _resolve(self, client: httpx.AsyncClient, tx_hash: str) -> Optional[NormalizedTransaction]:
        params = {"key": self.api_key} if self.api_key else None
        data = await self._get_json(
            client, f"{self.api_url}/bitcoin-cash/dashboards/transaction/{tx_hash}", params=params
        )
        entry = find_dashboard(data, tx_hash)
        if not entry:
            logger.debug(f"[{self.name}] 트랜잭션을 찾을 수 없음: {tx_hash}")
            return None
        dashboard = BlockchairDashboard.model_validate(entry)
        tx = dashboard.transaction

        first_in = dashboard.inputs[0] if dashboard.inputs else None
        first_out = dashboard.outputs[0] if dashboard.outputs else None
        confirmed = tx.block_id is not None and tx.block_id > 0
        timestamp, date_time, estimated = resolve_timestamp(parse_iso_seconds(tx.time))

        return NormalizedTransaction(
            hash=tx_hash,
            network=self.network,
            network_type=NATIVE,
            coin="BCH",
            token_name="Bitcoin Cash",
            contract_address=None,
            from_address=(first_in.recipient if first_in else None) or "Unknown",
            to_address=(first_out.recipient if first_out else None) or "Unknown",
            amount=format_amount(first_out.value if first_out else 0, SATOSHI_DECIMALS),
            timestamp=timestamp,
            date_time=date_time,
            timestamp_is_estimated=estimated,
            status=TxStatus.SUCCESS if confirmed else TxStatus.PENDING,
            fee=format_fee(tx.fee, SATOSHI_DECIMALS, SATOSHI_DECIMALS, "BCH"),
            block_number=tx.block_id if confirmed else None,
            confirmations="Confirmed" if confirmed else "Pending",
        )
