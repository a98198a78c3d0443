"""
Bitcoin 리졸버 (Blockstream Esplora REST API)

UTXO 모델: 수수료 = 입력 합계 - 출력 합계.
첫 번째 출력을 주 수신자/금액으로 본다 (다중 출력 트랜잭션은 완전히 표현하지 않음).
"""
import logging
from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict

from chainlookup.configuration import config
from chainlookup.models import NATIVE, Network, NormalizedTransaction, TxStatus
from chainlookup.services.blockchains.base import ChainResolver
from chainlookup.services.units import format_amount, format_fee, resolve_timestamp

logger = logging.getLogger(__name__)

SATOSHI_DECIMALS = 8


class EsploraPrevout(BaseModel):
    model_config = ConfigDict(extra="ignore")

    value: int = 0
    scriptpubkey_address: Optional[str] = None


class EsploraInput(BaseModel):
    model_config = ConfigDict(extra="ignore")

    prevout: Optional[EsploraPrevout] = None
    is_coinbase: bool = False


class EsploraOutput(BaseModel):
    model_config = ConfigDict(extra="ignore")

    value: int = 0
    scriptpubkey_address: Optional[str] = None


class EsploraStatus(BaseModel):
    model_config = ConfigDict(extra="ignore")

    confirmed: bool = False
    block_height: Optional[int] = None
    block_time: Optional[int] = None


class EsploraTransaction(BaseModel):
    model_config = ConfigDict(extra="ignore")

    txid: str
    vin: list[EsploraInput] = []
    vout: list[EsploraOutput] = []
    status: EsploraStatus = EsploraStatus()


def calculate_fee_satoshi(tx: EsploraTransaction) -> int:
    """입력 합계 - 출력 합계 (코인베이스는 0)"""
    if any(vin.is_coinbase for vin in tx.vin):
        return 0
    total_input = sum(vin.prevout.value for vin in tx.vin if vin.prevout)
    total_output = sum(vout.value for vout in tx.vout)
    return total_input - total_output


class BitcoinResolver(ChainResolver):
    network = Network.BITCOIN
    symbol = "BTC"
    aliases = ("bitcoin", "btc")

    def __init__(self, api_url: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self.api_url = (api_url or config.ESPLORA_API_URL).rstrip("/")

    async def _resolve(self, client: httpx.AsyncClient, tx_hash: str) -> Optional[NormalizedTransaction]:
        # 존재하지 않는 해시는 404/400 → UpstreamError(is_not_found) → None
        data = await self._get_json(client, f"{self.api_url}/tx/{tx_hash}")
        if not data:
            return None
        tx = EsploraTransaction.model_validate(data)

        first_in = tx.vin[0].prevout if tx.vin else None
        first_out = tx.vout[0] if tx.vout else None
        timestamp, date_time, estimated = resolve_timestamp(tx.status.block_time)

        return NormalizedTransaction(
            hash=tx_hash,
            network=self.network,
            network_type=NATIVE,
            coin="BTC",
            token_name="Bitcoin",
            contract_address=None,
            from_address=(first_in.scriptpubkey_address if first_in else None) or "Unknown",
            to_address=(first_out.scriptpubkey_address if first_out else None) or "Unknown",
            amount=format_amount(first_out.value if first_out else 0, SATOSHI_DECIMALS),
            timestamp=timestamp,
            date_time=date_time,
            timestamp_is_estimated=estimated,
            status=TxStatus.SUCCESS if tx.status.confirmed else TxStatus.PENDING,
            fee=format_fee(calculate_fee_satoshi(tx), SATOSHI_DECIMALS, SATOSHI_DECIMALS, "BTC"),
            block_number=tx.status.block_height,
            confirmations="Confirmed" if tx.status.confirmed else "Pending",
        )
