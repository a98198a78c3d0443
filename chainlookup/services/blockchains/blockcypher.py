"""
BlockCypher 기반 UTXO 체인 리졸버 (Litecoin, Dogecoin)
"""
from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict

from chainlookup.configuration import config
from chainlookup.models import NATIVE, Network, NormalizedTransaction, TxStatus
from chainlookup.services.blockchains.base import ChainResolver
from chainlookup.services.units import format_amount, format_fee, parse_iso_seconds, resolve_timestamp

SATOSHI_DECIMALS = 8


class BlockCypherInput(BaseModel):
    model_config = ConfigDict(extra="ignore")

    addresses: Optional[list[str]] = None


class BlockCypherOutput(BaseModel):
    model_config = ConfigDict(extra="ignore")

    value: int = 0
    addresses: Optional[list[str]] = None


class BlockCypherTransaction(BaseModel):
    model_config = ConfigDict(extra="ignore")

    hash: str
    inputs: list[BlockCypherInput] = []
    outputs: list[BlockCypherOutput] = []
    fees: int = 0
    confirmations: int = 0
    confirmed: Optional[str] = None
    block_height: Optional[int] = None


def _first_address(entries: list) -> str:
    for entry in entries[:1]:
        if entry.addresses:
            return entry.addresses[0]
    return "Unknown"


class BlockCypherResolver(ChainResolver):
    """코인 경로(ltc, doge)만 다른 BlockCypher 공통 리졸버"""

    def __init__(
        self,
        network: Network,
        coin_path: str,
        symbol: str,
        token_name: str,
        aliases: tuple = (),
        api_url: Optional[str] = None,
        token: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.network = network
        self.coin_path = coin_path
        self.symbol = symbol
        self.token_name = token_name
        self.aliases = aliases
        self.api_url = (api_url or config.BLOCKCYPHER_API_URL).rstrip("/")
        self.token = token

    async def _resolve(self, client: httpx.AsyncClient, tx_hash: str) -> Optional[NormalizedTransaction]:
        params = {"token": self.token} if self.token else None
        data = await self._get_json(client, f"{self.api_url}/{self.coin_path}/main/txs/{tx_hash}", params=params)
        if not data:
            return None
        tx = BlockCypherTransaction.model_validate(data)

        first_out = tx.outputs[0] if tx.outputs else None
        timestamp, date_time, estimated = resolve_timestamp(parse_iso_seconds(tx.confirmed))

        return NormalizedTransaction(
            hash=tx_hash,
            network=self.network,
            network_type=NATIVE,
            coin=self.symbol,
            token_name=self.token_name,
            contract_address=None,
            from_address=_first_address(tx.inputs),
            to_address=_first_address(tx.outputs),
            amount=format_amount(first_out.value if first_out else 0, SATOSHI_DECIMALS),
            timestamp=timestamp,
            date_time=date_time,
            timestamp_is_estimated=estimated,
            status=TxStatus.SUCCESS if tx.confirmations > 0 else TxStatus.PENDING,
            fee=format_fee(tx.fees, SATOSHI_DECIMALS, SATOSHI_DECIMALS, self.symbol),
            block_number=tx.block_height if tx.block_height and tx.block_height > 0 else None,
            confirmations=tx.confirmations,
        )


def litecoin_resolver(**kwargs) -> BlockCypherResolver:
    kwargs.setdefault("token", config.BLOCKCYPHER_TOKEN)
    return BlockCypherResolver(Network.LITECOIN, "ltc", "LTC", "Litecoin", ("litecoin", "ltc"), **kwargs)


def dogecoin_resolver(**kwargs) -> BlockCypherResolver:
    kwargs.setdefault("token", config.BLOCKCYPHER_TOKEN)
    return BlockCypherResolver(Network.DOGECOIN, "doge", "DOGE", "Dogecoin", ("dogecoin", "doge"), **kwargs)
