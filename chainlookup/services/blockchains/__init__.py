# Blockchain resolvers package
from typing import Optional

import httpx

from .base import ChainResolver
from .bitcoin import BitcoinResolver
from .blockchair import BitcoinCashResolver
from .blockcypher import BlockCypherResolver, dogecoin_resolver, litecoin_resolver
from .eos import EosResolver
from .evm import EvmChain, EvmResolver, bsc_resolver, ethereum_resolver, polygon_resolver
from .solana import SolanaResolver
from .tron import TronResolver
from .xrp import XrpResolver


def get_resolvers(client: Optional[httpx.AsyncClient] = None) -> dict:
    """체인 키 → 리졸버 (전체 순회 순서)"""
    return {
        "ethereum": ethereum_resolver(client=client),
        "bsc": bsc_resolver(client=client),
        "polygon": polygon_resolver(client=client),
        "bitcoin": BitcoinResolver(client=client),
        "solana": SolanaResolver(client=client),
        "tron": TronResolver(client=client),
        "xrp": XrpResolver(client=client),
        "litecoin": litecoin_resolver(client=client),
        "dogecoin": dogecoin_resolver(client=client),
        "bitcoincash": BitcoinCashResolver(client=client),
        "eos": EosResolver(client=client),
    }


__all__ = [
    "ChainResolver",
    "BitcoinCashResolver",
    "BitcoinResolver",
    "BlockCypherResolver",
    "EosResolver",
    "EvmChain",
    "EvmResolver",
    "SolanaResolver",
    "TronResolver",
    "XrpResolver",
    "bsc_resolver",
    "dogecoin_resolver",
    "ethereum_resolver",
    "get_resolvers",
    "litecoin_resolver",
    "polygon_resolver",
]
