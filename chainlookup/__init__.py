"""
chainlookup - 멀티체인 트랜잭션 조회/정규화 패키지
"""
from chainlookup.configuration import config
from chainlookup.models import Network, NormalizedTransaction, TokenMetadata, TxStatus
from chainlookup.services.transaction_service import detect_network, get_supported_chains, lookup_transaction

__all__ = [
    "config",
    "Network",
    "NormalizedTransaction",
    "TokenMetadata",
    "TxStatus",
    "detect_network",
    "get_supported_chains",
    "lookup_transaction",
]
