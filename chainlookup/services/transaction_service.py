"""
트랜잭션 해시 → 체인 리졸버 선택 및 실행

1) network 인자(별칭)가 있으면 해당 체인을 먼저 조회
2) 해시 형태로 후보 체인 그룹을 골라 조회
   - evm: Ethereum/BSC/Polygon 동시 조회, 금액이 0이 아닌 결과 우선 (BSC → Ethereum → Polygon)
   - utxo: Bitcoin/XRP/Tron/Litecoin/Dogecoin/Bitcoin Cash 동시 조회, 목록 순서상 첫 결과
   - solana: Solana만 조회
   - account: XRP → EOS 순차 조회 후 전체 순회
   - unknown: 전체 순회
찾은 결과는 해시 단위로 TTL 캐시에 저장한다.
"""
import asyncio
import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional

from chainlookup.models import NormalizedTransaction
from chainlookup.services.blockchains import get_resolvers
from chainlookup.services.cache import cache

logger = logging.getLogger(__name__)

EVM_HASH = re.compile(r"^0x[a-fA-F0-9]{64}$")
SOLANA_SIGNATURE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{87,88}$")
HEX_64 = re.compile(r"^[a-fA-F0-9]{64}$")
HEX_ANY = re.compile(r"^[a-fA-F0-9]+$")

EVM_PREFERENCE = ("bsc", "ethereum", "polygon")
UTXO_ORDER = ("bitcoin", "xrp", "tron", "litecoin", "dogecoin", "bitcoincash")
ACCOUNT_ORDER = ("xrp", "eos")

_resolvers = None


def detect_network(tx_hash: str) -> str:
    """해시 형태로 체인 계열 추정: evm / solana / utxo / account / unknown"""
    clean = (tx_hash or "").strip()
    if EVM_HASH.match(clean):
        return "evm"
    if SOLANA_SIGNATURE.match(clean):
        return "solana"
    if HEX_64.match(clean):
        return "utxo"
    if HEX_ANY.match(clean) and len(clean) >= 40:
        return "account"
    return "unknown"


def default_resolvers() -> dict:
    global _resolvers
    if _resolvers is None:
        _resolvers = get_resolvers()
    return _resolvers


def build_alias_map(resolvers: dict) -> dict:
    """별칭(소문자) → 리졸버 키"""
    aliases = {}
    for key, resolver in resolvers.items():
        aliases[key] = key
        aliases[resolver.name.lower()] = key
        for alias in resolver.aliases:
            aliases[alias.lower()] = key
    return aliases


def resolve_alias(network: Optional[str], resolvers: dict) -> Optional[str]:
    if not network:
        return None
    return build_alias_map(resolvers).get(network.strip().lower())


def has_amount(tx: NormalizedTransaction) -> bool:
    try:
        return Decimal(tx.amount) != 0
    except (InvalidOperation, TypeError):
        return False


async def _try(resolvers: dict, key: str, tx_hash: str) -> Optional[NormalizedTransaction]:
    resolver = resolvers.get(key)
    if resolver is None:
        return None
    result = await resolver.get_transaction(tx_hash)
    if result is not None:
        logger.debug(f"[{resolver.name}] 트랜잭션 찾음: {tx_hash}")
    return result


async def _gather(resolvers: dict, keys: Iterable[str], tx_hash: str) -> dict:
    keys = [key for key in keys if key in resolvers]
    results = await asyncio.gather(*(_try(resolvers, key, tx_hash) for key in keys))
    return dict(zip(keys, results))


async def _try_evm_chains(resolvers: dict, tx_hash: str, tried=()) -> Optional[NormalizedTransaction]:
    results = await _gather(resolvers, [key for key in EVM_PREFERENCE if key not in tried], tx_hash)
    found = [results[key] for key in EVM_PREFERENCE if results.get(key) is not None]
    # 같은 해시가 여러 체인에 존재하면 실제 금액이 있는 쪽을 우선
    for tx in found:
        if has_amount(tx):
            return tx
    return found[0] if found else None


async def _try_utxo_chains(resolvers: dict, tx_hash: str, tried=()) -> Optional[NormalizedTransaction]:
    results = await _gather(resolvers, [key for key in UTXO_ORDER if key not in tried], tx_hash)
    return next((results[key] for key in UTXO_ORDER if results.get(key) is not None), None)


async def _try_sequential(resolvers: dict, keys: Iterable[str], tx_hash: str) -> Optional[NormalizedTransaction]:
    for key in keys:
        result = await _try(resolvers, key, tx_hash)
        if result is not None:
            return result
    return None


async def lookup_transaction(
    tx_hash: str,
    network: Optional[str] = None,
    resolvers: Optional[dict] = None,
    result_cache=None,
) -> Optional[NormalizedTransaction]:
    """해시 하나를 조회해 첫 번째로 유효한 NormalizedTransaction을 반환 (없으면 None)"""
    clean = (tx_hash or "").strip()
    if not clean:
        return None
    resolvers = resolvers if resolvers is not None else default_resolvers()
    result_cache = result_cache if result_cache is not None else cache

    chain_key = resolve_alias(network, resolvers)
    if network and chain_key is None:
        logger.warning(f"지원하지 않는 네트워크 지정: {network}, 자동 감지로 조회합니다.")

    cache_key = f"{chain_key or 'auto'}:{clean}"
    cached = result_cache.get(cache_key)
    if cached is not None:
        return cached

    result = await _lookup(clean, chain_key, resolvers)
    if result is not None:
        result_cache.set(cache_key, result)
    else:
        logger.info(f"어떤 체인에서도 트랜잭션을 찾지 못함: {clean}")
    return result


async def _lookup(tx_hash: str, chain_key: Optional[str], resolvers: dict) -> Optional[NormalizedTransaction]:
    tried = set()
    if chain_key:
        result = await _try(resolvers, chain_key, tx_hash)
        if result is not None:
            return result
        tried.add(chain_key)

    shape = detect_network(tx_hash)
    logger.debug(f"해시 형태 감지: {shape} ({tx_hash})")

    if shape == "evm":
        return await _try_evm_chains(resolvers, tx_hash, tried)
    if shape == "utxo":
        return await _try_utxo_chains(resolvers, tx_hash, tried)
    if shape == "solana":
        return None if "solana" in tried else await _try(resolvers, "solana", tx_hash)

    if shape == "account":
        result = await _try_sequential(resolvers, [key for key in ACCOUNT_ORDER if key not in tried], tx_hash)
        if result is not None:
            return result
        tried.update(ACCOUNT_ORDER)

    # unknown / account 미발견 → 남은 체인 전체 순회
    remaining = [key for key in resolvers if key not in tried]
    return await _try_sequential(resolvers, remaining, tx_hash)


def get_supported_chains(resolvers: Optional[dict] = None) -> list:
    resolvers = resolvers if resolvers is not None else default_resolvers()
    return [
        {"name": resolver.name, "symbol": resolver.symbol, "aliases": list(resolver.aliases)}
        for resolver in resolvers.values()
    ]
