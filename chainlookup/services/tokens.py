"""
토큰 메타데이터: 체인별 정적 테이블(빠른 경로)과 온체인 조회 폴백

두 관심사를 분리한다.
- lookup_known_token: 정적 테이블 조회만 수행 (네트워크 없음)
- resolve_token_metadata: 테이블 미스 시 주어진 introspect 함수로 온체인 조회, 실패하면 UNKNOWN
"""
import logging
from types import MappingProxyType
from typing import Awaitable, Callable, Mapping, Optional

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError

from chainlookup.models import TokenMetadata

logger = logging.getLogger(__name__)

UNKNOWN_SYMBOL = "UNKNOWN"
UNKNOWN_TOKEN_NAME = "Unknown Token"

# 함수 셀렉터 (keccak256 앞 4바이트)
NAME_SELECTOR = "0x06fdde03"
SYMBOL_SELECTOR = "0x95d89b41"
DECIMALS_SELECTOR = "0x313ce567"

# Transfer(address,address,uint256) 이벤트 시그니처
TRANSFER_TOPIC = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"


def _table(entries: dict) -> Mapping[str, TokenMetadata]:
    return MappingProxyType({
        address: TokenMetadata(symbol=symbol, name=name, decimals=decimals)
        for address, (symbol, name, decimals) in entries.items()
    })


ERC20_TOKENS = _table({
    "0xdac17f958d2ee523a2206206994597c13d831ec7": ("USDT", "Tether USD", 6),
    "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48": ("USDC", "USD Coin", 6),
    "0x4d224452801aced8b2f0aebe155379bb5d594381": ("APE", "ApeCoin", 18),
    "0x4fabb145d64652a948d72533023f6e7a623c7c53": ("BUSD", "Binance USD", 18),
    "0xa0b73e1ff0b80914ab6fe0444e65848c4c34450b": ("CRO", "Cronos", 8),
    "0x6b175474e89094c44da98b954eedeac495271d0f": ("DAI", "Dai Stablecoin", 18),
    "0x514910771af9ca656af840dff83e8264ecf986ca": ("LINK", "Chainlink", 18),
    "0x3845badade8e6dff049820680d1f14bd3903a5d0": ("SAND", "The Sandbox", 18),
    "0x95ad61b0a150d79219dcf64e1e6cc01f0b64c4ce": ("SHIB", "Shiba Inu", 18),
    "0x1f9840a85d5af5bf1d1762f925bdaddc4201f984": ("UNI", "Uniswap", 18),
    "0x455e53cbb86018ac2b8092fdcd39d8444affc3f6": ("POL", "Polygon", 18),
})

BEP20_TOKENS = _table({
    "0x55d398326f99059ff775485246999027b3197955": ("USDT", "Tether USD", 18),
    "0x8ac76a51cc950d9822d68b83fe1ad97b32cd580d": ("USDC", "USD Coin", 18),
    "0x1af3f329e8be154074d8769d1ffa4ee058b1dbc3": ("DAI", "Dai Stablecoin", 18),
    "0xf8a0bf9cf54bb92f17374d9e9a321e6a111a51bd": ("LINK", "Chainlink", 18),
    "0x2859e4544c4bb03966803b044a93563bd2d0dd4d": ("SHIB", "Shiba Inu", 18),
    "0xbf5140a22578168fd562dccf235e5d43a02ce9b1": ("UNI", "Uniswap", 18),
    "0xcc42724c6683b7e57334c4e856f4c9965ed682bd": ("POL", "Polygon", 18),
    "0x9678e42cebeb63f23197d726b29b1cb20d0064e5": ("BUSD-T", "BUSD Token", 18),
})

POLYGON_TOKENS = _table({
    "0xc2132d05d31c914a87c6611c10748aeb04b58e8f": ("USDT", "Tether USD", 6),
    "0x2791bca1f2de4661ed88a30c99a7a9449aa84174": ("USDC", "USD Coin", 6),
    "0x8f3cf7ad23cd3cadbd9735aff958023239c6a063": ("DAI", "Dai Stablecoin", 18),
    "0x0d500b1d8e8ef31e21c99d1db9a6444d3adf1270": ("WMATIC", "Wrapped Matic", 18),
})

# Tron은 base58 주소를 키로 사용
TRC20_TOKENS = _table({
    "TR7NHqjeKQxGTCi8q8ZY4pL8otSzgjLj6t": ("USDT", "Tether USD", 6),
})

# SPL 토큰은 mint 주소(base58)를 키로 사용
SPL_TOKENS = _table({
    "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v": ("USDC", "USD Coin", 6),
    "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB": ("USDT", "Tether USD", 6),
    "6p6xgHyF7AeE6TZkSmFsko444wqoP15icUSqi2jfGiPN": ("TRUMP", "Official Trump", 6),
})


def lookup_known_token(table: Mapping[str, TokenMetadata], address: str) -> Optional[TokenMetadata]:
    """정적 테이블 조회. EVM 주소(0x)는 소문자로 정규화한다"""
    if not address:
        return None
    key = address.lower() if address.lower().startswith("0x") else address
    return table.get(key)


async def resolve_token_metadata(
    table: Mapping[str, TokenMetadata],
    address: str,
    introspect: Callable[[str], Awaitable[TokenMetadata]],
    default_decimals: int = 18,
    chain: str = "token",
) -> TokenMetadata:
    """
    정적 테이블 → 온체인 조회 → UNKNOWN 플레이스홀더 순서로 메타데이터 확정.
    어떤 경우에도 예외를 던지지 않는다.
    """
    known = lookup_known_token(table, address)
    if known:
        return known
    try:
        return await introspect(address)
    except Exception as e:
        logger.debug(f"[{chain}] 토큰 메타데이터 조회 실패 ({address}) → {e!r}. UNKNOWN 사용")
        return TokenMetadata(symbol=UNKNOWN_SYMBOL, name=UNKNOWN_TOKEN_NAME, decimals=default_decimals)


def _abi_bytes(data: Optional[str]) -> Optional[bytes]:
    """0x 접두 유무 무관 16진수 → bytes. 비어 있으면 b'', 16진수가 아니면 None"""
    if not data:
        return b""
    hex_data = data[2:] if data.lower().startswith("0x") else data
    try:
        return bytes.fromhex(hex_data)
    except ValueError:
        return None


def _printable(raw: bytes) -> str:
    return raw.replace(b"\x00", b"").decode("utf-8", errors="ignore").strip()


def decode_abi_string(data: Optional[str]) -> str:
    """
    eth_call 반환값(ABI string 또는 bytes32)을 문자열로 디코딩.
    null 바이트는 제거하고 공백을 정리한다. 디코딩할 수 없으면 빈 문자열
    """
    raw = _abi_bytes(data)
    if not raw:
        return ""
    try:
        (text,) = abi_decode(["string"], raw)
    except (DecodingError, UnicodeDecodeError):
        return _decode_bytes32(raw)
    return text.replace("\x00", "").strip()


def _decode_bytes32(raw: bytes) -> str:
    """bytes32 형태로 반환하는 구형 토큰 (예: MKR)"""
    try:
        (value,) = abi_decode(["bytes32"], raw)
    except DecodingError:
        return ""
    return _printable(value)


def decode_abi_uint(data: Optional[str], abi_type: str = "uint256") -> Optional[int]:
    raw = _abi_bytes(data)
    if not raw:
        return None
    try:
        (value,) = abi_decode([abi_type], raw)
    except DecodingError:
        return None
    return value


def decode_transfer_value(data: Optional[str]) -> Optional[int]:
    """Transfer 이벤트 data(uint256 value). 빈 data는 0, 디코딩 실패는 None"""
    raw = _abi_bytes(data)
    if raw is None:
        return None
    if not raw:
        return 0
    return decode_abi_uint(data)


def metadata_from_abi(
    symbol_hex: Optional[str],
    decimals_hex: Optional[str],
    name_hex: Optional[str] = None,
    default_decimals: int = 18,
) -> TokenMetadata:
    """온체인 호출 결과 세 개를 TokenMetadata로 조합"""
    symbol = decode_abi_string(symbol_hex) or UNKNOWN_SYMBOL
    name = decode_abi_string(name_hex) or UNKNOWN_TOKEN_NAME
    decimals = decode_abi_uint(decimals_hex)
    # decimals()가 비정상 값을 주는 컨트랙트가 있음
    if decimals is None or decimals > 77:
        decimals = default_decimals
    return TokenMetadata(symbol=symbol, name=name, decimals=decimals)
