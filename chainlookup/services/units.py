"""
단위 변환 / 숫자 디코딩 / 타임스탬프 헬퍼
"""
import time
from datetime import datetime, timezone
from decimal import Context, Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from typing import Optional, Union

# Ripple Epoch (2000-01-01T00:00:00Z) 의 Unix timestamp
RIPPLE_EPOCH_OFFSET = 946684800

# 기본 컨텍스트(28자리)로는 uint256(78자리) + 소수 자릿수를 담지 못함
AMOUNT_CONTEXT = Context(prec=100, rounding=ROUND_HALF_UP)


def parse_int(value: Union[str, int, None]) -> Optional[int]:
    """
    0x 접두 16진수 또는 10진수 문자열을 정수로 변환.
    디코딩할 수 없으면 None (NaN을 흘려보내지 않음)
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        if text.lower().startswith("0x"):
            digits = text[2:]
            return int(digits, 16) if digits else 0
        return int(text, 10)
    except ValueError:
        return None


def scale(raw: Union[int, str, Decimal], decimals: int) -> Decimal:
    """정수 단위(wei, satoshi, sun, drops...)를 사람이 읽는 단위로 변환"""
    with localcontext(AMOUNT_CONTEXT):
        return Decimal(raw) / (Decimal(10) ** decimals)


def format_plain(value: Decimal) -> str:
    """지수 표기 없이 불필요한 0을 제거한 10진 문자열"""
    if value == 0:
        return "0"
    with localcontext(AMOUNT_CONTEXT):
        return format(value.normalize(), "f")


def format_fixed(value: Decimal, places: int) -> str:
    """소수점 places 자리 고정 (반올림)"""
    quantum = Decimal(1).scaleb(-places)
    with localcontext(AMOUNT_CONTEXT):
        return format(value.quantize(quantum, rounding=ROUND_HALF_UP), "f")


def format_amount(raw: Optional[int], decimals: int, places: Optional[int] = None) -> str:
    """원시 정수 금액을 문자열로. 디코딩 실패(None)는 '0'"""
    if raw is None:
        return "0"
    value = scale(raw, decimals)
    return format_fixed(value, places) if places is not None else format_plain(value)


def format_fee(raw: Optional[int], decimals: int, places: int, unit: str) -> str:
    """수수료 문자열 (예: '0.000420 ETH')"""
    value = scale(raw or 0, decimals)
    return f"{format_fixed(value, places)} {unit}"


def decimal_string(value) -> str:
    """IOU value 등 이미 사람 단위인 문자열 검증 후 정리. 숫자가 아니면 '0'"""
    try:
        parsed = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return "0"
    if not parsed.is_finite():
        return "0"
    return format_plain(parsed)


def to_iso(timestamp: int) -> str:
    """초 단위 timestamp → '2024-01-01T00:00:00.000Z'"""
    dt = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def now_seconds() -> int:
    return int(time.time())


def resolve_timestamp(seconds: Optional[int]) -> tuple:
    """
    (timestamp, dateTime, is_estimated) 반환.
    블록 시간이 없으면 현재 시각으로 대체하고 추정값으로 표시한다.
    """
    if seconds is None:
        current = now_seconds()
        return current, to_iso(current), True
    return int(seconds), to_iso(int(seconds)), False


def parse_iso_seconds(value: Optional[str]) -> Optional[int]:
    """ISO-8601 문자열(시간대 없으면 UTC)을 초 단위 timestamp로"""
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp())
