"""
트랜잭션 조회 설정 관리
"""
import os
import logging
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _split_urls(value: Optional[str], default: tuple) -> tuple:
    """콤마로 구분된 URL 목록을 튜플로 변환 (비어 있으면 기본값)"""
    if not value:
        return default
    urls = tuple(url.strip().rstrip("/") for url in value.split(",") if url.strip())
    return urls or default


class LookupConfiguration:
    """체인별 엔드포인트, API 키, 타임아웃 설정"""

    # ========== 공통 HTTP 설정 ==========
    # 요청 1건당 타임아웃 (초)
    REQUEST_TIMEOUT: float = float(os.getenv("CHAINLOOKUP_REQUEST_TIMEOUT", "10"))
    # 리졸버 호출 1회 전체 데드라인 (초)
    RESOLVER_DEADLINE: float = float(os.getenv("CHAINLOOKUP_RESOLVER_DEADLINE", "30"))
    USER_AGENT: str = os.getenv("CHAINLOOKUP_USER_AGENT", "Mozilla/5.0")

    # 조회 결과 캐시 TTL (초)
    CACHE_TTL_SECONDS: int = int(os.getenv("CHAINLOOKUP_CACHE_TTL", "300"))

    # ========== EVM (Etherscan V2 통합 API) ==========
    # Etherscan V2는 chainid 파라미터로 모든 EVM 체인을 같은 키로 조회
    ETHERSCAN_API_URL: str = os.getenv("ETHERSCAN_API_URL", "https://api.etherscan.io/v2/api")
    ETHERSCAN_API_KEY: Optional[str] = os.getenv("ETHERSCAN_API_KEY")
    BSCSCAN_API_KEY: Optional[str] = os.getenv("BSCSCAN_API_KEY") or os.getenv("ETHERSCAN_API_KEY")
    POLYGONSCAN_API_KEY: Optional[str] = os.getenv("POLYGONSCAN_API_KEY") or os.getenv("ETHERSCAN_API_KEY")

    # RPC URL이 설정되면 explorer 대신 JSON-RPC 모드로 조회
    ETHEREUM_RPC_URL: Optional[str] = os.getenv("ETHEREUM_RPC_URL")
    BSC_RPC_URL: Optional[str] = os.getenv("BSC_RPC_URL")
    POLYGON_RPC_URL: Optional[str] = os.getenv("POLYGON_RPC_URL")

    # ========== Bitcoin 계열 ==========
    ESPLORA_API_URL: str = os.getenv("ESPLORA_API_URL", "https://blockstream.info/api").rstrip("/")
    BLOCKCYPHER_API_URL: str = os.getenv("BLOCKCYPHER_API_URL", "https://api.blockcypher.com/v1").rstrip("/")
    BLOCKCYPHER_TOKEN: Optional[str] = os.getenv("BLOCKCYPHER_TOKEN")
    # Bitcoin Cash (Blockchair dashboards API)
    BLOCKCHAIR_API_URL: str = os.getenv("BLOCKCHAIR_API_URL", "https://api.blockchair.com").rstrip("/")
    BLOCKCHAIR_API_KEY: Optional[str] = os.getenv("BLOCKCHAIR_API_KEY")

    # ========== Solana ==========
    SOLANA_RPC_URL: str = os.getenv("SOLANA_RPC_URL", "https://api.mainnet-beta.solana.com")

    # ========== Tron ==========
    TRONGRID_API_URL: str = os.getenv("TRONGRID_API_URL", "https://api.trongrid.io").rstrip("/")
    TRONGRID_API_KEY: Optional[str] = os.getenv("TRONGRID_API_KEY")

    # ========== XRP (순서대로 시도) ==========
    XRP_API_URLS: tuple = _split_urls(
        os.getenv("XRP_API_URLS"),
        ("https://xrplcluster.com", "https://s1.ripple.com:51234", "https://s2.ripple.com:51234"),
    )
    XRP_TX_TIMEOUT: float = float(os.getenv("XRP_TX_TIMEOUT", "5"))
    XRP_ACCOUNT_TIMEOUT: float = float(os.getenv("XRP_ACCOUNT_TIMEOUT", "3"))

    # ========== EOS (순서대로 시도) ==========
    EOS_API_URLS: tuple = _split_urls(
        os.getenv("EOS_API_URLS"),
        ("https://eos.greymass.com", "https://api.eosn.io", "https://eos.api.eosnation.io"),
    )
    # memo 없이 입금하면 안 되는 거래소 계정 (휴리스틱, 목록에 없는 거래소는 감지 못함)
    EOS_MEMO_REQUIRED_ACCOUNTS: frozenset = frozenset(
        name.strip()
        for name in os.getenv(
            "EOS_MEMO_REQUIRED_ACCOUNTS", "binancecleos,huobideposit,okbtothemoon,krakenkraken"
        ).split(",")
        if name.strip()
    )

    # ========== 기타 설정 ==========
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def validate(cls) -> bool:
        """설정 유효성 검사"""
        if cls.REQUEST_TIMEOUT <= 0 or cls.RESOLVER_DEADLINE <= 0:
            raise ValueError("CHAINLOOKUP_REQUEST_TIMEOUT / CHAINLOOKUP_RESOLVER_DEADLINE 은 0보다 커야 합니다.")
        if cls.XRP_TX_TIMEOUT <= 0 or cls.XRP_ACCOUNT_TIMEOUT <= 0:
            raise ValueError("XRP 타임아웃은 0보다 커야 합니다.")
        if not cls.XRP_API_URLS or not cls.EOS_API_URLS:
            raise ValueError("XRP/EOS 엔드포인트 목록이 비어 있습니다.")

        if not cls.ETHERSCAN_API_KEY and not cls.ETHEREUM_RPC_URL:
            logger.warning("ETHERSCAN_API_KEY가 설정되지 않았습니다. EVM 체인 조회가 실패할 수 있습니다.")
        if not cls.TRONGRID_API_KEY:
            logger.warning("TRONGRID_API_KEY가 설정되지 않았습니다. TronGrid 요청이 제한될 수 있습니다.")

        return True


# 전역 설정 인스턴스
config = LookupConfiguration()
