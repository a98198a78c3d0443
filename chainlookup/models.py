"""
트랜잭션 조회 결과 타입 정의
"""
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class Network(str, Enum):
    """지원 체인"""
    BITCOIN = "Bitcoin"
    LITECOIN = "Litecoin"
    DOGECOIN = "Dogecoin"
    ETHEREUM = "Ethereum"
    BSC = "BSC"
    POLYGON = "Polygon"
    TRON = "Tron"
    XRP = "XRP Ledger"
    EOS = "EOS"
    SOLANA = "Solana"
    BITCOIN_CASH = "Bitcoin Cash"


class TxStatus(str, Enum):
    """정규화된 트랜잭션 상태"""
    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"


NATIVE = "Native"


class TokenMetadata(BaseModel):
    """토큰 컨트랙트 메타데이터"""
    model_config = ConfigDict(frozen=True)

    symbol: str
    name: str
    decimals: int


# 체인별로만 채워지는 확장 필드 (설정하지 않은 체인의 결과에는 포함하지 않음)
EXTENSION_FIELDS = (
    "confirmations",
    "destination_tag",
    "source_tag",
    "error",
    "error_details",
    "transaction_result",
    "memo",
)


class NormalizedTransaction(BaseModel):
    """
    모든 체인 공통의 정규화된 트랜잭션 레코드

    timestamp_is_estimated 가 True 이면 블록 시간을 얻지 못해 조회 시각(또는 만료 시각)으로
    대체한 값이다. 실제 블록 시간이 아니므로 소비하는 쪽에서 구분해야 한다.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    hash: str
    network: Network
    network_type: str
    coin: str
    token_name: str
    contract_address: Optional[str] = None
    from_address: str = Field(alias="from")
    to_address: str = Field(alias="to")
    amount: str
    timestamp: int
    date_time: str
    timestamp_is_estimated: bool = False
    status: TxStatus
    fee: str
    block_number: Optional[int] = None

    # 체인별 확장 필드
    confirmations: Optional[Union[int, str]] = None
    destination_tag: Optional[int] = None
    source_tag: Optional[int] = None
    error: Optional[str] = None
    error_details: Optional[str] = None
    transaction_result: Optional[str] = None
    memo: Optional[str] = None

    @model_validator(mode="after")
    def _check_transfer_fields(self):
        is_token = self.network_type != NATIVE
        if is_token != (self.contract_address is not None):
            raise ValueError(
                f"contractAddress must be set only for token transfers "
                f"(networkType={self.network_type}, contractAddress={self.contract_address})"
            )
        if self.amount.lower() in ("nan", "inf", "-inf", "infinity"):
            raise ValueError(f"amount is not a finite decimal: {self.amount}")
        return self

    @property
    def is_token_transfer(self) -> bool:
        return self.network_type != NATIVE

    def to_dict(self) -> dict:
        """API 응답용 camelCase dict (해당 체인이 설정한 확장 필드만 포함)"""
        data = self.model_dump(by_alias=True, mode="json")
        for name in EXTENSION_FIELDS:
            if name not in self.model_fields_set:
                data.pop(to_camel(name), None)
        return data
