"""
트랜잭션 조회 예외 정의

리졸버 내부에서만 발생하고 ChainResolver.get_transaction 경계에서 모두 흡수된다.
호출자는 None 여부만 확인하면 된다.
"""
from typing import Optional

# first_success 에서 응답은 받았지만 결과가 없을 때의 실패 사유
NO_VALID_RESULT = "no valid result"


class ChainLookupError(Exception):
    """조회 관련 예외의 기본 클래스"""

    def __init__(self, message: str, chain: Optional[str] = None):
        self.message = message
        self.chain = chain
        super().__init__(f"[{chain}] {message}" if chain else message)


class UpstreamError(ChainLookupError):
    """업스트림 HTTP 오류 (상태코드 또는 네트워크 오류)"""

    def __init__(
        self,
        message: str,
        chain: Optional[str] = None,
        endpoint: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.endpoint = endpoint
        self.status_code = status_code
        super().__init__(message, chain)

    @property
    def is_not_found(self) -> bool:
        # 404/400은 트랜잭션이 없는 정상적인 실패
        return self.status_code in (400, 404)


class MalformedResponseError(ChainLookupError):
    """응답 구조가 예상과 다름 (JSON 파싱 실패, 필드 누락 등)"""


class EndpointsExhaustedError(ChainLookupError):
    """순서대로 시도한 모든 엔드포인트가 실패"""

    def __init__(self, chain: Optional[str], failures: list):
        self.failures = failures
        details = "; ".join(f"{endpoint}: {reason}" for endpoint, reason in failures) or "no endpoints"
        super().__init__(f"모든 엔드포인트 실패 ({details})", chain)

    @property
    def is_not_found(self) -> bool:
        # 모든 엔드포인트가 응답했고 트랜잭션만 없었음
        return bool(self.failures) and all(reason == NO_VALID_RESULT for _, reason in self.failures)
