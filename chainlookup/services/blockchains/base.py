"""
체인 리졸버 공통 인터페이스

모든 리졸버는 get_transaction(tx_hash) 하나만 외부에 노출한다.
- 트랜잭션 없음 / 미지원 타입 → None
- 업스트림 오류, 응답 구조 이상, 데드라인 초과 → 로그 후 None
예외는 이 경계를 넘지 않는다.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx
from pydantic import ValidationError

from chainlookup.configuration import config
from chainlookup.exceptions import ChainLookupError, EndpointsExhaustedError, UpstreamError
from chainlookup.models import Network, NormalizedTransaction
from chainlookup.services.http import create_client, request_json

logger = logging.getLogger(__name__)


class ChainResolver(ABC):
    """트랜잭션 해시 하나를 NormalizedTransaction으로 변환하는 리졸버"""

    network: Network
    symbol: str = ""
    aliases: tuple = ()

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        request_timeout: Optional[float] = None,
        deadline: Optional[float] = None,
    ):
        self._client = client
        self.request_timeout = request_timeout if request_timeout is not None else config.REQUEST_TIMEOUT
        self.deadline = deadline if deadline is not None else config.RESOLVER_DEADLINE

    @property
    def name(self) -> str:
        return self.network.value

    @abstractmethod
    async def _resolve(self, client: httpx.AsyncClient, tx_hash: str) -> Optional[NormalizedTransaction]:
        """체인별 조회/정규화 구현. 예외를 던져도 된다."""

    async def get_transaction(self, tx_hash: str) -> Optional[NormalizedTransaction]:
        try:
            if self._client is not None:
                return await asyncio.wait_for(self._resolve(self._client, tx_hash), timeout=self.deadline)
            async with create_client(self.request_timeout) as client:
                return await asyncio.wait_for(self._resolve(client, tx_hash), timeout=self.deadline)
        except asyncio.TimeoutError:
            logger.warning(f"[{self.name}] 조회 데드라인 초과 ({self.deadline}s): {tx_hash}")
            return None
        except UpstreamError as e:
            if e.is_not_found:
                logger.debug(f"[{self.name}] HTTP {e.status_code} (트랜잭션을 찾을 수 없음): {tx_hash}")
            else:
                logger.warning(f"[{self.name}] {e.message}. API: {e.endpoint}")
                if e.status_code in (401, 403):
                    logger.warning(f"[{self.name}] API 키가 유효하지 않거나 권한 문제일 수 있습니다.")
            return None
        except EndpointsExhaustedError as e:
            if e.is_not_found:
                logger.debug(f"[{self.name}] 모든 엔드포인트에서 트랜잭션을 찾을 수 없음: {tx_hash}")
            else:
                logger.warning(f"[{self.name}] 조회 실패 → {e.message}: {tx_hash}")
            return None
        except ChainLookupError as e:
            logger.warning(f"[{self.name}] 조회 실패 → {e.message}: {tx_hash}")
            return None
        except (ValidationError, ValueError, KeyError, TypeError, IndexError) as e:
            logger.warning(f"[{self.name}] 응답 정규화 실패 → {e!r}: {tx_hash}")
            return None
        except Exception as e:
            logger.error(f"[{self.name}] 알 수 없는 오류 발생 → {e}: {tx_hash}", exc_info=True)
            return None

    async def _get_json(self, client: httpx.AsyncClient, url: str, **kwargs):
        kwargs.setdefault("timeout", self.request_timeout)
        return await request_json(client, "GET", url, chain=self.name, **kwargs)

    async def _post_json(self, client: httpx.AsyncClient, url: str, payload, **kwargs):
        kwargs.setdefault("timeout", self.request_timeout)
        return await request_json(client, "POST", url, chain=self.name, json=payload, **kwargs)

    def __repr__(self):
        return f"<{type(self).__name__} {self.name}>"
