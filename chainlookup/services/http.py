"""
업스트림 HTTP 호출 헬퍼 (클라이언트 생성, JSON 요청, 순차 엔드포인트 폴백)
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Sequence, TypeVar

import certifi
import httpx

from chainlookup.configuration import config
from chainlookup.exceptions import (
    NO_VALID_RESULT,
    EndpointsExhaustedError,
    MalformedResponseError,
    UpstreamError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def create_client(timeout: Optional[float] = None) -> httpx.AsyncClient:
    """certifi CA 번들과 기본 User-Agent를 사용하는 AsyncClient"""
    return httpx.AsyncClient(
        verify=certifi.where(),
        headers={"User-Agent": config.USER_AGENT},
        timeout=timeout if timeout is not None else config.REQUEST_TIMEOUT,
    )


def _decode_json(res: httpx.Response, chain: str) -> Any:
    try:
        return res.json()
    except ValueError as e:
        raise MalformedResponseError(
            f"JSON 파싱 실패 (상태코드: {res.status_code}) → {e}. 응답 본문: {res.text[:200]}", chain
        ) from e


async def request_json(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    chain: str,
    timeout: float,
    params: Optional[dict] = None,
    json: Any = None,
    headers: Optional[dict] = None,
) -> Any:
    """
    JSON 응답을 반환하는 요청. HTTP/네트워크 오류는 UpstreamError로 변환한다.
    """
    try:
        res = await client.request(method, url, params=params, json=json, headers=headers, timeout=timeout)
        logger.debug(f"[{chain}] 응답 상태코드: {res.status_code} ({url})")
        res.raise_for_status()
    except httpx.HTTPStatusError as e:
        status_code = e.response.status_code
        raise UpstreamError(
            f"HTTP 오류 (상태코드: {status_code})", chain, endpoint=url, status_code=status_code
        ) from e
    except httpx.RequestError as e:
        raise UpstreamError(f"요청 오류 → {e!r}", chain, endpoint=url) from e
    return _decode_json(res, chain)


async def first_success(
    endpoints: Sequence[str],
    attempt: Callable[[str], Awaitable[Optional[T]]],
    *,
    chain: str,
    timeout: float,
) -> T:
    """
    엔드포인트를 순서대로 시도하여 처음으로 유효한 결과를 반환한다.

    attempt 가 None 을 반환하면 "유효하지 않은 응답"으로 보고 다음 엔드포인트로 넘어간다.
    시도마다 timeout 초를 적용하고, 모두 실패하면 실패 사유를 모아 EndpointsExhaustedError 를 던진다.
    부하 분산이 아닌 고정 순서이며 재시도(backoff)는 하지 않는다.
    """
    failures = []
    for endpoint in endpoints:
        try:
            result = await asyncio.wait_for(attempt(endpoint), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"[{chain}] {endpoint} 응답 시간 초과 ({timeout}s), 다음 엔드포인트 시도")
            failures.append((endpoint, f"timeout after {timeout}s"))
            continue
        except (UpstreamError, MalformedResponseError) as e:
            logger.warning(f"[{chain}] {endpoint} 조회 실패 → {e.message}, 다음 엔드포인트 시도")
            failures.append((endpoint, e.message))
            continue

        if result is None:
            logger.debug(f"[{chain}] {endpoint} 유효한 결과 없음, 다음 엔드포인트 시도")
            failures.append((endpoint, NO_VALID_RESULT))
            continue
        return result

    raise EndpointsExhaustedError(chain, failures)
