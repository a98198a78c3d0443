"""
Pytest fixtures. 업스트림 API는 httpx.MockTransport로 대체한다 (네트워크 없음).
"""
import json

import httpx
import pytest


@pytest.fixture
def make_client():
    """handler(request) -> httpx.Response 를 받는 AsyncClient 팩토리"""
    def factory(handler):
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return factory


def request_json(request: httpx.Request) -> dict:
    return json.loads(request.content or b"{}")


@pytest.fixture
def read_body():
    return request_json
