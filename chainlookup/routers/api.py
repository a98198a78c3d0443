"""
API 라우터 (트랜잭션 조회, 지원 체인 목록)
"""
import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from chainlookup.services.transaction_service import get_supported_chains, lookup_transaction

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "Transaction not found on supported chains."


def register_api_routes(app: FastAPI, resolvers: Optional[dict] = None, result_cache=None):
    """API 라우트를 FastAPI 앱에 등록"""

    @app.get("/api/tx/{txid}")
    async def get_transaction(txid: str, network: Optional[str] = None):
        """트랜잭션 조회 API"""
        result = await lookup_transaction(txid, network, resolvers=resolvers, result_cache=result_cache)
        if result:
            return JSONResponse(content={"found": True, "result": result.to_dict()})
        return JSONResponse(content={"found": False, "message": NOT_FOUND_MESSAGE})

    @app.get("/api/chains")
    async def get_chains():
        """지원하는 체인 목록 조회 API"""
        return JSONResponse(content={"supportedChains": get_supported_chains(resolvers)})
