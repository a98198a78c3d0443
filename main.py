import logging
import os
import sys
import time

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chainlookup.configuration import config
from chainlookup.routers.api import register_api_routes

load_dotenv()

# --- 환경 감지 및 설정 ---
ENVIRONMENT = os.getenv("ENVIRONMENT", "production").lower()
DEBUG_MODE = ENVIRONMENT == "development"
RELOAD_ENABLED = os.getenv("RELOAD", "false").lower() == "true" if DEBUG_MODE else False

if DEBUG_MODE:
    default_log_level = "DEBUG"
else:
    default_log_level = "INFO"

# --- 로깅 설정 ---
log_level_str = os.getenv("LOG_LEVEL", default_log_level).upper()
log_level = getattr(logging, log_level_str, logging.INFO)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATEFMT = '%Y-%m-%d %H:%M:%S'

logging.basicConfig(
    level=log_level,
    format=LOG_FORMAT,
    datefmt=LOG_DATEFMT,
    handlers=[logging.StreamHandler(sys.stdout)],
    force=True
)

# httpx 요청 로그는 체인별 DEBUG 로그와 중복
httpx_logger = logging.getLogger("httpx")
httpx_logger.setLevel(logging.WARNING)
httpx_logger.propagate = True

for logger_name in ["uvicorn", "uvicorn.access", "uvicorn.error", "chainlookup", "main"]:
    logger_instance = logging.getLogger(logger_name)
    logger_instance.setLevel(log_level)
    logger_instance.propagate = True
    logger_instance.handlers.clear()

logger = logging.getLogger(__name__)
logger.info(f"로깅 시스템 초기화 완료 - 레벨: {log_level_str}")

config.validate()

# --- FastAPI 앱 초기화 ---
app = FastAPI(title="Multi-Chain Transaction Lookup", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check():
    return {"status": "healthy", "timestamp": time.time()}


register_api_routes(app)


if __name__ == "__main__":
    logger.info(f"환경: {ENVIRONMENT.upper()}, 디버그: {DEBUG_MODE}, 리로드: {RELOAD_ENABLED}")

    uvicorn_log_config = {
        "version": 1, "disable_existing_loggers": False,
        "formatters": {
            "default": {"format": LOG_FORMAT, "datefmt": LOG_DATEFMT},
        },
        "handlers": {
            "default": {"formatter": "default", "class": "logging.StreamHandler", "stream": "ext://sys.stdout"},
        },
        "loggers": {
            "uvicorn": {"handlers": ["default"], "level": log_level_str, "propagate": False},
            "uvicorn.error": {"level": log_level_str},
            "uvicorn.access": {"handlers": ["default"], "level": log_level_str, "propagate": False},
        },
    }

    host = "127.0.0.1" if DEBUG_MODE else "0.0.0.0"
    port = int(os.getenv("PORT", "8000"))
    logger.info(f"서버 시작 (포트 {port}, 호스트: {host})")
    uvicorn.run("main:app", host=host, port=port, log_level=log_level_str.lower(),
                log_config=uvicorn_log_config, use_colors=False, access_log=True, reload=RELOAD_ENABLED)
