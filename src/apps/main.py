from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from settings import config
from apps.question_bank.router import router as question_bank_router
from logger import setup_logging, get_logger
from logger.middlewares.fastapi import RequestContextMiddleware, AccessLogMiddleware
from common.openai_client import init_openai_client, warmup_openai, close_openai_client
from common.redis_client import init_redis, close_redis
from db.session import dispose_engines

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_openai_client()
    await init_redis()
    if config.ENV == "prod":
        await warmup_openai()

    logger.info(
        "App started (index=%s, embedding_model=%s, dim=%s)",
        config.VECTOR_INDEX_NAME,
        config.EMBEDDING_MODEL,
        config.EMBEDDING_DIM,
    )
    yield

    logger.info("Shutting down")
    await close_openai_client()
    await close_redis()
    await dispose_engines()


app = FastAPI(title=config.APP_NAME, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestContextMiddleware)
app.add_middleware(AccessLogMiddleware)

app.include_router(question_bank_router)


@app.get("/", tags=["health"])
async def root():
    return {"status": "ok"}
