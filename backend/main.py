import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.endpoints import agents, analytics, analyze, chat, customers, tickets, welcome
from app.core.errors import SupportError
from app.core.settings import settings
from app.services.analysis.client import close_analysis_service
from app.services.store.provider import get_store

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Support Desk API", docs_url=None if settings.is_production else "/docs")

# Configure CORS
origins = settings.resolved_cors_origins()
if origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.on_event("startup")
def startup() -> None:
    store = get_store()
    logger.info("app.startup environment=%s store=%s", settings.environment, type(store).__name__)


@app.on_event("shutdown")
async def shutdown() -> None:
    await close_analysis_service()


@app.exception_handler(SupportError)
async def support_error_handler(request: Request, exc: SupportError):
    if exc.status_code >= 500:
        logger.error("request.failed path=%s code=%s error=%s", request.url.path, exc.code, exc.message)
    else:
        logger.info("request.rejected path=%s code=%s error=%s", request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


# API Routes
app.include_router(customers.router, prefix="/api", tags=["customers"])
app.include_router(agents.router, prefix="/api", tags=["agents"])
app.include_router(tickets.router, prefix="/api", tags=["tickets"])
app.include_router(chat.router, prefix="/api", tags=["chat"])
app.include_router(analytics.router, prefix="/api", tags=["analytics"])
app.include_router(analyze.router, prefix="/api", tags=["analyze"])
app.include_router(welcome.router, prefix="/api", tags=["welcome"])


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
