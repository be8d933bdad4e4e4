import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import settings
from .core.logging import setup_logging
from .llm.registry import create_transport
from .api.routes.chat import router as chat_router
from .api.routes.misc import router as misc_router
from .api.routes.proxy import router as proxy_router
from .api.routes.assessment import router as assessment_router

logger = logging.getLogger(__name__)

app = FastAPI(title="Mindful Chat", version=settings.API_VERSION)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)



@app.on_event("startup")
def on_startup():
    setup_logging(settings.LOG_LEVEL, settings.LOG_JSON)
    # fail fast: a server without a usable provider key should not come up
    create_transport(settings)
    logger.info("chat provider %s ready (proxy=%s)", settings.CHAT_PROVIDER, settings.USE_PROXY)

app.include_router(misc_router)
app.include_router(chat_router)
app.include_router(proxy_router)
app.include_router(assessment_router)
