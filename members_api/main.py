import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from members_api.core import config
from members_api.core.logging_config import setup_logging
from members_api.api.routes import members
from members_api.api.routes import system

logger = logging.getLogger(__name__)


# ============================================
# ✅ FASTAPI APP INIT
# ============================================

app = FastAPI(title="Members API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Authorization", "Content-Type"],
)


# ============================================
# ✅ REGISTER ALL ROUTERS
# ============================================

app.include_router(members.router)
app.include_router(system.router)


# ============================================
# ✅ STARTUP
# ============================================

@app.on_event("startup")
def on_startup():
    setup_logging(config.LOG_LEVEL)

    if config.RUN_MIGRATIONS:
        from members_api.db.migrate import run_migrations
        run_migrations()
    else:
        from members_api.db.init_db import init_db
        init_db()

    logger.info("Members API started")


@app.get("/")
def root():
    return {"status": "Members API running"}
