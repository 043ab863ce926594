# main.py (lifespan-based)
from __future__ import annotations

import logging, uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.routing import APIRoute
from passlib.context import CryptContext
from tortoise import Tortoise

from models import User
from routers import energy_uploads, invoices
from services import config

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("uvicorn")
pwd_ctx = CryptContext(schemes=["bcrypt"], deprecated="auto")

# ----- helpers -----
async def _seed_admin():
    if not config.BOOTSTRAP_ADMIN_PASSWORD:
        return
    if not await User.exists():
        await User.create(
            id=uuid.uuid4(),
            username=config.BOOTSTRAP_ADMIN_USERNAME,
            email=config.BOOTSTRAP_ADMIN_EMAIL,
            hashed_password=pwd_ctx.hash(config.BOOTSTRAP_ADMIN_PASSWORD),
            role="SUPER_ADMIN",
        )
        logger.info("[seed] bootstrap admin %s created", config.BOOTSTRAP_ADMIN_USERNAME)

# ----- lifespan -----
@asynccontextmanager
async def lifespan(app: FastAPI):
    await Tortoise.init(
        db_url=config.DB_URL,
        modules={"models": ["models"]},
    )
    await Tortoise.generate_schemas()
    await _seed_admin()
    try:
        yield
    finally:
        await Tortoise.close_connections()

# ----- app & routers -----
app = FastAPI(lifespan=lifespan, title="Energy Billing API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Range", "X-Total-Count"],
)

app.include_router(energy_uploads.router)
app.include_router(invoices.router)

for route in app.routes:
    if isinstance(route, APIRoute):
        logger.debug("%s -> %s", list(route.methods), route.path)
