"""FastAPI application entrypoint."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from taalmeet.api import discover, ops
from taalmeet.api.errors import install_error_handlers
from taalmeet.infra import backend
from taalmeet.obs import init as obs_init
from taalmeet.settings import settings


@asynccontextmanager
async def lifespan(app: FastAPI):
	try:
		yield
	finally:
		await backend.close()


app = FastAPI(title="TaalMeet Discovery", lifespan=lifespan)
install_error_handlers(app)

allow_origins = list(settings.cors_allow_origins)
if not allow_origins:
	allow_origins = ["http://localhost:8081", "http://localhost:19006"] if settings.is_dev() else []

# Starlette disallows wildcard '*' with allow_credentials=True.
if "*" in allow_origins:
	allow_origins = [origin for origin in allow_origins if origin != "*"]

app.add_middleware(
	CORSMiddleware,
	allow_origins=allow_origins,
	allow_credentials=True,
	allow_methods=["GET"],
	allow_headers=["*"],
)

obs_init(app)

app.include_router(discover.router, tags=["discover"])
app.include_router(ops.router, tags=["ops"])
