"""FastAPI application entrypoint."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from celestia.api import ops
from celestia.api.errors import install_error_handlers
from celestia.infra import postgres
from celestia.infra.redis import redis_client
from celestia.moderation import configure_postgres as configure_moderation
from celestia.moderation import router as moderation_router
from celestia.moderation.domain.container import get_lifecycle_service
from celestia.moderation.jobs.suspension_expiry import SuspensionExpiryWorker
from celestia.obs import init as obs_init
from celestia.settings import settings


@asynccontextmanager
async def lifespan(app: FastAPI):
	pool = await postgres.init_pool()
	configure_moderation(pool, redis_client)
	worker_tasks: list[asyncio.Task] = []
	workers: list[SuspensionExpiryWorker] = []
	if settings.suspension_expiry_enabled:
		expiry_worker = SuspensionExpiryWorker(
			get_lifecycle_service(),
			interval_seconds=settings.suspension_expiry_interval_seconds,
		)
		workers.append(expiry_worker)
		worker_tasks.append(asyncio.create_task(expiry_worker.run_forever(), name="suspension-expiry"))
	try:
		yield
	finally:
		for worker in workers:
			worker.stop()
		for task in worker_tasks:
			task.cancel()
		if worker_tasks:
			await asyncio.gather(*worker_tasks, return_exceptions=True)
		await postgres.close_pool()


app = FastAPI(title="Celestia Moderation", lifespan=lifespan)
install_error_handlers(app)

allow_origins = list(settings.cors_allow_origins)
if not allow_origins:
	allow_origins = ["http://localhost:3000"] if settings.is_dev() else []

app.add_middleware(
	CORSMiddleware,
	allow_origins=allow_origins,
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)

obs_init(app)

app.include_router(ops.router)
app.include_router(moderation_router, tags=["moderation"])
