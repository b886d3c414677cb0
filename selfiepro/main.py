import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI

from selfiepro import config, models
from selfiepro.database import engine, SessionLocal
from selfiepro.services.generations import retention_sweep
from selfiepro.services.plans import seed_plans

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create tables
    models.Base.metadata.create_all(bind=engine)
    # Seed default plans if empty
    db = SessionLocal()
    try:
        seed_plans(db)
    finally:
        db.close()

    sweeper = asyncio.create_task(retention_sweep(SessionLocal))
    try:
        yield
    finally:
        sweeper.cancel()
        with suppress(asyncio.CancelledError):
            await sweeper


app = FastAPI(
    title="SelfiePro Credits API",
    description="Verifies bank-transfer receipts, grants credits and spends them on group selfies",
    version="1.0.0",
    lifespan=lifespan,
)


@app.get("/health")
def health_check():
    return {"status": "ok", "service": "selfiepro-credits-api"}


from selfiepro.routers import accounts, admin, generations, payments  # noqa: E402
app.include_router(accounts.router, prefix="/api/v1", tags=["accounts"])
app.include_router(payments.router, prefix="/api/v1/payments", tags=["payments"])
app.include_router(generations.router, prefix="/api/v1/generations", tags=["generations"])
app.include_router(admin.router, prefix="/api/v1/admin", tags=["admin"])
