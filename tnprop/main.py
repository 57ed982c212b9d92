"""FastAPI application entry point."""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tnprop import __version__
from tnprop.api import transactions
from tnprop.config import CACHE_ENABLED, PROGRESS_SWEEP_INTERVAL
from tnprop.db import get_engine, init_db
from tnprop.models import TransactionStore
from tnprop.pipeline.cache import ResultCache
from tnprop.pipeline.llm_client import check_llm_status
from tnprop.pipeline.progress import ProgressTracker, run_sweeper

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, prune the result cache, run the progress sweeper."""
    engine = init_db(get_engine())
    app.state.store = TransactionStore(engine)
    app.state.progress = ProgressTracker()
    app.state.cache = ResultCache() if CACHE_ENABLED else None
    if app.state.cache is not None:
        app.state.cache.cleanup()

    sweeper = asyncio.create_task(run_sweeper(app.state.progress, PROGRESS_SWEEP_INTERVAL))
    logger.info("Startup complete")
    try:
        yield
    finally:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper


app = FastAPI(
    title="TN Property Transactions",
    description="Transaction extraction from Tamil Nadu encumbrance certificates",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(transactions.router, prefix="/api/transactions", tags=["Transactions"])


@app.get("/api/health")
async def health():
    return {"status": "operational", "llm": await check_llm_status()}
