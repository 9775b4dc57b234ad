from fastapi import FastAPI
from contextlib import asynccontextmanager

import crud
from database import create_engine_and_sessionmaker, create_db_and_tables
from routers import archive as archive_router
from logging_config import get_logger
from config import settings

logger = get_logger(__name__)

DEFAULT_CATEGORIES = (
    "Nursing Notes",
    "Lab Reports",
    "Imaging",
    "Medications",
    "Assessments",
    "Care Plans",
    "Forms",
    "Images",
)

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Nursing Archive Service starting up...")
    engine, session_factory = create_engine_and_sessionmaker(settings.DATABASE_URL)
    app.state.engine = engine
    app.state.session_factory = session_factory

    await create_db_and_tables(engine)
    logger.info("Database tables created or already exist.")

    if settings.SEED_DEFAULT_CATEGORIES:
        async with session_factory() as session:
            added = await crud.seed_default_categories(session, DEFAULT_CATEGORIES)
        if added:
            logger.info(f"Seeded {added} default document categories.")

    settings.UPLOAD_PATH.mkdir(parents=True, exist_ok=True)
    logger.info(f"Upload path configured at: {settings.UPLOAD_PATH}")
    yield
    logger.info("Nursing Archive Service shutting down...")
    await engine.dispose()

app = FastAPI(
    title="Nursing Archive Service",
    version="0.1.0",
    lifespan=lifespan
)

app.include_router(archive_router.router)

@app.get("/ping", tags=["Health"])
async def ping():
    return {"ping": "pong! from NAS"}

@app.get("/", tags=["Root"])
async def read_root():
    return {"message": "Welcome to the Nursing Archive Service API"}

if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting NAS on {settings.NAS_HOST}:{settings.NAS_PORT}")
    uvicorn.run("main:app", host=settings.NAS_HOST, port=settings.NAS_PORT)
