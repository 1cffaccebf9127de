from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from app.domains.financial_records.routes import router as financial_record_router
from app.config.mongodb import mongodb, DatabaseConnectionError
from app.config.setting import settings
from pymongo.errors import PyMongoError
import logging
from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s - %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name)

logger.info(f"Allowed origins: {settings.parsed_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.parsed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Connection manager shared by every request; handlers get it through app.state
app.state.mongodb = mongodb


@app.on_event("startup")
async def startup():
    # Warm up the connection; requests retry lazily if the store is down now
    try:
        await mongodb.ensure_indexes()
    except (DatabaseConnectionError, PyMongoError) as e:
        logger.error(f"MongoDB unavailable at startup: {e}")


@app.on_event("shutdown")
def shutdown_db():
    mongodb.close()


@app.get("/health", tags=["Health"])
async def health(request: Request):
    manager = request.app.state.mongodb
    try:
        await manager.ensure_connection()
        database = "connected"
    except DatabaseConnectionError:
        database = "unavailable"
    return {
        "status": "ok",
        "app": settings.app_name,
        "environment": settings.environment,
        "database": database,
    }


app.include_router(financial_record_router, prefix="/api", tags=["Financial Records"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000, log_level="info")
