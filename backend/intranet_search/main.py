from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from intranet_search.api.v1 import api
from intranet_search.core.config import settings
from intranet_search.core.search_exceptions import SearchError
from intranet_search.database import engine
from intranet_search.utils.redis_cache import RedisConnection
import logging

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger(__name__)

CORS_ALLOWED_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle: Redis cache and database connections."""
    # Startup
    try:
        logger.info("Initializing Redis connection pool...")
        await RedisConnection.get_redis_client()
        logger.info("Redis connection pool initialized successfully")
    except Exception as e:
        # Only the recommendation cache depends on Redis
        logger.warning(f"Redis unavailable, caching disabled: {str(e)}")

    yield

    # Shutdown
    try:
        logger.info("Closing Redis connections...")
        await RedisConnection.close()
        logger.info("Disposing database engine...")
        await engine.dispose()
    except Exception as e:
        logger.error(f"Error during application shutdown: {str(e)}")


app = FastAPI(
    title=f"{settings.PROJECT_NAME} API",
    description="Semantic and full-text search over the intranet content",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_methods=["*"],
    allow_headers=CORS_ALLOWED_HEADERS,
)


@app.exception_handler(SearchError)
async def search_error_handler(request: Request, exc: SearchError):
    logger.warning(f"{request.method} {request.url.path} failed: {str(exc)}")
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else error.get("msg", ""))
    return JSONResponse(status_code=400, content={"error": "; ".join(messages) or "Invalid request"})


# Include API routes
app.include_router(api.router, prefix=settings.API_V1_STR)

@app.get("/")
async def root():
    return {"message": f"{settings.PROJECT_NAME} API is running"}

@app.get("/health")
async def health_check():
    return {"status": "healthy"}
