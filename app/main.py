import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from app.cache import cache
from app.exceptions import PlanetError
from app.middleware import TimingMiddleware
from app.routers import articles, metrics, planets, users
from app.config import settings

logger = logging.getLogger(__name__)

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: the API keeps serving without Redis (cache reads just miss).
    try:
        await cache.connect()
    except Exception as exc:
        logger.warning("Cache unavailable at startup: %s", exc)
    yield
    # Shutdown
    await cache.disconnect()

app = FastAPI(
    title="Planet Community API",
    description="Community planets with membership, roles, articles and bookmarks",
    version="1.0.0",
    lifespan=lifespan,
)

@app.exception_handler(PlanetError)
async def planet_error_handler(request: Request, exc: PlanetError):
    level = logging.ERROR if exc.status_code >= 500 else logging.INFO
    logger.log(level, "%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

# Middleware
app.add_middleware(TimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(planets.router)
app.include_router(articles.router)
app.include_router(users.router)
app.include_router(metrics.router)

@app.get("/health")
async def health():
    return {"status": "healthy", "version": "1.0.0"}
