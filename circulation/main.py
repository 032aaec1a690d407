import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from starlette.middleware.base import BaseHTTPMiddleware
from circulation.config import settings
from circulation.database import engine, Base
from circulation.dependencies import get_sweeper
from circulation.errors import CirculationError, ConsistencyViolation
from circulation.routes import book, loan, reports

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log incoming requests."""
    async def dispatch(self, request: Request, call_next):
        client_ip = request.client.host if request.client else "unknown"
        response = await call_next(request)
        logger.info(f"{request.method} {request.url.path} - IP: {client_ip} - {response.status_code}")
        return response

Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager to start/stop the overdue sweeper with FastAPI."""
    sweeper = get_sweeper()
    if settings.sweeper_enabled:
        logger.info("Starting overdue sweeper...")
        sweeper.start()

    yield

    if settings.sweeper_enabled:
        logger.info("Stopping overdue sweeper...")
        sweeper.shutdown()


app = FastAPI(
    title="Library Circulation API",
    description="Loans, renewals, returns and fines for a library catalog",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(LoggingMiddleware)


@app.exception_handler(CirculationError)
async def circulation_error_handler(request: Request, exc: CirculationError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(ConsistencyViolation)
async def consistency_violation_handler(request: Request, exc: ConsistencyViolation):
    logger.error(f"Consistency violation on {request.method} {request.url.path}: {exc.detail} {exc.context}")
    return JSONResponse(
        status_code=500,
        content={"code": exc.code, "message": exc.public_message},
    )

# Include routers
app.include_router(loan.router)
app.include_router(book.router)
app.include_router(reports.router)

@app.get("/")
async def root():
    return {"message": "Library Circulation API", "version": "1.0.0"}

@app.get("/api/health")
async def health_check():
    return {"status": "healthy"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "circulation.main:app",
        host=settings.host,
        port=settings.port,
        reload=True
    )
