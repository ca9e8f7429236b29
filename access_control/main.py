from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from timing_asgi import TimingMiddleware, TimingClient  # type: ignore
from timing_asgi.integrations import StarletteScopeToName  # type: ignore

from access_control.core import config
from access_control.core.database.engine import Database
from access_control.core.errors import AccessControlError
from access_control.features.access.routes import router as access_router
from access_control.features.assignments.routes import router as assignment_router
from access_control.features.users.dependencies import get_authorization_header
from access_control.features.users.routes import router as user_router
from access_control.utils import get_logger


log = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info("Initializing database...")
    database = Database(config.SQLALCHEMY_DATABASE_URL, echo=config.SQL_ECHO)
    await database.create_all()
    app.state.database = database
    log.info("Database initialized successfully")
    try:
        yield
    finally:
        await database.dispose()
        log.info("Database disposed")


log.info("Initializing server")
app = FastAPI(
    title="Access Control",
    description="Multi-tenant role assignments and hierarchical access evaluation",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if config.ENABLE_DOCS else None,
    redoc_url="/redoc" if config.ENABLE_DOCS else None,
    openapi_url="/openapi.json" if config.ENABLE_DOCS else None
)
limiter = Limiter(key_func=get_authorization_header, default_limits=[config.RATE_LIMIT])
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)


class PrintTimings(TimingClient):
    def timing(self, metric_name, timing, tags):
        log.debug(dict(route=metric_name.removeprefix("main.access_control.features."), timing=timing, tags=tags))


app.add_middleware(TimingMiddleware, client=PrintTimings(), metric_namer=StarletteScopeToName("main", app))

if config.ENABLE_DOCS:
    log.warning("Docs enabled")
if config.ALLOW_ORIGIN:
    log.warning("Setting allow origin to %s", config.ALLOW_ORIGIN)
    origins = [config.ALLOW_ORIGIN]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_request: Request, exc: RequestValidationError):
    errors = dict()
    for error in exc.errors():
        if "loc" not in error or "msg" not in error:
            continue
        key = error["loc"][-1] if error["loc"] else "root"
        if key == "__root__":
            key = "root"
        errors[key] = error["msg"]
    log.info("Request validation error %s", errors)
    return JSONResponse(status_code=400, content=jsonable_encoder(errors))


@app.exception_handler(AccessControlError)
async def access_control_exception_handler(_request: Request, exc: AccessControlError):
    if exc.status_code >= 500:
        log.error("%s: %s", exc.code, exc.message)
    else:
        log.info("%s: %s", exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


@app.exception_handler(RateLimitExceeded)
def rate_limit_exceeded_handler(_request: Request, _exc: RateLimitExceeded) -> Response:
    return JSONResponse({"error": "You are going too fast"}, status_code=429)


@app.get("/")
async def root():
    """Root endpoint - API health check."""
    return {
        "message": "Access Control API",
        "version": "0.1.0",
        "status": "online",
        "docs": "/docs" if config.ENABLE_DOCS else None,
        "authentication": {
            "info": "All endpoints except / and /health require Bearer token in Authorization header",
            "protected_endpoints": ["/assignments/*", "/users/{id}/*", "/access/*"],
        },
        "features": {
            "assignments": "Role assignments at organization, location and project level",
            "access": "Access checks with inheritance down the organization hierarchy",
        }
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


# Include routers
app.include_router(assignment_router, prefix="/assignments", tags=["assignments"])
app.include_router(user_router, prefix="/users", tags=["users"])
app.include_router(access_router, prefix="/access", tags=["access"])
