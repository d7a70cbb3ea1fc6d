# galerago/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from galerago.config import settings
from galerago.database import engine, Base
from galerago.exceptions import (
    AuthenticationError,
    AuthorizationError,
    GaleraGoError,
    NotFoundError,
    ValidationError,
)
from galerago.routes import users, packages, bookings, reviews, stats, entry

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# Framework-raised HTTP errors mapped onto the same error kinds
HTTP_ERROR_KINDS = {
    401: AuthenticationError.kind,
    403: AuthorizationError.kind,
    404: NotFoundError.kind,
}

# Create the database tables
Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="GaleraGo Tourism Booking",
    description="Activity packages, bookings and reviews for island tours",
    version="1.0.0"
)

# CORS Middleware (Adjust as needed)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Adjust for specific domains in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _envelope(status_code: int, kind: str, message, headers: dict = None):
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": kind, "detail": message},
        headers=headers,
    )


@app.exception_handler(GaleraGoError)
async def handle_business_error(request: Request, exc: GaleraGoError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return _envelope(exc.status_code, exc.kind, exc.message, headers)


# Malformed bodies and query strings are input errors like any other
@app.exception_handler(RequestValidationError)
async def handle_request_validation(request: Request, exc: RequestValidationError):
    problems = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ())[1:]]
        problems.append(f"{'.'.join(location) or 'request'}: {error.get('msg')}")
    return _envelope(ValidationError.status_code, ValidationError.kind, "; ".join(problems))


@app.exception_handler(StarletteHTTPException)
async def handle_http_error(request: Request, exc: StarletteHTTPException):
    kind = HTTP_ERROR_KINDS.get(exc.status_code, "http_error")
    return _envelope(exc.status_code, kind, exc.detail, getattr(exc, "headers", None))


# Registering Routers
app.include_router(users.router)
app.include_router(packages.router)
app.include_router(bookings.router)
app.include_router(reviews.router)
app.include_router(stats.router)
app.include_router(entry.router)

@app.get("/", tags=["Root"])
def read_root():
    return {"message": "Welcome to GaleraGo"}
