from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from pythonjsonlogger import jsonlogger
import datetime
import logging

import config
from database import engine
from models import Base
from routes import api_router
from routes.limiter import limiter
from services import PaymentProcessingError, ServiceError


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    def add_fields(self, log_record, record, message_dict):
        super(CustomJsonFormatter, self).add_fields(log_record, record, message_dict)
        log_record['timestamp'] = datetime.datetime.now(datetime.timezone.utc).isoformat()
        log_record['level'] = record.levelname
        log_record['logger'] = record.name


def setup_logging():
    handler = logging.StreamHandler()
    handler.setFormatter(CustomJsonFormatter('%(timestamp)s %(level)s %(logger)s %(message)s'))
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(config.LOG_LEVEL)


setup_logging()
logger = logging.getLogger(__name__)

# Create tables
Base.metadata.create_all(bind=engine)

app = FastAPI(title=config.APP_NAME, version=config.APP_VERSION)

# Initialize rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_body(message: str, errors=None, error=None) -> dict:
    body = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    if error is not None:
        body["error"] = error
    return body


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    error = None
    if isinstance(exc, PaymentProcessingError):
        error = exc.detail if config.APP_DEBUG else "Internal server error"
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message, exc.errors, error))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = {}
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        errors.setdefault(".".join(loc) or "request", []).append(err.get("msg", "Invalid value"))
    return JSONResponse(status_code=422, content=_error_body("Validation failed", errors))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error", extra={"path": request.url.path})
    return JSONResponse(
        status_code=500,
        content=_error_body("Internal server error", error=str(exc) if config.APP_DEBUG else None)
    )


# Include all routes
app.include_router(api_router)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
