# resumedesk/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from resumedesk.api.v1.auth import router as auth_router
from resumedesk.api.v1.checkout import router as checkout_router
from resumedesk.api.v1.orders import router as orders_router
from resumedesk.api.v1.packages import router as packages_router
from resumedesk.api.v1.submissions import router as submissions_router
from resumedesk.api.v1.uploads import router as uploads_router
from resumedesk.core import errors
from resumedesk.core.config import settings
from resumedesk.db.session import init_db
from resumedesk.services.gateways.registry import get_gateways
from resumedesk.services.storage import storage_status

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Resume Desk API")

app.include_router(auth_router, prefix="/api/v1")
app.include_router(packages_router, prefix="/api/v1")
app.include_router(checkout_router, prefix="/api/v1")
app.include_router(orders_router, prefix="/api/v1")
app.include_router(submissions_router, prefix="/api/v1")
app.include_router(uploads_router, prefix="/api/v1")


@app.exception_handler(errors.AppError)
async def app_error_handler(request: Request, exc: errors.AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message, exc_info=exc)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"detail": "Validation error", "code": errors.ValidationError.code, "errors": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": errors.InternalError.message, "code": errors.InternalError.code})


@app.get("/")
async def root():
    return {"status": "ok", "service": "resumedesk"}


@app.on_event("startup")
async def startup_event():
    logger.info("Starting resumedesk (env=%s)", settings.APP_ENV)
    init_db()
    # log which optional integrations are missing; none of them stop startup
    get_gateways()
    if not settings.SUPABASE_JWT_SECRET:
        logger.warning("SUPABASE_JWT_SECRET not set. Authenticated endpoints will return 503.")
    status = storage_status()
    if not status["available"]:
        logger.warning("Object storage unavailable: %s", status["message"])
