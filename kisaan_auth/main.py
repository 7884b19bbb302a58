import logging

from fastapi import Depends, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from kisaan_auth.core.config import settings
from kisaan_auth.core.db import Base, engine
from kisaan_auth.core.deps import get_sms_gateway
from kisaan_auth.domains.identity.errors import OTPError
from kisaan_auth.domains.identity.router import router as identity_router
from kisaan_auth.utils.sms import SmsGateway, sms_missing_fields

# Imported for table registration.
from kisaan_auth.domains.users import models as _user_models  # noqa: F401

logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name)


@app.exception_handler(OTPError)
async def _otp_error_handler(request, exc: OTPError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(StarletteHTTPException)
async def _http_exception_handler(request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def _validation_exception_handler(request, exc: RequestValidationError):
    errors = exc.errors()
    # Helpful for debugging bad payloads in dev. Do not log full bodies in prod.
    if settings.env == "dev":
        logger.info("[400] path=%s errors=%s", request.url.path, errors)
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = first.get("msg", "Invalid request body")
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": f"{field}: {message}" if field else message},
    )


origins = [o.strip() for o in settings.cors_allow_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins if origins else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def _startup() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    Base.metadata.create_all(bind=engine)
    missing = sms_missing_fields(settings)
    if missing:
        logger.warning("Fast2SMS not configured (missing=%s); OTPs go to the console channel", ",".join(missing))


@app.get("/api/health")
def health(gateway: SmsGateway = Depends(get_sms_gateway)) -> dict:
    return {
        "success": True,
        "service": settings.app_name,
        "env": settings.env,
        "smsConfigured": gateway.configured,
        "smsMissing": sms_missing_fields(settings),
        "fallbackEnabled": gateway.fallback_enabled,
    }


app.include_router(identity_router, tags=["auth"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
