import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from portal.api.router import router as api_router
from portal.core.config import settings
from portal.core.http_hardening import install_http_hardening
from portal.filtering.errors import FilterError
from portal.schemas.pagination import ErrorResponse

# mapper configuration needs every model imported
from portal.models import client, company, invoice, payment, project, time_entry, user  # noqa: F401

_LOG = logging.getLogger("portal.http")

app = FastAPI(title=settings.APP_NAME, version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
install_http_hardening(app)

app.include_router(api_router, prefix="/api")


@app.exception_handler(FilterError)
async def filter_error_handler(request: Request, exc: FilterError):
    request_id = getattr(request.state, "request_id", None)
    _LOG.warning(
        "rejected list query path=%s field=%s detail=%s request_id=%s",
        request.url.path,
        exc.field,
        exc.detail,
        request_id,
    )
    body = ErrorResponse(detail=exc.detail, field=exc.field, request_id=request_id)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


@app.get("/", include_in_schema=False)
def landing():
    return JSONResponse({"service": settings.APP_NAME, "status": "ok"})


@app.get("/health")
def health():
    return {"status": "ok"}
