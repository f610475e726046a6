from fastapi import APIRouter

from portal.api.auth import router as auth_router
from portal.api.clients import router as clients_router
from portal.api.files import router as files_router
from portal.api.invoices import router as invoices_router
from portal.api.payments import router as payments_router
from portal.api.projects import router as projects_router
from portal.api.time_entries import router as time_entries_router

router = APIRouter()
router.include_router(auth_router, prefix="/auth", tags=["auth"])
router.include_router(clients_router, prefix="/clients", tags=["clients"])
router.include_router(projects_router, prefix="/projects", tags=["projects"])
router.include_router(invoices_router, prefix="/invoices", tags=["invoices"])
router.include_router(payments_router, prefix="/payments", tags=["payments"])
router.include_router(time_entries_router, prefix="/time-entries", tags=["time-entries"])
router.include_router(files_router, prefix="/files", tags=["files"])
