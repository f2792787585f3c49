import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse

from . import config
from .deps import build_services
from .routers import dashboard as dashboard_router
from .routers import guidance as guidance_router
from .routers import incidents as incidents_router
from .routers import places as places_router
from .routers import report as report_router
from .services.wizard import WizardRedirect

log = logging.getLogger(__name__)

app = FastAPI(title="GTA Watch Backend")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def startup_event():
    app.state.services = build_services()


@app.on_event("shutdown")
async def shutdown_event():
    services = getattr(app.state, "services", None)
    if services is not None:
        await services.aclose()


@app.exception_handler(WizardRedirect)
async def wizard_redirect_handler(request: Request, exc: WizardRedirect):
    log.info("Redirecting %s to %s: %s", request.url.path, exc.location, exc.reason)
    return RedirectResponse(exc.location, status_code=303)


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(incidents_router.router, prefix="/incidents", tags=["incidents"])
app.include_router(report_router.router, prefix="/report", tags=["report"])
app.include_router(guidance_router.router, prefix="/api", tags=["guidance"])
app.include_router(places_router.router, tags=["places"])
app.include_router(dashboard_router.router, tags=["dashboard"])
