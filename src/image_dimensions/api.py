"""HTTP surface for the dimensions map and extraction trigger."""

from typing import Optional

from fastapi import APIRouter, FastAPI, Header, Request
from fastapi.responses import JSONResponse

from .triggers import ExtractionTrigger, create_trigger


router = APIRouter(prefix="/api", tags=["dimensions"])


def _trigger(request: Request) -> ExtractionTrigger:
    return request.app.state.trigger


@router.get("/dimensions", summary="Map of cached image identifiers to their dimensions")
def dimensions(request: Request, prefix: Optional[str] = None):
    status_code, payload = _trigger(request).dimensions_map(prefix)
    return JSONResponse(payload, status_code=status_code)


@router.get("/scheduled", summary="Report readiness and how many images are cached")
def scheduled_status(request: Request):
    status_code, payload = _trigger(request).status()
    return JSONResponse(payload, status_code=status_code)


@router.post("/scheduled", summary="Run dimension extraction for new images")
def run_scheduled(request: Request, authorization: Optional[str] = Header(default=None)):
    status_code, payload = _trigger(request).run_on_demand(authorization)
    return JSONResponse(payload, status_code=status_code)


def create_app(trigger: Optional[ExtractionTrigger] = None) -> FastAPI:
    app = FastAPI(title="Image Dimensions API", version="0.1.0")
    app.state.trigger = trigger or create_trigger()

    app.include_router(router)

    return app
