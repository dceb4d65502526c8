"""
LifePlan API server.
Can be run standalone (python -m lifeplan_api) or mounted into an existing app.
"""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from lifeplan.errors import StorageError, ValidationError
from logging_setup import get_logger, Component
from .routes import router

app = FastAPI(title="LifePlan Voice Guide API")
logger = get_logger(Component.LIFEPLAN_API)
app.include_router(router)


@app.exception_handler(ValidationError)
async def handle_validation_error(request: Request, exc: ValidationError):
    logger.warning("Rejected request", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(StorageError)
async def handle_storage_error(request: Request, exc: StorageError):
    # Stable error surface: no paths or internal traces in the response.
    logger.error("Storage failure", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content={"error": "storage_unavailable"})


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "ok", "component": "lifeplan_api"}
