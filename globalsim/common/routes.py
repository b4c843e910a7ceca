from fastapi import APIRouter, HTTPException, Request, status

from globalsim.common import logger
from globalsim.common.utils import now, success_response
from globalsim.store.base import StoreUnavailableError

home_router = APIRouter()


@home_router.get("/")
async def home(request: Request):
    settings = request.app.state.settings
    return success_response({
        "name": settings.APP_NAME,
        "endpoints": {
            "otp": ["/otp/send", "/otp/verify", "/otp/status", "/otp/providers"],
            "esim": ["/esim/create", "/esim/activate", "/esim/deactivate", "/esim/usage", "/esim/catalog"],
        },
    })


@home_router.get("/health")
async def health_check(request: Request):
    store = request.app.state.store
    try:
        await store.get("health:ping")
    except StoreUnavailableError as e:
        logger.error("health.store_unavailable", extra={"error": str(e)})
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Store connection error")

    return {"status": "healthy", "timestamp": now().isoformat()}
