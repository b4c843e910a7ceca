from fastapi import APIRouter, Depends, Request

from globalsim.common.custom_exceptions import ValidationError
from globalsim.common.utils import iso_from_epoch, success_response
from globalsim.esim.constants import DATA_PLANS, SUPPORTED_COUNTRIES, find_country, find_plan, logger
from globalsim.esim.dependencies import get_esim_manager
from globalsim.esim.models import CreateESIMIn, ICCIDIn
from globalsim.esim.services import ESIMManager
from globalsim.rate_limiting.constants import ESIM_ACTIVATE_ACTION, ESIM_CREATE_ACTION
from globalsim.rate_limiting.dependencies import enforce_rate_limit, rate_limit_dependency
from globalsim.rate_limiting.rate_limit_fixed_window import RateLimitResult

esim_router = APIRouter()


@esim_router.post("/create")
async def create_esim(request: Request, payload: CreateESIMIn, manager: ESIMManager = Depends(get_esim_manager)):

    country = find_country(payload.country)
    if country is None:
        raise ValidationError("Country not supported")

    plan = find_plan(payload.dataplan)
    if plan is None:
        raise ValidationError("Invalid data plan")

    settings = request.app.state.settings
    rate = await enforce_rate_limit(
        request, ESIM_CREATE_ACTION, settings.ESIM_CREATE_LIMIT, settings.ESIM_CREATE_WINDOW,
        message=f"Rate limit exceeded. You can create up to {settings.ESIM_CREATE_LIMIT} eSIM profiles per hour.")

    logger.info("esim.create.attempt", extra={"country": payload.country, "plan": payload.dataplan})
    profile, selection = await manager.create_profile(payload.country, payload.dataplan, payload.provider)

    return success_response({
        "id": profile.id,
        "iccid": profile.iccid,
        "msisdn": profile.msisdn,
        "country": country["name"],
        "countryCode": profile.country,
        "dataplan": plan,
        "provider": profile.provider,
        "status": profile.status,
        "qrCode": profile.qr_code,
        "activationCode": profile.activation_code,
        "expiresAt": iso_from_epoch(profile.expires_at),
        "reasoning": selection.reasoning,
        "remaining": rate.remaining,
    }, 200, message="eSIM profile created successfully")


@esim_router.post("/activate")
async def activate_esim(payload: ICCIDIn,
                        rate: RateLimitResult = Depends(rate_limit_dependency(
                            ESIM_ACTIVATE_ACTION, "ESIM_ACTIVATE_LIMIT", "ESIM_ACTIVATE_WINDOW")),
                        manager: ESIMManager = Depends(get_esim_manager)):

    profile = await manager.activate(payload.iccid)
    return success_response({
        "iccid": profile.iccid,
        "status": profile.status,
        "activatedAt": iso_from_epoch(profile.activated_at) if profile.activated_at else None,
        "remaining": rate.remaining,
    }, 200, message="eSIM profile activated successfully")


@esim_router.post("/deactivate")
async def deactivate_esim(payload: ICCIDIn,
                          rate: RateLimitResult = Depends(rate_limit_dependency(
                              ESIM_ACTIVATE_ACTION, "ESIM_ACTIVATE_LIMIT", "ESIM_ACTIVATE_WINDOW")),
                          manager: ESIMManager = Depends(get_esim_manager)):

    profile = await manager.deactivate(payload.iccid)
    return success_response({"iccid": profile.iccid, "status": profile.status, "remaining": rate.remaining},
                            200, message="eSIM profile deactivated successfully")


@esim_router.post("/usage")
async def esim_usage(payload: ICCIDIn, manager: ESIMManager = Depends(get_esim_manager)):
    used, remaining = await manager.usage(payload.iccid)
    return success_response({"iccid": payload.iccid, "used": used, "remaining": remaining})


@esim_router.get("/catalog")
async def esim_catalog(manager: ESIMManager = Depends(get_esim_manager)):
    return success_response({
        "supportedCountries": [c for c in SUPPORTED_COUNTRIES if c["available"]],
        "dataPlans": DATA_PLANS,
        "providers": manager.available_providers(),
    })
