from fastapi import APIRouter
from globalsim.api import version_prefix
from globalsim.common.routes import home_router
from globalsim.esim.routes import esim_router
from globalsim.otp.routes import otp_router


public_routers = APIRouter(prefix=version_prefix)

public_routers.include_router(otp_router, prefix="/otp", tags=["otp"])
public_routers.include_router(esim_router, prefix="/esim", tags=["esim"])
public_routers.include_router(home_router, tags=["home"])
