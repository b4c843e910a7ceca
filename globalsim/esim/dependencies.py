from fastapi import Request
from globalsim.esim.services import ESIMManager


def get_esim_manager(request: Request) -> ESIMManager:
    return request.app.state.esim_manager
