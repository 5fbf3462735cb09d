from fastapi import APIRouter
from estate_api.api.routes import (
    properties,
    services,
    contact,
    users,
)

api_router = APIRouter()

api_router.include_router(properties.router)
api_router.include_router(services.router)
api_router.include_router(contact.router)
api_router.include_router(users.router)
