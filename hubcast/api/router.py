from fastapi import APIRouter

from hubcast.api.v1 import feeds, internal

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(feeds.router)

# Shared-secret endpoints live outside the versioned prefix
internal_router = internal.router
