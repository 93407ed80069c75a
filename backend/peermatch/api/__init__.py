from fastapi import APIRouter
from peermatch.api import live_support

api_router = APIRouter()
api_router.include_router(live_support.router, prefix="/api/live-support", tags=["live-support"])
