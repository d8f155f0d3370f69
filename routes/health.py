from fastapi import APIRouter, Request

import config
from .limiter import limiter

router = APIRouter(tags=["Health"])


@router.get("/")
@limiter.limit("100/minute")
async def root(request: Request):
    """Health check endpoint"""
    return {
        "status": "online",
        "message": f"{config.APP_NAME} is running",
        "version": config.APP_VERSION
    }


@router.get("/health")
@limiter.limit("100/minute")
async def health_check(request: Request):
    """Health check endpoint"""
    return {"status": "healthy"}
