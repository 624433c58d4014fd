from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health", tags=["health"])
async def health(request: Request):
    settings = request.app.state.paypal_settings
    return {
        "status": "ok",
        "paypal_configured": settings.is_configured(),
        "paypal_mode": settings.mode,
    }
