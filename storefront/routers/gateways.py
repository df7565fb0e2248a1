from fastapi import APIRouter, Depends, HTTPException

from ..deps import get_dispatcher
from ..psp.dispatcher import PSPDispatcher

router = APIRouter(tags=["Gateways"])


@router.get("/status")
def gateways_status(dispatcher: PSPDispatcher = Depends(get_dispatcher)):
    """Non-sensitive status of gateway configuration.
    Returns which credentials are present without revealing values.
    """
    settings = dispatcher.settings
    return {
        "cashfree": {
            "configured": bool(settings.CASHFREE_APP_ID and settings.CASHFREE_SECRET_KEY),
            "environment": settings.CASHFREE_ENVIRONMENT,
            "app_id_present": bool(settings.CASHFREE_APP_ID),
            "secret_key_present": bool(settings.CASHFREE_SECRET_KEY),
        },
        "stripe": {
            "configured": bool(settings.STRIPE_SECRET_KEY),
            "publishable_key_present": bool(settings.STRIPE_PUBLISHABLE_KEY),
            "secret_key_present": bool(settings.STRIPE_SECRET_KEY),
            "webhook_secret_present": bool(settings.STRIPE_WEBHOOK_SECRET),
        },
    }


@router.post("/{provider}/test-connection")
async def test_connection(provider: str, dispatcher: PSPDispatcher = Depends(get_dispatcher)):
    """Run a live authenticated call against the gateway."""
    try:
        adapter = dispatcher.get_adapter(provider)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return await adapter.test_connection()
