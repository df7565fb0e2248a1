"""
Checkout result view.

Stateless: every call (including a manual refresh on the client) re-runs
the resolution from scratch.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..deps import get_verifier
from ..schemas.checkout import CheckoutResult, CheckoutResultRequest, NavigationHint, RedirectParams
from ..services.reconciliation import PaymentVerifier, resolve_checkout_result

router = APIRouter(tags=["Checkout"])


@router.post("/result", response_model=CheckoutResult)
async def checkout_result(body: CheckoutResultRequest, verifier: PaymentVerifier = Depends(get_verifier)):
    """Resolve the result page from the client's navigation state plus the redirect query."""
    return await resolve_checkout_result(body.hint, body.params, verifier)


@router.get("/result", response_model=CheckoutResult)
async def checkout_result_from_query(
    order_id: Optional[str] = Query(default=None),
    session_id: Optional[str] = Query(default=None),
    canceled: bool = Query(default=False),
    verifier: PaymentVerifier = Depends(get_verifier),
):
    """Same resolution when only the redirect URL survived (e.g. a reload)."""
    params = RedirectParams(order_id=order_id, session_id=session_id, canceled=canceled)
    return await resolve_checkout_result(NavigationHint(), params, verifier)
