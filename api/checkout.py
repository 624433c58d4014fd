from fastapi import APIRouter, HTTPException, Query, Path, Body, Depends, Request, BackgroundTasks
from fastapi.responses import RedirectResponse
from models.checkout import (
    ApprovalCallback,
    Cart,
    CheckoutResponse,
    CheckoutState,
    CheckoutSubmission,
    PaymentOption,
)
from managers.paypal_manager import PayPalClient
from services.checkout import CheckoutOrchestrator
from services.payment_options import list_payment_options
from repository import checkout as checkout_repo
from utils.errors import (
    ConfigurationError,
    PersistenceError,
    CheckoutStateError,
    CheckoutValidationError,
)
from api.payment import get_paypal_client
from api.email import send_order_confirmation
from pydantic import BaseModel
from typing import List, Optional
from urllib.parse import urlencode
import logging
import uuid

router = APIRouter()
logger = logging.getLogger(__name__)


class CheckoutStart(BaseModel):
    cart_id: uuid.UUID


def _to_http_exception(e: Exception) -> HTTPException:
    if isinstance(e, CheckoutValidationError):
        return HTTPException(status_code=422, detail=e.errors)
    if isinstance(e, CheckoutStateError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, ConfigurationError):
        logger.error("Checkout unavailable: %s", e)
        return HTTPException(status_code=500, detail="PayPal not configured")
    if isinstance(e, PersistenceError):
        return HTTPException(status_code=503, detail=str(e))
    if isinstance(e, ValueError):
        return HTTPException(status_code=404, detail=str(e))
    logger.exception("Unexpected checkout error: %s", e)
    return HTTPException(status_code=500, detail=str(e))


def _load(request: Request, client: PayPalClient, session_id: str) -> CheckoutOrchestrator:
    session = checkout_repo.get_session(session_id)
    cart = checkout_repo.get_cart(str(session.cart_id))
    return CheckoutOrchestrator(session, cart, client, shop=request.app.state.shop)


def _save(orchestrator: CheckoutOrchestrator, background_tasks: BackgroundTasks) -> CheckoutResponse:
    checkout_repo.save_session(orchestrator.session)
    if orchestrator.order is not None:
        background_tasks.add_task(send_order_confirmation, orchestrator.order)
    return CheckoutResponse.from_session(orchestrator.session)


# カート
@router.post("/carts", response_model=Cart, status_code=201, tags=["checkout"])
def save_cart(cart: Cart = Body(..., description="Cart to save")):
    try:
        checkout_repo.save_cart(cart)
        return cart
    except Exception as e:
        raise _to_http_exception(e)


@router.get("/carts/{cart_id}", response_model=Cart, tags=["checkout"])
def get_cart(cart_id: uuid.UUID = Path(..., description="The ID of the cart to retrieve")):
    try:
        return checkout_repo.get_cart(str(cart_id))
    except Exception as e:
        raise _to_http_exception(e)


# チェックアウトセッション
@router.post("/checkout/sessions", response_model=CheckoutResponse, status_code=201, tags=["checkout"])
def start_checkout(
        request: Request,
        body: CheckoutStart = Body(...),
        client: PayPalClient = Depends(get_paypal_client),
    ):
    try:
        cart = checkout_repo.get_cart(str(body.cart_id))
        orchestrator = CheckoutOrchestrator.start(cart, client, shop=request.app.state.shop)
        checkout_repo.save_session(orchestrator.session)
        return CheckoutResponse.from_session(orchestrator.session)
    except Exception as e:
        raise _to_http_exception(e)


@router.get("/checkout/sessions/{session_id}", response_model=CheckoutResponse, tags=["checkout"])
def get_checkout(session_id: uuid.UUID = Path(...)):
    try:
        return CheckoutResponse.from_session(checkout_repo.get_session(str(session_id)))
    except Exception as e:
        raise _to_http_exception(e)


@router.post("/checkout/sessions/{session_id}/submit", response_model=CheckoutResponse, tags=["checkout"])
def submit_checkout(
        request: Request,
        background_tasks: BackgroundTasks,
        session_id: uuid.UUID = Path(...),
        submission: CheckoutSubmission = Body(...),
        client: PayPalClient = Depends(get_paypal_client),
    ):
    """配送先・支払い方法を確定してPayPal注文を作成する"""
    try:
        orchestrator = _load(request, client, str(session_id))
        orchestrator.submit(
            submission,
            return_url=str(request.url_for("paypal_return")),
            cancel_url=str(request.url_for("paypal_cancel")),
        )
        return _save(orchestrator, background_tasks)
    except Exception as e:
        raise _to_http_exception(e)


@router.post("/checkout/sessions/{session_id}/approve", response_model=CheckoutResponse, tags=["checkout"])
def approve_checkout(
        request: Request,
        background_tasks: BackgroundTasks,
        session_id: uuid.UUID = Path(...),
        callback: ApprovalCallback = Body(...),
        client: PayPalClient = Depends(get_paypal_client),
    ):
    """埋め込みボタンのonApprove。キャプチャして注文を確定する"""
    try:
        orchestrator = _load(request, client, str(session_id))
        orchestrator.approve(callback.order_id, callback.payer_id)
        return _save(orchestrator, background_tasks)
    except Exception as e:
        raise _to_http_exception(e)


@router.post("/checkout/sessions/{session_id}/cancel", response_model=CheckoutResponse, tags=["checkout"])
def cancel_checkout(
        request: Request,
        background_tasks: BackgroundTasks,
        session_id: uuid.UUID = Path(...),
        client: PayPalClient = Depends(get_paypal_client),
    ):
    try:
        orchestrator = _load(request, client, str(session_id))
        orchestrator.cancel()
        return _save(orchestrator, background_tasks)
    except Exception as e:
        raise _to_http_exception(e)


@router.post("/checkout/sessions/{session_id}/retry", response_model=CheckoutResponse, tags=["checkout"])
def retry_checkout(
        request: Request,
        background_tasks: BackgroundTasks,
        session_id: uuid.UUID = Path(...),
        client: PayPalClient = Depends(get_paypal_client),
    ):
    try:
        orchestrator = _load(request, client, str(session_id))
        orchestrator.retry()
        return _save(orchestrator, background_tasks)
    except Exception as e:
        raise _to_http_exception(e)


# PayPalからのリダイレクト戻り
def _front_redirect(request: Request, **params) -> RedirectResponse:
    front_url = request.app.state.paypal_settings.front_url or "/"
    return RedirectResponse(url=f"{front_url.rstrip('/')}/checkout?{urlencode(params)}", status_code=303)


@router.get("/checkout/return", name="paypal_return", tags=["checkout"])
def paypal_return(
        request: Request,
        background_tasks: BackgroundTasks,
        token: str = Query(..., description="PayPal order ID"),
        payer_id: Optional[str] = Query(None, alias="PayerID"),
        client: PayPalClient = Depends(get_paypal_client),
    ):
    session = checkout_repo.find_session_by_paypal_id(token)
    if session is None:
        logger.warning("PayPal return for unknown order %s", token)
        return _front_redirect(request, paypal="error")

    try:
        orchestrator = _load(request, client, str(session.id))
        orchestrator.approve(token, payer_id)
        response = _save(orchestrator, background_tasks)
    except (CheckoutStateError, PersistenceError, ValueError) as e:
        logger.error("PayPal return failed for session %s: %s", session.id, e)
        return _front_redirect(request, paypal="error", session_id=session.id)

    if response.state == CheckoutState.COMPLETED:
        return _front_redirect(request, paypal="success", session_id=session.id, order_id=response.local_order_id)
    return _front_redirect(request, paypal="failed", session_id=session.id)


@router.get("/checkout/cancel", name="paypal_cancel", tags=["checkout"])
def paypal_cancel(
        request: Request,
        background_tasks: BackgroundTasks,
        token: str = Query(..., description="PayPal order ID"),
        client: PayPalClient = Depends(get_paypal_client),
    ):
    session = checkout_repo.find_session_by_paypal_id(token)
    if session is None:
        return _front_redirect(request, paypal="cancel")

    try:
        orchestrator = _load(request, client, str(session.id))
        orchestrator.cancel()
        _save(orchestrator, background_tasks)
    except (CheckoutStateError, PersistenceError, ValueError) as e:
        logger.warning("PayPal cancel ignored for session %s: %s", session.id, e)
    return _front_redirect(request, paypal="cancel", session_id=session.id)


@router.get("/checkout/payment-options", response_model=List[PaymentOption], tags=["checkout"])
async def payment_options(
        request: Request,
        express: bool = Query(False, description="Express checkout (cart page) buttons"),
        currency_code: str = Query("EUR"),
    ):
    return list_payment_options(request.app.state.paypal_settings, express=express, currency_code=currency_code)
