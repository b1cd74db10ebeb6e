import logging

from fastapi import APIRouter, Depends, Header, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from marketplace.database import get_db
from marketplace.dependencies import get_current_user, get_gateway, get_notifier, require_role
from marketplace.errors import MarketplaceError
from marketplace.models.payment import Payment
from marketplace.models.user import User
from marketplace.schemas.payment import (
    PaymentHistoryResponse,
    PaymentIntentCreate,
    PaymentIntentResponse,
    PaymentResponse,
    PaymentVerifyRequest,
)
from marketplace.services import payment_service
from marketplace.services.gateway import PaymentGateway
from marketplace.services.notification_service import NotificationSender

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payment", tags=["payments"])


def _payment_to_response(payment: Payment) -> PaymentResponse:
    return PaymentResponse(
        id=payment.id,
        job_id=payment.job_id,
        payer_id=payment.payer_id,
        payee_id=payment.payee_id,
        amount=payment.amount,
        currency=payment.currency,
        order_id=payment.order_id,
        transaction_id=payment.transaction_id,
        status=payment.status,
        description=payment.description,
        created_at=payment.created_at,
        updated_at=payment.updated_at,
    )


# Plain def: the gateway call and notifications block, so these run in the threadpool.
@router.post("/create-order", response_model=PaymentIntentResponse)
def create_order(
    req: PaymentIntentCreate,
    user: User = Depends(require_role("job_provider")),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
):
    payment, order = payment_service.create_payment_intent(
        db, user, req.job_id, req.amount, gateway, description=req.description
    )
    return PaymentIntentResponse(
        message="Payment order created successfully",
        order_id=payment.order_id,
        amount=order.get("amount", payment_service.to_minor_units(payment.amount)),
        currency=payment.currency,
        payment_id=payment.id,
    )


@router.post("/verify", response_model=PaymentResponse)
def verify_payment(
    req: PaymentVerifyRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    notifier: NotificationSender = Depends(get_notifier),
):
    payment = payment_service.verify_payment(
        db, user, req.order_id, req.transaction_id, req.signature, notifier
    )
    return _payment_to_response(payment)


@router.get("/history", response_model=PaymentHistoryResponse)
async def payment_history(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    payments = payment_service.get_history(db, user)
    return PaymentHistoryResponse(payments=[_payment_to_response(p) for p in payments])


@router.post("/webhook")
async def payment_webhook(
    request: Request,
    x_gateway_signature: str | None = Header(None),
    db: Session = Depends(get_db),
    notifier: NotificationSender = Depends(get_notifier),
):
    raw_body = await request.body()
    try:
        return await run_in_threadpool(
            payment_service.handle_webhook, db, raw_body, x_gateway_signature, notifier
        )
    except MarketplaceError:
        raise
    except Exception:
        # The gateway redelivers on non-2xx; nothing is retried here.
        logger.exception("Webhook processing error")
        return JSONResponse(status_code=500, content={"message": "Webhook processing error"})


@router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment(
    payment_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _payment_to_response(payment_service.get_payment(db, user, payment_id))
