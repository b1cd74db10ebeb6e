"""Payment intents and their reconciliation against the gateway.

Two producers settle a payment: the synchronous ``verify_payment`` call made
with the gateway's signed callback, and the asynchronous ``handle_webhook``
delivery. Both go through ``_settle``, which moves the payment from created
to paid and the job from in_progress to completed in one transaction using
conditional updates. Replays from either side find the payment already paid
and return without touching anything.
"""

import json
import logging
import math
import time
import uuid
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import text
from sqlalchemy.orm import Session

from marketplace.config import settings
from marketplace.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    MarketplaceError,
    NotFoundError,
    ValidationError,
)
from marketplace.models.payment import Payment
from marketplace.models.user import User
from marketplace.services import job_service
from marketplace.services.gateway import PaymentGateway, sign_transaction, sign_webhook
from marketplace.services.notification_service import NotificationSender, notify
from marketplace.services.state import JobStatus, PaymentStatus, check_payment_transition
from marketplace.utils.hashing import signatures_match
from marketplace.utils.timestamps import utc_now

logger = logging.getLogger(__name__)


def to_minor_units(amount: float) -> int:
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _amount_error(message: str) -> ValidationError:
    return ValidationError(message, details=[{"field": "amount", "message": message}])


def create_payment_intent(
    db: Session,
    owner: User,
    job_id: str,
    amount: float,
    gateway: PaymentGateway,
    description: str | None = None,
) -> tuple[Payment, dict]:
    if amount is None or not math.isfinite(amount) or amount <= 0:
        raise _amount_error("Amount must be a positive number")
    amount_minor = to_minor_units(amount)
    if amount_minor < 1:
        raise _amount_error("Amount is below the smallest currency unit")

    job = job_service.get_job(db, job_id)
    if job.created_by != owner.id:
        raise AuthorizationError("Not authorized to make payment for this job")
    if not job.assigned_to:
        raise ConflictError("Job has not been assigned to any freelancer")
    if job.status == JobStatus.COMPLETED.value:
        raise ConflictError("Job has already been settled")

    order = gateway.create_order(
        amount_minor,
        settings.gateway_currency,
        receipt=f"job_{job.id[:8]}_{int(time.time() * 1000)}",
        notes={"job_id": job.id, "payer_id": owner.id, "payee_id": job.assigned_to},
    )

    now = utc_now()
    payment = Payment(
        id=str(uuid.uuid4()),
        job_id=job.id,
        payer_id=owner.id,
        payee_id=job.assigned_to,
        amount=amount,
        currency=order.get("currency", settings.gateway_currency),
        order_id=order["id"],
        status=PaymentStatus.CREATED.value,
        description=description or f"Payment for job: {job.title}",
        created_at=now,
        updated_at=now,
    )
    db.add(payment)
    db.commit()
    db.refresh(payment)
    logger.info("Payment %s created for job %s (order %s)", payment.id, job.id, payment.order_id)
    return payment, order


def find_by_order(db: Session, order_id: str | None) -> Payment | None:
    if not order_id:
        return None
    return db.query(Payment).filter(Payment.order_id == order_id).first()


def _settle(db: Session, payment: Payment, transaction_id: str | None, signature: str | None) -> bool:
    """Apply settlement once. Returns False when the payment was already paid."""
    if payment.status == PaymentStatus.PAID.value:
        return False
    check_payment_transition(payment.status, PaymentStatus.PAID.value)

    now = utc_now()
    result = db.execute(
        text(
            """
            UPDATE payments
            SET status = :paid,
                transaction_id = COALESCE(:transaction_id, transaction_id),
                signature = COALESCE(:signature, signature),
                updated_at = :now
            WHERE id = :id AND status = :created
            """
        ),
        {
            "paid": PaymentStatus.PAID.value,
            "created": PaymentStatus.CREATED.value,
            "transaction_id": transaction_id,
            "signature": signature,
            "now": now,
            "id": payment.id,
        },
    )
    if result.rowcount != 1:
        db.rollback()
        db.refresh(payment)
        if payment.status == PaymentStatus.PAID.value:
            return False
        raise ConflictError(f"Payment is {payment.status} and cannot be settled")

    try:
        job_service.transition_on_settlement(db, payment.job_id, now)
    except MarketplaceError:
        db.rollback()
        raise
    db.commit()
    db.refresh(payment)
    logger.info("Payment %s settled; job %s completed", payment.id, payment.job_id)
    return True


def _mark_failed(db: Session, payment: Payment) -> bool:
    result = db.execute(
        text("UPDATE payments SET status = :failed, updated_at = :now WHERE id = :id AND status = :created"),
        {
            "failed": PaymentStatus.FAILED.value,
            "created": PaymentStatus.CREATED.value,
            "now": utc_now(),
            "id": payment.id,
        },
    )
    db.commit()
    db.refresh(payment)
    if result.rowcount == 1:
        logger.info("Payment %s marked failed", payment.id)
        return True
    return False


def _notify_settled(notifier: NotificationSender | None, payment: Payment, db: Session) -> None:
    payee = db.query(User).filter(User.id == payment.payee_id).first()
    if payee:
        notify(
            notifier,
            payee.email,
            "Payment received",
            f"A payment of {payment.amount:.2f} {payment.currency} for \"{payment.job.title}\" has been confirmed.",
        )


def verify_payment(
    db: Session,
    caller: User,
    order_id: str,
    transaction_id: str,
    signature: str,
    notifier: NotificationSender | None = None,
) -> Payment:
    payment = find_by_order(db, order_id)
    if not payment:
        raise NotFoundError("Payment record not found")
    if caller.id not in (payment.payer_id, payment.payee_id):
        raise AuthorizationError("Not authorized to verify this payment")

    expected = sign_transaction(order_id, transaction_id)
    if not signatures_match(expected, signature):
        _mark_failed(db, payment)
        logger.warning("Signature mismatch verifying order %s", order_id)
        raise AuthenticationError("invalid signature")

    if _settle(db, payment, transaction_id, signature):
        _notify_settled(notifier, payment, db)
    return payment


def _payment_entity(event: dict) -> dict | None:
    node = event
    for key in ("payload", "payment", "entity"):
        node = node.get(key)
        if not isinstance(node, dict):
            return None
    return node


def handle_webhook(
    db: Session,
    raw_body: bytes,
    signature_header: str | None,
    notifier: NotificationSender | None = None,
) -> dict:
    if not signatures_match(sign_webhook(raw_body), signature_header):
        logger.warning("Rejected webhook with invalid signature")
        raise AuthenticationError("Invalid webhook signature")

    try:
        event = json.loads(raw_body)
    except ValueError as exc:
        raise ValidationError("Webhook body is not valid JSON") from exc
    if not isinstance(event, dict):
        raise ValidationError("Webhook body must be a JSON object")

    kind = event.get("event")
    entity = _payment_entity(event)

    if kind not in ("payment.captured", "payment.failed"):
        logger.info("Unhandled webhook event: %s", kind)
        return {"status": "ignored", "event": kind}

    if entity is None or not isinstance(entity.get("order_id"), str):
        logger.warning("Webhook %s with malformed payment payload", kind)
        return {"status": "ignored", "event": kind}

    payment = find_by_order(db, entity.get("order_id"))
    if payment is None:
        logger.warning("Webhook %s for unknown order %s", kind, entity.get("order_id"))
        return {"status": "ignored", "event": kind}

    if kind == "payment.captured":
        transaction_id = entity.get("id") if isinstance(entity.get("id"), str) else None
        settled = _settle(db, payment, transaction_id, None)
        if settled:
            _notify_settled(notifier, payment, db)
        return {"status": "ok", "event": kind, "settled": settled}

    failed = _mark_failed(db, payment)
    return {"status": "ok", "event": kind, "failed": failed}


def get_history(db: Session, actor: User) -> list[Payment]:
    query = db.query(Payment)
    if actor.role == "job_provider":
        query = query.filter(Payment.payer_id == actor.id)
    else:
        query = query.filter(Payment.payee_id == actor.id)
    return query.order_by(Payment.created_at.desc()).all()


def get_payment(db: Session, actor: User, payment_id: str) -> Payment:
    payment = db.query(Payment).filter(Payment.id == payment_id).first()
    if not payment:
        raise NotFoundError("Payment not found")
    if actor.id not in (payment.payer_id, payment.payee_id):
        raise AuthorizationError("Not authorized to view this payment")
    return payment
