import logging
import uuid

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marketplace.errors import AuthorizationError, ConflictError, NotFoundError
from marketplace.models.bid import Bid
from marketplace.models.job import Job
from marketplace.models.user import User
from marketplace.schemas.bid import BidAttrs
from marketplace.services import job_service
from marketplace.services.notification_service import NotificationSender, notify
from marketplace.services.state import BidStatus, JobStatus, check_bid_transition, check_job_transition
from marketplace.utils.timestamps import utc_now
from marketplace.utils.validation import parse_attrs

logger = logging.getLogger(__name__)


def get_bid(db: Session, bid_id: str) -> Bid:
    bid = db.query(Bid).filter(Bid.id == bid_id).first()
    if not bid:
        raise NotFoundError("Bid not found")
    return bid


def _get_bid_for_owner(db: Session, bid_id: str, owner: User) -> Bid:
    bid = get_bid(db, bid_id)
    if bid.job.created_by != owner.id:
        raise AuthorizationError("Not authorized to decide on bids for this job")
    return bid


def place_bid(db: Session, freelancer: User, job_id: str, attrs: BidAttrs | dict) -> Bid:
    if freelancer.role != "freelancer":
        raise AuthorizationError("Only freelancers can place bids")
    req = parse_attrs(BidAttrs, attrs)

    job = db.query(Job).filter(Job.id == job_id).first()
    if not job:
        raise NotFoundError("Job not found")
    if job.status != JobStatus.OPEN.value:
        raise ConflictError("Job is not open for bidding")

    now = utc_now()
    bid = Bid(
        id=str(uuid.uuid4()),
        freelancer_id=freelancer.id,
        job_id=job_id,
        bid_amount=req.bid_amount,
        message=req.message,
        delivery_time=req.delivery_time,
        status=BidStatus.PENDING.value,
        created_at=now,
        updated_at=now,
    )
    db.add(bid)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        if "UNIQUE" in str(exc.orig):
            raise ConflictError("You have already bid on this job") from exc
        raise ConflictError("Job is no longer available") from exc

    # The counter only moves while the job is still open, in the same
    # transaction as the insert.
    result = db.execute(
        text(
            """
            UPDATE jobs SET bids_count = bids_count + 1, updated_at = :now
            WHERE id = :id AND status = :open
            """
        ),
        {"now": now, "id": job_id, "open": JobStatus.OPEN.value},
    )
    if result.rowcount != 1:
        db.rollback()
        raise ConflictError("Job is not open for bidding")

    db.commit()
    db.refresh(bid)
    logger.info("Bid %s placed on job %s by %s", bid.id, job_id, freelancer.id)
    return bid


def accept_bid(db: Session, owner: User, bid_id: str, notifier: NotificationSender | None = None) -> Bid:
    bid = _get_bid_for_owner(db, bid_id, owner)
    job = bid.job
    check_job_transition(job.status, JobStatus.IN_PROGRESS.value)
    check_bid_transition(bid.status, BidStatus.ACCEPTED.value)

    now = utc_now()
    try:
        job_service.transition_on_accept(db, job.id, bid.freelancer_id, now)
        result = db.execute(
            text("UPDATE bids SET status = :accepted, updated_at = :now WHERE id = :id AND status = :pending"),
            {
                "accepted": BidStatus.ACCEPTED.value,
                "pending": BidStatus.PENDING.value,
                "now": now,
                "id": bid.id,
            },
        )
        if result.rowcount != 1:
            raise ConflictError("Bid is no longer pending")
        rejected = db.execute(
            text(
                """
                UPDATE bids SET status = :rejected, updated_at = :now
                WHERE job_id = :job_id AND id != :id AND status = :pending
                """
            ),
            {
                "rejected": BidStatus.REJECTED.value,
                "pending": BidStatus.PENDING.value,
                "now": now,
                "job_id": job.id,
                "id": bid.id,
            },
        ).rowcount
        db.commit()
    except ConflictError:
        db.rollback()
        raise
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("Another bid was already accepted for this job") from exc

    db.refresh(bid)
    logger.info("Bid %s accepted for job %s; %d sibling bids rejected", bid.id, bid.job_id, rejected)
    notify(
        notifier,
        bid.freelancer.email,
        "Your bid was accepted",
        f"Your bid on \"{bid.job.title}\" was accepted. The job is now assigned to you.",
    )
    return bid


def reject_bid(db: Session, owner: User, bid_id: str, notifier: NotificationSender | None = None) -> Bid:
    bid = _get_bid_for_owner(db, bid_id, owner)
    check_bid_transition(bid.status, BidStatus.REJECTED.value)

    result = db.execute(
        text("UPDATE bids SET status = :rejected, updated_at = :now WHERE id = :id AND status = :pending"),
        {
            "rejected": BidStatus.REJECTED.value,
            "pending": BidStatus.PENDING.value,
            "now": utc_now(),
            "id": bid.id,
        },
    )
    if result.rowcount != 1:
        db.rollback()
        raise ConflictError("Bid is no longer pending")
    db.commit()
    db.refresh(bid)
    logger.info("Bid %s rejected", bid.id)
    notify(
        notifier,
        bid.freelancer.email,
        "Your bid was not selected",
        f"Your bid on \"{bid.job.title}\" was declined by the job owner.",
    )
    return bid


def delete_bid(db: Session, freelancer: User, bid_id: str) -> None:
    bid = get_bid(db, bid_id)
    if bid.freelancer_id != freelancer.id:
        raise AuthorizationError("Not authorized to delete this bid")
    if bid.status != BidStatus.PENDING.value:
        raise ConflictError("Cannot delete a bid that has been accepted or rejected")

    job_id = bid.job_id
    result = db.execute(
        text("DELETE FROM bids WHERE id = :id AND status = :pending"),
        {"id": bid.id, "pending": BidStatus.PENDING.value},
    )
    if result.rowcount != 1:
        db.rollback()
        raise ConflictError("Cannot delete a bid that has been accepted or rejected")
    db.execute(
        text("UPDATE jobs SET bids_count = bids_count - 1, updated_at = :now WHERE id = :id"),
        {"now": utc_now(), "id": job_id},
    )
    db.expunge(bid)
    db.commit()
    logger.info("Bid %s withdrawn from job %s", bid_id, job_id)


def list_bids_for_job(db: Session, owner: User, job_id: str) -> list[Bid]:
    job_service.get_owned_job(db, job_id, owner)
    return db.query(Bid).filter(Bid.job_id == job_id).order_by(Bid.created_at.desc()).all()


def list_bids_by_freelancer(db: Session, freelancer: User) -> list[Bid]:
    if freelancer.role != "freelancer":
        raise AuthorizationError("Only freelancers have bids")
    return db.query(Bid).filter(Bid.freelancer_id == freelancer.id).order_by(Bid.created_at.desc()).all()
