import logging
import math
import uuid

from sqlalchemy import or_, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marketplace.errors import AuthorizationError, ConflictError, NotFoundError
from marketplace.models.bid import Bid
from marketplace.models.job import Job
from marketplace.models.payment import Payment
from marketplace.models.user import User
from marketplace.schemas.job import JOB_CATEGORIES, JobCreate, JobUpdate
from marketplace.services.state import JobStatus, check_job_override, check_job_transition
from marketplace.utils.timestamps import utc_now
from marketplace.utils.validation import parse_attrs

logger = logging.getLogger(__name__)


def list_categories() -> list[str]:
    return list(JOB_CATEGORIES)


def create_job(db: Session, owner: User, attrs: JobCreate | dict) -> Job:
    if owner.role != "job_provider":
        raise AuthorizationError("Only job providers can post jobs")
    req = parse_attrs(JobCreate, attrs)

    now = utc_now()
    job = Job(
        id=str(uuid.uuid4()),
        title=req.title,
        description=req.description,
        category=req.category,
        budget=req.budget,
        budget_type=req.budget_type,
        skills=req.skills,
        duration=req.duration,
        experience_level=req.experience_level,
        status=JobStatus.OPEN.value,
        created_by=owner.id,
        assigned_to=None,
        bids_count=0,
        created_at=now,
        updated_at=now,
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    logger.info("Job %s posted by %s", job.id, owner.id)
    return job


def get_job(db: Session, job_id: str) -> Job:
    job = db.query(Job).filter(Job.id == job_id).first()
    if not job:
        raise NotFoundError("Job not found")
    return job


def get_owned_job(db: Session, job_id: str, actor: User) -> Job:
    job = get_job(db, job_id)
    if job.created_by != actor.id:
        raise AuthorizationError("Not authorized to manage this job")
    return job


def list_open_jobs(
    db: Session,
    category: str | None = None,
    search: str | None = None,
    budget_min: float | None = None,
    budget_max: float | None = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Job], int]:
    query = db.query(Job).filter(Job.status == JobStatus.OPEN.value)

    if category and category != "all":
        query = query.filter(Job.category == category)
    if budget_min is not None:
        query = query.filter(Job.budget >= budget_min)
    if budget_max is not None:
        query = query.filter(Job.budget <= budget_max)
    if search:
        query = query.filter(or_(Job.title.ilike(f"%{search}%"), Job.description.ilike(f"%{search}%")))

    total = query.count()
    jobs = query.order_by(Job.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return jobs, total


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit > 0 else 0


def list_jobs_posted_by(db: Session, owner: User) -> list[Job]:
    if owner.role != "job_provider":
        raise AuthorizationError("Only job providers have posted jobs")
    return db.query(Job).filter(Job.created_by == owner.id).order_by(Job.created_at.desc()).all()


def update_job(db: Session, job_id: str, actor: User, fields: JobUpdate | dict) -> Job:
    job = get_owned_job(db, job_id, actor)
    req = parse_attrs(JobUpdate, fields)
    changes = req.model_dump(exclude_unset=True, exclude_none=True)
    now = utc_now()

    target = changes.pop("status", None)
    if target is not None and target != job.status:
        check_job_override(job.status, target)
        result = db.execute(
            text("UPDATE jobs SET status = :target, updated_at = :now WHERE id = :id AND status = :current"),
            {"target": target, "now": now, "id": job.id, "current": job.status},
        )
        if result.rowcount != 1:
            db.rollback()
            raise ConflictError("Job status changed, reload and retry")
        logger.info("Job %s status set to %s by owner", job.id, target)

    for key, value in changes.items():
        setattr(job, key, value)
    job.updated_at = now
    db.commit()
    db.refresh(job)
    return job


def delete_job(db: Session, job_id: str, actor: User) -> None:
    job = get_owned_job(db, job_id, actor)
    if db.query(Payment.id).filter(Payment.job_id == job.id).first():
        raise ConflictError("Job has payment records and cannot be deleted")

    deleted_bids = db.query(Bid).filter(Bid.job_id == job.id).delete(synchronize_session=False)
    db.delete(job)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("Job has payment records and cannot be deleted") from exc
    logger.info("Job %s deleted with %d bids", job_id, deleted_bids)


def transition_on_accept(db: Session, job_id: str, freelancer_id: str, now: str | None = None) -> None:
    """Assign an open job to ``freelancer_id``. Runs inside the caller's transaction."""
    result = db.execute(
        text(
            """
            UPDATE jobs SET status = :target, assigned_to = :freelancer_id, updated_at = :now
            WHERE id = :id AND status = :current
            """
        ),
        {
            "target": JobStatus.IN_PROGRESS.value,
            "current": JobStatus.OPEN.value,
            "freelancer_id": freelancer_id,
            "now": now or utc_now(),
            "id": job_id,
        },
    )
    if result.rowcount != 1:
        raise ConflictError("Job is no longer open")


def transition_on_settlement(db: Session, job_id: str, now: str | None = None) -> bool:
    """Mark a job completed. Runs inside the caller's transaction.

    Returns True when this call completed the job and False when it was
    already completed, so a replayed settlement has no further effect.
    """
    result = db.execute(
        text("UPDATE jobs SET status = :target, updated_at = :now WHERE id = :id AND status = :current"),
        {
            "target": JobStatus.COMPLETED.value,
            "current": JobStatus.IN_PROGRESS.value,
            "now": now or utc_now(),
            "id": job_id,
        },
    )
    if result.rowcount == 1:
        logger.info("Job %s completed", job_id)
        return True

    current = db.execute(text("SELECT status FROM jobs WHERE id = :id"), {"id": job_id}).scalar()
    if current is None:
        raise NotFoundError("Job not found")
    if current == JobStatus.COMPLETED.value:
        return False
    check_job_transition(current, JobStatus.COMPLETED.value)
    raise ConflictError("Job status changed during settlement")
