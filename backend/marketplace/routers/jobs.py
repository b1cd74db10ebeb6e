from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from marketplace.database import get_db
from marketplace.dependencies import get_current_user, require_role
from marketplace.models.job import Job
from marketplace.models.user import User
from marketplace.schemas.job import CategoryListResponse, JobCreate, JobListResponse, JobResponse, JobUpdate
from marketplace.services import job_service

router = APIRouter(prefix="/jobs", tags=["jobs"])


def _job_to_response(job: Job) -> JobResponse:
    return JobResponse(
        id=job.id,
        title=job.title,
        description=job.description,
        category=job.category,
        budget=job.budget,
        budget_type=job.budget_type,
        skills=job.skills or [],
        duration=job.duration,
        experience_level=job.experience_level,
        status=job.status,
        created_by=job.created_by,
        assigned_to=job.assigned_to,
        bids_count=job.bids_count,
        created_at=job.created_at,
        updated_at=job.updated_at,
    )


@router.get("", response_model=JobListResponse)
async def list_jobs(
    category: str | None = None,
    search: str | None = None,
    budget_min: float | None = None,
    budget_max: float | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    jobs, total = job_service.list_open_jobs(
        db,
        category=category,
        search=search,
        budget_min=budget_min,
        budget_max=budget_max,
        page=page,
        limit=limit,
    )
    return JobListResponse(
        jobs=[_job_to_response(j) for j in jobs],
        total=total,
        total_pages=job_service.total_pages(total, limit),
        page=page,
        limit=limit,
    )


@router.get("/categories", response_model=CategoryListResponse)
async def list_categories():
    return CategoryListResponse(categories=job_service.list_categories())


@router.get("/user/posted", response_model=list[JobResponse])
async def list_posted_jobs(
    user: User = Depends(require_role("job_provider")),
    db: Session = Depends(get_db),
):
    return [_job_to_response(j) for j in job_service.list_jobs_posted_by(db, user)]


@router.get("/{job_id}", response_model=JobResponse)
async def get_job(job_id: str, db: Session = Depends(get_db)):
    return _job_to_response(job_service.get_job(db, job_id))


@router.post("", response_model=JobResponse, status_code=201)
async def create_job(
    req: JobCreate,
    user: User = Depends(require_role("job_provider")),
    db: Session = Depends(get_db),
):
    return _job_to_response(job_service.create_job(db, user, req))


@router.put("/{job_id}", response_model=JobResponse)
async def update_job(
    job_id: str,
    req: JobUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _job_to_response(job_service.update_job(db, job_id, user, req))


@router.delete("/{job_id}")
async def delete_job(
    job_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    job_service.delete_job(db, job_id, user)
    return {"message": "Job deleted"}
