from typing import Literal, get_args

from pydantic import BaseModel, Field

JobCategory = Literal[
    "Web Development",
    "Mobile Development",
    "Design",
    "Writing",
    "Data Entry",
    "Digital Marketing",
    "Video Editing",
    "Translation",
    "Other",
]
JOB_CATEGORIES: tuple[str, ...] = get_args(JobCategory)

JobDuration = Literal[
    "less_than_1_week", "1_to_4_weeks", "1_to_3_months", "3_to_6_months", "more_than_6_months"
]
JobStatusValue = Literal["open", "in_progress", "completed", "cancelled"]


class JobCreate(BaseModel):
    title: str = Field(..., min_length=5)
    description: str = Field(..., min_length=20)
    category: JobCategory
    budget: float = Field(..., ge=1, allow_inf_nan=False)
    budget_type: Literal["fixed", "hourly"] = "fixed"
    skills: list[str] = []
    duration: JobDuration | None = None
    experience_level: Literal["entry", "intermediate", "expert"] = "intermediate"

    model_config = {"str_strip_whitespace": True}


class JobUpdate(BaseModel):
    # Only these fields may change after posting; anything else is ignored.
    title: str | None = Field(None, min_length=5)
    description: str | None = Field(None, min_length=20)
    budget: float | None = Field(None, ge=1, allow_inf_nan=False)
    skills: list[str] | None = None
    status: JobStatusValue | None = None

    model_config = {"str_strip_whitespace": True}


class JobResponse(BaseModel):
    id: str
    title: str
    description: str
    category: str
    budget: float
    budget_type: str
    skills: list[str]
    duration: str | None
    experience_level: str
    status: str
    created_by: str
    assigned_to: str | None
    bids_count: int
    created_at: str
    updated_at: str


class JobListResponse(BaseModel):
    jobs: list[JobResponse]
    total: int
    total_pages: int
    page: int
    limit: int


class CategoryListResponse(BaseModel):
    categories: list[str]
