from pydantic import BaseModel, Field


class BidAttrs(BaseModel):
    bid_amount: float = Field(..., ge=1, allow_inf_nan=False)
    message: str = Field(..., min_length=10)
    delivery_time: int = Field(..., ge=1)

    model_config = {"str_strip_whitespace": True}


class BidCreate(BidAttrs):
    job_id: str


class BidResponse(BaseModel):
    id: str
    job_id: str
    freelancer_id: str
    bid_amount: float
    message: str
    delivery_time: int
    status: str
    created_at: str
    updated_at: str
