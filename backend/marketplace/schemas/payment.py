from pydantic import BaseModel, Field


class PaymentIntentCreate(BaseModel):
    job_id: str
    amount: float = Field(..., gt=0, allow_inf_nan=False)
    description: str | None = None


class PaymentIntentResponse(BaseModel):
    message: str
    order_id: str
    amount: int  # minor currency units, as sent to the gateway
    currency: str
    payment_id: str


class PaymentVerifyRequest(BaseModel):
    order_id: str = Field(..., min_length=1)
    transaction_id: str = Field(..., min_length=1)
    signature: str = Field(..., min_length=1)


class PaymentResponse(BaseModel):
    id: str
    job_id: str
    payer_id: str
    payee_id: str
    amount: float
    currency: str
    order_id: str
    transaction_id: str | None
    status: str
    description: str
    created_at: str
    updated_at: str


class PaymentHistoryResponse(BaseModel):
    payments: list[PaymentResponse]
