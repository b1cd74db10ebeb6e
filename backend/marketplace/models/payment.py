from sqlalchemy import Column, Float, ForeignKey, Text
from sqlalchemy.orm import relationship
from marketplace.database import Base


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Text, primary_key=True)
    job_id = Column(Text, ForeignKey("jobs.id"), nullable=False)
    payer_id = Column(Text, ForeignKey("users.id"), nullable=False)
    payee_id = Column(Text, ForeignKey("users.id"), nullable=False)
    amount = Column(Float, nullable=False)
    currency = Column(Text, nullable=False)
    order_id = Column(Text, nullable=False, unique=True)
    transaction_id = Column(Text)
    signature = Column(Text)
    status = Column(Text, nullable=False, default="created")
    description = Column(Text, nullable=False, default="")
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    job = relationship("Job")
