from sqlalchemy import Column, Float, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship
from marketplace.database import Base


class Bid(Base):
    __tablename__ = "bids"

    id = Column(Text, primary_key=True)
    freelancer_id = Column(Text, ForeignKey("users.id"), nullable=False)
    job_id = Column(Text, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False)
    bid_amount = Column(Float, nullable=False)
    message = Column(Text, nullable=False)
    delivery_time = Column(Integer, nullable=False)
    status = Column(Text, nullable=False, default="pending")
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    job = relationship("Job", back_populates="bids")
    freelancer = relationship("User")
