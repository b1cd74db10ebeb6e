from sqlalchemy import JSON, Column, Float, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship
from marketplace.database import Base


class Job(Base):
    __tablename__ = "jobs"

    id = Column(Text, primary_key=True)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    category = Column(Text, nullable=False)
    budget = Column(Float, nullable=False)
    budget_type = Column(Text, nullable=False, default="fixed")
    skills = Column(JSON, nullable=False, default=list)
    duration = Column(Text)
    experience_level = Column(Text, nullable=False, default="intermediate")
    status = Column(Text, nullable=False, default="open")
    created_by = Column(Text, ForeignKey("users.id"), nullable=False)
    assigned_to = Column(Text, ForeignKey("users.id"))
    bids_count = Column(Integer, nullable=False, default=0)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    owner = relationship("User", foreign_keys=[created_by])
    freelancer = relationship("User", foreign_keys=[assigned_to])
    bids = relationship("Bid", back_populates="job", cascade="all, delete-orphan", passive_deletes=True)
