from sqlalchemy import JSON, Column, Float, Text
from marketplace.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Text, primary_key=True)
    name = Column(Text, nullable=False)
    email = Column(Text, nullable=False, unique=True)
    password_hash = Column(Text, nullable=False)
    role = Column(Text, nullable=False)
    bio = Column(Text, nullable=False, default="")
    skills = Column(JSON, nullable=False, default=list)
    hourly_rate = Column(Float)
    profile_pic = Column(Text, nullable=False, default="")
    reset_token_hash = Column(Text)
    reset_token_expires_at = Column(Float)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)
