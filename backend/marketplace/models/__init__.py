from marketplace.models.user import User
from marketplace.models.job import Job
from marketplace.models.bid import Bid
from marketplace.models.payment import Payment

__all__ = ["User", "Job", "Bid", "Payment"]
