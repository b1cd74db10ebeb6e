from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from marketplace.database import get_db
from marketplace.dependencies import get_current_user, get_notifier, require_role
from marketplace.models.bid import Bid
from marketplace.models.user import User
from marketplace.schemas.bid import BidCreate, BidResponse
from marketplace.services import bid_service
from marketplace.services.notification_service import NotificationSender

router = APIRouter(prefix="/bids", tags=["bids"])


def _bid_to_response(bid: Bid) -> BidResponse:
    return BidResponse(
        id=bid.id,
        job_id=bid.job_id,
        freelancer_id=bid.freelancer_id,
        bid_amount=bid.bid_amount,
        message=bid.message,
        delivery_time=bid.delivery_time,
        status=bid.status,
        created_at=bid.created_at,
        updated_at=bid.updated_at,
    )


@router.post("", response_model=BidResponse, status_code=201)
async def place_bid(
    req: BidCreate,
    user: User = Depends(require_role("freelancer")),
    db: Session = Depends(get_db),
):
    return _bid_to_response(bid_service.place_bid(db, user, req.job_id, req))


@router.get("/job/{job_id}", response_model=list[BidResponse])
async def list_job_bids(
    job_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return [_bid_to_response(b) for b in bid_service.list_bids_for_job(db, user, job_id)]


@router.get("/freelancer", response_model=list[BidResponse])
async def list_my_bids(
    user: User = Depends(require_role("freelancer")),
    db: Session = Depends(get_db),
):
    return [_bid_to_response(b) for b in bid_service.list_bids_by_freelancer(db, user)]


# Plain def: notifications may block on SMTP.
@router.put("/{bid_id}/accept", response_model=BidResponse)
def accept_bid(
    bid_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    notifier: NotificationSender = Depends(get_notifier),
):
    return _bid_to_response(bid_service.accept_bid(db, user, bid_id, notifier))


@router.put("/{bid_id}/reject", response_model=BidResponse)
def reject_bid(
    bid_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    notifier: NotificationSender = Depends(get_notifier),
):
    return _bid_to_response(bid_service.reject_bid(db, user, bid_id, notifier))


@router.delete("/{bid_id}")
async def delete_bid(
    bid_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    bid_service.delete_bid(db, user, bid_id)
    return {"message": "Bid deleted"}
