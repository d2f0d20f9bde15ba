from fastapi import APIRouter

from ledger.db.core import SplitType
from ledger.models import sharing as sharing_models
from ledger.services.splits import ParticipantInput, compute_shares

router = APIRouter(
    prefix="/splits",
    tags=["splits"],
)


@router.post("/compute", response_model=sharing_models.ComputeSharesResponse)
def compute(request: sharing_models.ComputeSharesRequest):
    """
    Preview each participant's share without saving anything.
    """
    shares = compute_shares(
        SplitType(request.split_type.value),
        request.total_amount,
        [ParticipantInput(p.email, p.share_percentage, p.share_amount) for p in request.participants],
        request.valid_emails,
    )
    return sharing_models.ComputeSharesResponse(
        shares={
            email: sharing_models.ShareResult(amount=share.amount, percentage=share.percentage)
            for email, share in shares.items()
        }
    )
