from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from core.config import TRANSACTION_HISTORY_LIMIT
from core.db import get_db
from routers.dependencies import get_current_user

from .schemas import (
    BalanceResponse,
    ClaimHistoryResponse,
    ClaimRequest,
    ClaimResponse,
    GiftRequest,
    GiftResponse,
    MintNftRequest,
    MintNftResponse,
    SharePostRequest,
    SharePostResponse,
    TransactionListResponse,
    TransactionStatsResponse,
)
from .service import claim as service_claim
from .service import get_balance as service_get_balance
from .service import list_claims as service_list_claims
from .service import list_transactions as service_list_transactions
from .service import mint_nft as service_mint_nft
from .service import send_gift as service_send_gift
from .service import share_post as service_share_post
from .service import transaction_stats as service_transaction_stats

router = APIRouter(prefix="/wallet", tags=["Wallet"])


@router.get("/balance", response_model=BalanceResponse)
async def get_balance(
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    """Balances, what is claimable right now, and a ledger reconciliation per currency."""
    return service_get_balance(db, current_user=current_user)


@router.post("/gift", response_model=GiftResponse)
async def send_gift(
    request: GiftRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    """Send camly to another user. Fails with `insufficient_balance` without moving anything."""
    return service_send_gift(
        db,
        current_user=current_user,
        receiver_id=request.receiver_id,
        amount=request.amount,
        reference_type=request.reference_type,
        reference_id=request.reference_id,
        message=request.message,
        background_tasks=background_tasks,
    )


@router.post("/posts/{post_id}/share", response_model=SharePostResponse)
async def share_post(
    post_id: str,
    request: SharePostRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return service_share_post(
        db,
        current_user=current_user,
        post_id=post_id,
        caption=request.caption,
        visibility=request.visibility,
        background_tasks=background_tasks,
    )


@router.post("/nfts", response_model=MintNftResponse)
async def mint_nft(
    request: MintNftRequest,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return service_mint_nft(db, current_user=current_user, name=request.name, image_url=request.image_url)


@router.post("/claim", response_model=ClaimResponse)
async def claim(
    request: ClaimRequest,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    """Convert green points into camly (10 points = 1 camly, minimum 100 points)."""
    return service_claim(
        db, current_user=current_user, points=request.points, wallet_address=request.wallet_address
    )


@router.get("/claims", response_model=ClaimHistoryResponse)
async def list_claims(
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return service_list_claims(db, current_user=current_user)


@router.get("/transactions", response_model=TransactionListResponse)
async def list_transactions(
    direction: str = Query("all", pattern="^(all|sent|received)$"),
    limit: int = Query(TRANSACTION_HISTORY_LIMIT, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return service_list_transactions(db, current_user=current_user, direction=direction, limit=limit)


@router.get("/stats", response_model=TransactionStatsResponse)
async def transaction_stats(
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return service_transaction_stats(db, current_user=current_user)
