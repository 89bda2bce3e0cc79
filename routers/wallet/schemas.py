"""Wallet domain schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class GiftRequest(BaseModel):
    receiver_id: int = Field(..., example=1234567890)
    amount: int = Field(..., gt=0, example=100)
    reference_type: Optional[str] = Field(None, example="reel")
    reference_id: Optional[str] = Field(None, example="9d7f4b1e-2a35-4d0c-9c36-2f0d6a1c9e11")
    message: Optional[str] = Field(None, max_length=200, example="Great video!")


class SharePostRequest(BaseModel):
    caption: Optional[str] = Field(None, max_length=2000, example="Everyone should read this")
    visibility: str = Field("public", pattern="^(public|friends|private)$")


class MintNftRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120, example="Tree Planter #12")
    image_url: Optional[str] = Field(None, example="https://cdn.example.com/nft/tree-12.png")


class ClaimRequest(BaseModel):
    points: Optional[int] = Field(
        None, gt=0, description="Green points to convert; defaults to everything claimable", example=250
    )
    wallet_address: Optional[str] = Field(None, example="0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed")


class TransactionResponse(BaseModel):
    id: str
    transaction_type: str
    currency: str
    amount: int
    direction: str = Field(..., description="sent | received")
    sender_id: Optional[int] = None
    receiver_id: Optional[int] = None
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class GiftResponse(BaseModel):
    transaction: TransactionResponse
    camly_balance: int
    message: str


class SharePostResponse(BaseModel):
    share_id: str
    camly_earned: int
    author_bonus: int
    shares_today: int
    shares_remaining: int
    message: str


class MintNftResponse(BaseModel):
    nft_id: str
    name: str
    camly_earned: int
    message: str


class ClaimResponse(BaseModel):
    claim_id: str
    green_points_converted: int
    camly_received: int
    transaction_hash: str
    wallet_address: Optional[str] = None
    green_points: int
    total_camly_claimed: int
    message: str


class TransactionListResponse(BaseModel):
    transactions: List[TransactionResponse]


class TransactionStatsResponse(BaseModel):
    total_sent: int
    total_received: int
    transaction_count: int


class ReconciliationResult(BaseModel):
    currency: str
    stored: int
    computed: int
    in_sync: bool


class ClaimablePreview(BaseModel):
    points: int
    coin: int


class BalanceResponse(BaseModel):
    camly_balance: int
    green_points: int
    total_camly_claimed: int
    claimable: ClaimablePreview
    reconciliation: List[ReconciliationResult]


class ClaimHistoryItem(BaseModel):
    id: str
    green_points_converted: int
    camly_received: int
    transaction_hash: Optional[str] = None
    wallet_address: Optional[str] = None
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class ClaimHistoryResponse(BaseModel):
    claims: List[ClaimHistoryItem]
