"""Assistant domain schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class AnalyzeWasteRequest(BaseModel):
    image_base64: Optional[str] = Field(None, description="Photo as base64 (data URL prefix allowed)")
    image_url: Optional[str] = Field(None, example="https://cdn.example.com/scans/bottle.jpg")

    @model_validator(mode="after")
    def require_image(self):
        if not self.image_base64 and not self.image_url:
            raise ValueError("image_base64 or image_url is required")
        return self


class WasteAnalysis(BaseModel):
    waste_type: str
    waste_type_vi: Optional[str] = None
    material: Optional[str] = None
    material_vi: Optional[str] = None
    recyclable: bool
    bin_color: str = Field(..., description="yellow | blue | black | red")
    disposal_instructions: Optional[str] = None
    disposal_instructions_vi: Optional[str] = None
    reuse_suggestions: List[str] = []
    environmental_note: Optional[str] = None
    confidence: float = Field(..., ge=0, le=1)


class WasteScanResponse(BaseModel):
    id: str
    image_url: Optional[str] = None
    waste_type: str
    waste_type_vi: Optional[str] = None
    material: Optional[str] = None
    recyclable: bool
    bin_color: str
    disposal_instructions: Optional[str] = None
    confidence: float
    points_earned: int
    scanned_at: datetime

    class Config:
        from_attributes = True


class AnalyzeWasteResponse(BaseModel):
    scan: WasteScanResponse
    analysis: WasteAnalysis
    camly_earned: int
    message: str


class ScanHistoryResponse(BaseModel):
    scans: List[WasteScanResponse]


class ScanStatsResponse(BaseModel):
    total_scans: int
    total_points: int
    unique_types: int


class ChatMessageIn(BaseModel):
    role: str = Field(..., pattern="^(user|assistant)$")
    content: str = Field(..., min_length=1, max_length=8000)


class ChatRequest(BaseModel):
    messages: List[ChatMessageIn] = Field(..., min_length=1, max_length=50)
