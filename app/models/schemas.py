from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, Dict, Any, List

class CheckoutRequest(BaseModel):
    planId: str

    class Config:
        json_schema_extra = {"example": {"planId": "smart"}}

class UpgradeRequest(BaseModel):
    newPlan: str

class SyncSessionRequest(BaseModel):
    sessionId: str

class DeductCreditsRequest(BaseModel):
    # Validated in the route so the error body matches the other quota errors
    amount: Any = None
    reason: Optional[str] = None

class TestIncrementRequest(BaseModel):
    amount: float = 0.5

class AnalyzeRequest(BaseModel):
    productTitle: str = Field(..., min_length=1)
    productPrice: float = Field(0.0, ge=0)
    niche: str = Field(..., min_length=1)
    productCategory: Optional[str] = None
    productImageUrl: Optional[str] = None
    productUrl: Optional[str] = None
    competitionScore: Optional[float] = None
    # Etsy search result counts keyed by query, read by the extension
    competitionResults: Optional[Dict[str, Optional[float]]] = None

class CompetitionEstimateRequest(BaseModel):
    productTitle: str = Field(..., min_length=1)
    productType: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    market: str = "EN"
    resultsCounts: Optional[Dict[str, Optional[float]]] = None

class GenerateImagesRequest(BaseModel):
    sourceImage: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1, le=10)
    aspectRatio: str = "1:1"
    customInstructions: Optional[str] = None

class QuotaInfoOut(BaseModel):
    plan: str
    status: str
    used: float
    quota: int
    remaining: float
    periodStart: Optional[datetime] = None
    periodEnd: Optional[datetime] = None
    requiresUpgrade: Optional[str] = None

class AnalysisOut(BaseModel):
    id: int
    product_id: int
    verdict: Optional[str]
    confidence_score: Optional[float]
    launch_potential_score: Optional[float]
    launch_tier: Optional[str]
    time_to_first_sale_days: Optional[int]
    time_to_first_sale_with_ads_days: Optional[int]
    summary: Optional[str]
    full_analysis: Optional[Dict[str, Any] | List[Dict[str, Any]]]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True
