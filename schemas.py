"""
Database and API schemas for the Healthcare Waste Management platform.

Documents are stored in MongoDB with snake_case keys; the HTTP API speaks
camelCase. Every model accepts both spellings on input and serializes with
the camelCase aliases.
"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

UserType = Literal["medical_staff", "disposal_staff"]
WasteType = Literal["biohazardous", "pharmaceutical", "chemical", "general"]
Urgency = Literal["low", "medium", "high", "critical"]
RequestStatus = Literal["pending", "processing", "completed"]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# ------------------ Users ------------------
class UserCreate(CamelModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)
    user_type: UserType
    department: Optional[str] = None


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UserPublic(CamelModel):
    id: str
    first_name: str
    last_name: str
    email: EmailStr
    user_type: UserType
    department: Optional[str] = None
    created_at: Optional[datetime] = None


class AuthResponse(CamelModel):
    token: str
    token_type: str = "bearer"
    user: UserPublic


# ------------------ Waste requests ------------------
class WasteRequestCreate(CamelModel):
    waste_type: WasteType
    quantity: float = Field(..., gt=0, allow_inf_nan=False, strict=True)
    unit: str = Field(..., min_length=1, description="kg, lbs, liters, gallons, boxes, bags, containers")
    urgency: Urgency
    department: Optional[str] = None
    instructions: Optional[str] = None


class CompleteRequest(CamelModel):
    disposal_method: str = Field(..., min_length=1)
    disposal_location: str = Field(..., min_length=1)


class EnvironmentalImpact(CamelModel):
    carbon_footprint: float
    cost_estimate: float = Field(..., ge=0)
    recycling_potential: float


class WasteRequest(CamelModel):
    id: str
    request_id: str
    created_by: str
    waste_type: WasteType
    quantity: float
    unit: str
    department: Optional[str] = None
    urgency: Urgency
    instructions: Optional[str] = None
    status: RequestStatus = "pending"
    assigned_to: Optional[str] = None
    disposal_method: Optional[str] = None
    disposal_location: Optional[str] = None
    completed_at: Optional[datetime] = None
    environmental_impact: Optional[EnvironmentalImpact] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


# ------------------ Classification ------------------
class VisionReply(BaseModel):
    """Shape the hosted model is instructed to answer with."""

    category: str = Field(..., min_length=1)
    treatment: List[str]


class ClassificationResult(BaseModel):
    label: str
    treatment: List[str]
