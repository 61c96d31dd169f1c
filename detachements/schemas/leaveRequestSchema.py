from datetime import date, datetime
from typing import List, Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from detachements.constants.constants import PeriodMarker, RequestStatus


class LeaveRequestCreate(BaseModel):
    """Submission body. Every field is optional here: the validator reports what is missing."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    full_name: Optional[str] = Field(
        None, validation_alias=AliasChoices("fullName", "applicantName", "full_name")
    )
    applicant_email: Optional[str] = None
    entity: Optional[str] = None
    place: Optional[str] = None
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    start_period: Optional[str] = None
    end_period: Optional[str] = None
    type: Optional[str] = None
    manager_email: Optional[str] = None
    hr_email: Optional[str] = None
    comment: Optional[str] = None

    @field_validator("*", mode="before")
    @classmethod
    def coerce_to_text(cls, value):
        # Numbers and booleans become text; other shapes count as missing
        if value is None or isinstance(value, str):
            return value
        if isinstance(value, (int, float, bool)):
            return str(value)
        return None


class LeaveRequestCreated(BaseModel):
    id: str
    days: float
    status: RequestStatus


class LeaveRequestResponse(BaseModel):
    id: str
    full_name: str
    applicant_email: str
    entity: str
    place: str
    date_from: date
    date_to: date
    start_period: PeriodMarker
    end_period: PeriodMarker
    type: str
    manager_email: str
    hr_email: str
    comment: Optional[str]
    days: float
    status: RequestStatus
    created_at: datetime
    validated_at: Optional[datetime]
    decision_at: Optional[datetime]
    decision_reason: Optional[str]
    decided_by: Optional[str]

    class Config:
        from_attributes = True


class LeaveRequestList(BaseModel):
    items: List[LeaveRequestResponse]


class DecisionRequest(BaseModel):
    """Body of refuse/cancel."""
    reason: Optional[str] = None


class ValidateResponse(BaseModel):
    ok: bool = True
    already: bool = False


class DecisionResponse(BaseModel):
    ok: bool = True
