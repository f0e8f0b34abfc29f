"""
Request/response models for the formation registry API.
Field-level range checks stay in the core so anomaly codes reach the caller;
these models only pin down shapes and types.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, StrictBool, StrictInt, field_validator

CreateProfileName = Literal["standard", "fortified", "harmonic"]
UpdateProfileName = Literal["standard", "fortified", "recalibrated"]
ClassificationName = Literal["observer", "manipulator", "sovereign"]


class FormationCreateRequest(BaseModel):
    signature: str
    content_hash: str
    metadata: str
    cluster: str
    resonance_tags: List[str]


class FormationUpdateRequest(BaseModel):
    signature: str
    content_hash: str
    metadata: str
    resonance_tags: List[str]

    # Cluster is fixed at creation
    model_config = ConfigDict(extra="forbid")


class GrantRequest(BaseModel):
    entity: str
    classification: str
    duration: StrictInt
    can_modify: StrictBool = False

    @field_validator('entity')
    @classmethod
    def entity_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('entity cannot be empty')
        return v


class FormationCreateResponse(BaseModel):
    success: bool
    id: int


class SuccessResponse(BaseModel):
    success: bool


class FormationResponse(BaseModel):
    id: int
    signature: str
    owner: str
    content_hash: str
    metadata: str
    cluster: str
    resonance_tags: List[str]
    created_at: int
    updated_at: int


class FormationListResponse(BaseModel):
    formations: List[FormationResponse]


class HistoryResponse(BaseModel):
    formation_id: int
    formation_count: int
    last_editor: str
    origin_tag: str


class MetricsResponse(BaseModel):
    formation_id: int
    stability: int
    complexity: int
    pattern: str


class GrantResponse(BaseModel):
    formation_id: int
    entity: str
    classification: str
    granted_at: int
    expires_at: int
    can_modify: bool


class GrantListResponse(BaseModel):
    grants: List[GrantResponse]


class ClearanceResponse(BaseModel):
    formation_id: int
    entity: str
    required: ClassificationName
    cleared: bool
    now: int


class RegistryStateResponse(BaseModel):
    sequence_tracker: int
    total_operations: int
    last_calibration: int
    flux_indicator: bool


class HealthResponse(BaseModel):
    status: str
    version: str
    store_provider: str
    store_health: bool
    registry: RegistryStateResponse


class DebugResponse(BaseModel):
    message: str
    timestamp: datetime
    config_issues: List[str]


class ErrorResponse(BaseModel):
    error_type: str
    code: int
    message: str
    timestamp: datetime = None
    details: Optional[Dict[str, Any]] = None

    def __init__(self, **data):
        super().__init__(timestamp=datetime.now(), **data)
