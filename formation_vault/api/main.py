"""
Formation registry HTTP API.
Thin FastAPI surface over the vault: the caller comes from the X-Principal
header, the logical clock from the configured clock source.
"""

from datetime import datetime
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query
from fastapi.responses import JSONResponse

from .schemas import (
    ClassificationName,
    ClearanceResponse,
    CreateProfileName,
    DebugResponse,
    ErrorResponse,
    FormationCreateRequest,
    FormationCreateResponse,
    FormationListResponse,
    FormationResponse,
    FormationUpdateRequest,
    GrantListResponse,
    GrantRequest,
    GrantResponse,
    HealthResponse,
    HistoryResponse,
    MetricsResponse,
    RegistryStateResponse,
    SuccessResponse,
    UpdateProfileName,
)
from ..core.config import VERSION, debug_enabled, get_clock, get_default_principal, validate_config
from ..core.errors import Anomaly, AnomalyKind
from ..core.schema import Context
from ..core.vault import FormationVault, get_vault
from ..util.logging import logger

# Initialize the FastAPI application
app = FastAPI(
    title="Formation Vault API",
    version=VERSION,
    description="Owner-gated formation registry with classified, expiring access grants",
    docs_url="/docs" if debug_enabled() else None,
    redoc_url="/redoc" if debug_enabled() else None
)

ANOMALY_STATUS = {
    AnomalyKind.FORMATION_NOT_FOUND: 404,
    AnomalyKind.DIMENSIONAL_BREACH: 403,
    AnomalyKind.INSUFFICIENT_CLEARANCE: 403,
    AnomalyKind.COLLISION: 409,
}


def _anomaly_response(anomaly: Anomaly) -> JSONResponse:
    """Render an anomaly as a JSON error body; everything unlisted is a 400."""
    body = ErrorResponse(error_type=anomaly.kind.name, code=anomaly.code, message=anomaly.message)
    return JSONResponse(status_code=ANOMALY_STATUS.get(anomaly.kind, 400), content=body.model_dump(mode="json"))


def _context(vault: FormationVault, principal: Optional[str]) -> Context:
    """Build the invocation context; the clock is read inside the write transaction."""
    caller = principal or get_default_principal()
    return Context(caller=caller, clock=get_clock(vault.store))


@app.get("/health", response_model=HealthResponse)
def health_check_endpoint(vault: FormationVault = Depends(get_vault)):
    """Check system health."""
    store_health = vault.store.health_check()
    state = vault.get_registry_state()

    return HealthResponse(
        status="healthy" if store_health else "unhealthy",
        version=VERSION,
        store_provider=vault.store.provider,
        store_health=store_health,
        registry=RegistryStateResponse(**vars(state))
    )


@app.post("/formations", response_model=FormationCreateResponse)
def create_formation_endpoint(request: FormationCreateRequest,
                              profile: CreateProfileName = "standard",
                              x_principal: Optional[str] = Header(None),
                              vault: FormationVault = Depends(get_vault)):
    """Create a formation owned by the calling principal."""
    result = vault.create_formation(
        _context(vault, x_principal),
        signature=request.signature,
        content_hash=request.content_hash,
        metadata=request.metadata,
        cluster=request.cluster,
        resonance_tags=request.resonance_tags,
        profile=profile
    )
    if isinstance(result, Anomaly):
        return _anomaly_response(result)
    return FormationCreateResponse(success=True, id=result)


@app.get("/formations", response_model=FormationListResponse)
def list_formations_endpoint(owner: Optional[str] = None,
                             limit: int = Query(100, ge=1, le=1000),
                             vault: FormationVault = Depends(get_vault)):
    """List primary-space formations, optionally for one owner."""
    formations = vault.list_formations(owner=owner, limit=limit)
    return FormationListResponse(formations=[FormationResponse(**f.to_dict()) for f in formations])


@app.get("/formations/{formation_id}", response_model=FormationResponse)
def get_formation_endpoint(formation_id: int, vault: FormationVault = Depends(get_vault)):
    formation = vault.get_formation(formation_id)
    if not formation:
        raise HTTPException(status_code=404, detail="Formation not found")
    return FormationResponse(**formation.to_dict())


@app.put("/formations/{formation_id}", response_model=SuccessResponse)
def update_formation_endpoint(formation_id: int,
                              request: FormationUpdateRequest,
                              profile: UpdateProfileName = "standard",
                              x_principal: Optional[str] = Header(None),
                              vault: FormationVault = Depends(get_vault)):
    """Update the mutable fields of a formation the caller owns."""
    result = vault.update_formation(
        _context(vault, x_principal),
        formation_id,
        signature=request.signature,
        content_hash=request.content_hash,
        metadata=request.metadata,
        resonance_tags=request.resonance_tags,
        profile=profile
    )
    if isinstance(result, Anomaly):
        return _anomaly_response(result)
    return SuccessResponse(success=result)


@app.get("/formations/{formation_id}/history", response_model=HistoryResponse)
def get_history_endpoint(formation_id: int, vault: FormationVault = Depends(get_vault)):
    history = vault.get_history(formation_id)
    if not history:
        raise HTTPException(status_code=404, detail="History not found")
    return HistoryResponse(**vars(history))


@app.get("/formations/{formation_id}/metrics", response_model=MetricsResponse)
def get_metrics_endpoint(formation_id: int, vault: FormationVault = Depends(get_vault)):
    metrics = vault.get_metrics(formation_id)
    if not metrics:
        raise HTTPException(status_code=404, detail="Metrics not found")
    return MetricsResponse(**vars(metrics))


@app.post("/formations/{formation_id}/grants", response_model=SuccessResponse)
def grant_access_endpoint(formation_id: int,
                          request: GrantRequest,
                          x_principal: Optional[str] = Header(None),
                          vault: FormationVault = Depends(get_vault)):
    """Issue or replace an access grant. Only the owner may call this."""
    result = vault.grant_access(
        _context(vault, x_principal),
        formation_id,
        entity=request.entity,
        classification=request.classification,
        duration=request.duration,
        can_modify=request.can_modify
    )
    if isinstance(result, Anomaly):
        return _anomaly_response(result)
    return SuccessResponse(success=result)


@app.get("/formations/{formation_id}/grants", response_model=GrantListResponse)
def list_grants_endpoint(formation_id: int, vault: FormationVault = Depends(get_vault)):
    return GrantListResponse(grants=[GrantResponse(**vars(g)) for g in vault.list_grants(formation_id)])


@app.get("/formations/{formation_id}/grants/{entity}", response_model=GrantResponse)
def get_grant_endpoint(formation_id: int, entity: str, vault: FormationVault = Depends(get_vault)):
    grant = vault.get_grant(formation_id, entity)
    if not grant:
        raise HTTPException(status_code=404, detail="Grant not found")
    return GrantResponse(**vars(grant))


@app.get("/formations/{formation_id}/clearance/{entity}", response_model=ClearanceResponse)
def clearance_endpoint(formation_id: int,
                       entity: str,
                       required: ClassificationName = "observer",
                       now: Optional[int] = None,
                       vault: FormationVault = Depends(get_vault)):
    """Evaluate whether an entity currently clears a classification tier."""
    if now is None:
        now = get_clock(vault.store).now()

    result = vault.evaluate_clearance(formation_id, entity, required, now)
    if isinstance(result, Anomaly) and result.kind == AnomalyKind.FORMATION_NOT_FOUND:
        return _anomaly_response(result)

    return ClearanceResponse(
        formation_id=formation_id,
        entity=entity,
        required=required,
        cleared=result is True,
        now=now
    )


@app.post("/secondary/formations", response_model=FormationCreateResponse)
def create_secondary_formation_endpoint(request: FormationCreateRequest,
                                        x_principal: Optional[str] = Header(None),
                                        vault: FormationVault = Depends(get_vault)):
    """Create a formation in the secondary space."""
    result = vault.create_secondary_formation(
        _context(vault, x_principal),
        signature=request.signature,
        content_hash=request.content_hash,
        metadata=request.metadata,
        cluster=request.cluster,
        resonance_tags=request.resonance_tags
    )
    if isinstance(result, Anomaly):
        return _anomaly_response(result)
    return FormationCreateResponse(success=True, id=result)


@app.get("/secondary/formations/{formation_id}", response_model=FormationResponse)
def get_secondary_formation_endpoint(formation_id: int, vault: FormationVault = Depends(get_vault)):
    formation = vault.get_secondary_formation(formation_id)
    if not formation:
        raise HTTPException(status_code=404, detail="Formation not found")
    return FormationResponse(**formation.to_dict())


@app.get("/registry/state", response_model=RegistryStateResponse)
def registry_state_endpoint(vault: FormationVault = Depends(get_vault)):
    return RegistryStateResponse(**vars(vault.get_registry_state()))


@app.get("/debug", response_model=DebugResponse)
def debug_endpoint():
    """Debug information (only available in DEBUG mode)."""
    if not debug_enabled():
        raise HTTPException(status_code=403, detail="Debug endpoint disabled")

    issues = validate_config()
    if issues:
        logger.warning(f"Configuration issues: {issues}")

    return DebugResponse(
        message="Debug endpoint active",
        timestamp=datetime.now(),
        config_issues=issues
    )
