"""API routes for alert-service."""

from typing import Annotated

from fastapi import APIRouter, Depends, Header, Query, status

from alert_service.alerts.models import AlertSeverity, AlertStatus
from alert_service.alerts.store import AlertFilter
from alert_service.api.schemas import (
    AlertCreateRequest,
    AlertResponse,
    BulkCreateRequest,
    BulkCreateResponse,
    ChannelResponse,
    ErrorResponse,
    EscalateRequest,
    EscalationRuleResponse,
    HealthResponse,
    ResolveRequest,
    StatsResponse,
    SystemTestResponse,
)
from alert_service.services.alerts import AlertService, get_alert_service

router = APIRouter()
alerts_router = APIRouter(prefix="/alerts", tags=["alerts"])

# Type aliases for dependencies
ServiceDep = Annotated[AlertService, Depends(get_alert_service)]
ActorDep = Annotated[
    int,
    Header(alias="X-Actor-Id", ge=0, description="Id of the user performing the action"),
]

TRANSITION_ERRORS = {
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check(service: ServiceDep) -> HealthResponse:
    """Check service health status."""
    return HealthResponse(
        status="healthy",
        store=service.store_backend,
        auto_escalation=service.auto_escalation_running,
    )


# =============================================================================
# Alert creation
# =============================================================================


@alerts_router.post(
    "",
    response_model=AlertResponse,
    status_code=status.HTTP_201_CREATED,
    responses={422: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    summary="Create an alert",
)
async def create_alert(
    request: AlertCreateRequest,
    actor: ActorDep,
    service: ServiceDep,
) -> AlertResponse:
    """Create an alert and deliver it on its channels.

    Channel failures do not fail the request; they show up in the
    alert's dispatch results and ``degraded_delivery`` flag.
    """
    alert = await service.create_alert(request.to_draft(created_by=actor))
    return AlertResponse.from_alert(alert)


@alerts_router.post(
    "/bulk",
    response_model=BulkCreateResponse,
    responses={422: {"model": ErrorResponse}},
    summary="Create alerts in bulk",
)
async def bulk_create_alerts(
    request: BulkCreateRequest,
    actor: ActorDep,
    service: ServiceDep,
) -> BulkCreateResponse:
    """Create many alerts at the configured ingestion rate."""
    result = await service.bulk_create([item.to_draft(created_by=actor) for item in request.alerts])
    return BulkCreateResponse.model_validate(result.to_dict())


@alerts_router.post(
    "/test",
    response_model=SystemTestResponse,
    summary="Run the alert system self-test",
)
async def run_system_test(actor: ActorDep, service: ServiceDep) -> SystemTestResponse:
    """Create, acknowledge and resolve a test alert."""
    alert = await service.run_system_test(actor)
    return SystemTestResponse(
        success=alert.status is AlertStatus.RESOLVED,
        degraded_delivery=alert.degraded_delivery,
        alert=AlertResponse.from_alert(alert),
    )


# =============================================================================
# Queries
# =============================================================================


@alerts_router.get("", response_model=list[AlertResponse], summary="List alerts")
async def list_alerts(
    service: ServiceDep,
    severity: AlertSeverity | None = Query(default=None, description="Filter by severity"),
    alert_status: AlertStatus | None = Query(
        default=None, alias="status", description="Filter by status"
    ),
    parish: str | None = Query(default=None, description="Filter by parish"),
    search: str | None = Query(default=None, description="Search title and description"),
    limit: int | None = Query(default=None, ge=1, le=1000),
) -> list[AlertResponse]:
    """List alerts, most recent first."""
    alerts = await service.list_alerts(
        AlertFilter(
            severity=severity,
            status=alert_status,
            parish=parish,
            search=search,
            limit=limit,
        )
    )
    return [AlertResponse.from_alert(alert) for alert in alerts]


@alerts_router.get("/stats", response_model=StatsResponse, summary="Alert statistics")
async def get_stats(service: ServiceDep) -> StatsResponse:
    """Get aggregate statistics over all alerts."""
    stats = await service.get_stats()
    return StatsResponse(**stats.to_dict())


@alerts_router.get(
    "/channels", response_model=list[ChannelResponse], summary="List delivery channels"
)
async def list_channels(service: ServiceDep) -> list[ChannelResponse]:
    """List delivery channels by priority."""
    return [ChannelResponse(**channel) for channel in service.list_channels()]


@alerts_router.get(
    "/escalation-rules",
    response_model=list[EscalationRuleResponse],
    summary="List escalation rules",
)
async def list_escalation_rules(service: ServiceDep) -> list[EscalationRuleResponse]:
    """List escalation rules in match order."""
    return [EscalationRuleResponse(**rule.to_dict()) for rule in service.list_escalation_rules()]


@alerts_router.get(
    "/{alert_id}",
    response_model=AlertResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get an alert",
)
async def get_alert(alert_id: str, service: ServiceDep) -> AlertResponse:
    """Get an alert by ID."""
    return AlertResponse.from_alert(await service.get_alert(alert_id))


# =============================================================================
# Lifecycle transitions
# =============================================================================


@alerts_router.post(
    "/{alert_id}/acknowledge",
    response_model=AlertResponse,
    responses=TRANSITION_ERRORS,
    summary="Acknowledge an alert",
)
async def acknowledge_alert(alert_id: str, actor: ActorDep, service: ServiceDep) -> AlertResponse:
    """Acknowledge an active or escalated alert."""
    return AlertResponse.from_alert(await service.acknowledge(alert_id, actor))


@alerts_router.post(
    "/{alert_id}/resolve",
    response_model=AlertResponse,
    responses=TRANSITION_ERRORS,
    summary="Resolve an alert",
)
async def resolve_alert(
    alert_id: str,
    request: ResolveRequest,
    actor: ActorDep,
    service: ServiceDep,
) -> AlertResponse:
    """Resolve an acknowledged alert."""
    return AlertResponse.from_alert(await service.resolve(alert_id, actor, request.resolution))


@alerts_router.post(
    "/{alert_id}/escalate",
    response_model=AlertResponse,
    responses=TRANSITION_ERRORS,
    summary="Escalate an alert",
)
async def escalate_alert(
    alert_id: str,
    request: EscalateRequest,
    actor: ActorDep,
    service: ServiceDep,
) -> AlertResponse:
    """Escalate an alert and re-notify its escalation targets."""
    return AlertResponse.from_alert(await service.escalate(alert_id, actor, request.reason))


router.include_router(alerts_router)
