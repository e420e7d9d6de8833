"""Domain models used across application layer boundaries."""

from .models import (
    DEFAULT_CURRENCY_QUANTUM,
    POSITION_STATUS_ACTIVE,
    POSITION_STATUS_CANCELLED,
    POSITION_STATUS_COMPLETED,
    TRANSACTION_KIND_PRINCIPAL_RETURN,
    TRANSACTION_KIND_PROFIT,
    HealthStatus,
    PeriodUnit,
    domain_parse_period_unit,
    domain_quantize_money,
)
from .timeline import domain_build_stage_event

__all__ = [
    "DEFAULT_CURRENCY_QUANTUM",
    "POSITION_STATUS_ACTIVE",
    "POSITION_STATUS_CANCELLED",
    "POSITION_STATUS_COMPLETED",
    "TRANSACTION_KIND_PRINCIPAL_RETURN",
    "TRANSACTION_KIND_PROFIT",
    "HealthStatus",
    "PeriodUnit",
    "domain_build_stage_event",
    "domain_parse_period_unit",
    "domain_quantize_money",
]
