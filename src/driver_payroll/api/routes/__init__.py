"""API routes."""

from driver_payroll.api.routes.advances import router as advances_router
from driver_payroll.api.routes.audit import router as audit_router
from driver_payroll.api.routes.health import router as health_router
from driver_payroll.api.routes.ledgers import router as ledgers_router
from driver_payroll.api.routes.payroll import router as payroll_router

__all__ = [
    "advances_router",
    "audit_router",
    "health_router",
    "ledgers_router",
    "payroll_router",
]
