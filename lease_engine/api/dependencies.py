"""Dependency injection for FastAPI endpoints"""

from fastapi import Request

from lease_engine.domain.clock import Clock, SystemClock
from lease_engine.domain.identifiers import ApplicationId
from lease_engine.infrastructure.clients.status_webhook import StatusWebhookClient

_system_clock = SystemClock()


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_clock() -> Clock:
    """Provide the clock used for timestamps and date guards"""
    return _system_clock


def get_status_webhook_client() -> StatusWebhookClient:
    """Provide status-change webhook client instance"""
    return StatusWebhookClient()


def parse_application_id(application_id: str) -> ApplicationId:
    """Path parameter -> ApplicationId (InvalidIdentifier maps to 422)"""
    return ApplicationId.parse(application_id)
