"""Services wired once per application in main.create_app() and handed to routes from app.state."""
from fastapi import Request

from ncp_portal.core.gateway import PersistenceGateway
from ncp_portal.services.audit_service import AuditRecorder
from ncp_portal.services.ncp_queries import NCPQueryService
from ncp_portal.services.ncp_workflow import NCPWorkflowEngine
from ncp_portal.services.notification_service import NotificationService


def get_gateway(request: Request) -> PersistenceGateway:
    return request.app.state.gateway


def get_workflow(request: Request) -> NCPWorkflowEngine:
    return request.app.state.workflow


def get_queries(request: Request) -> NCPQueryService:
    return request.app.state.queries


def get_notifications(request: Request) -> NotificationService:
    return request.app.state.notifications


def get_audit(request: Request) -> AuditRecorder:
    return request.app.state.audit
