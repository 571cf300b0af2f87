"""Dependency injection for FastAPI endpoints"""

from typing import Optional
from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session
from commission_gateway.infrastructure.database.session import get_db
from commission_gateway.services.audit import AuditTrailRecorder
from commission_gateway.services.payout_lifecycle import PayoutLifecycleManager


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_actor_id(x_actor_id: Optional[str] = Header(default=None)) -> str:
    """Acting user for audit events; every mutation must name one"""
    if not x_actor_id or not x_actor_id.strip():
        raise HTTPException(status_code=401, detail="X-Actor-Id header is required")
    return x_actor_id.strip()


def get_actor_name(x_actor_name: Optional[str] = Header(default=None)) -> Optional[str]:
    return x_actor_name


def get_lifecycle_manager(db: Session = Depends(get_db)) -> PayoutLifecycleManager:
    """Provide payout lifecycle manager bound to the request's session"""
    return PayoutLifecycleManager(db)


def get_audit_recorder(db: Session = Depends(get_db)) -> AuditTrailRecorder:
    """Provide audit trail recorder bound to the request's session"""
    return AuditTrailRecorder(db)
