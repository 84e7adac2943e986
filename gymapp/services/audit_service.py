"""
Audit logging service for tracking role, match and order changes.
"""
from gymapp.models.audit_log import AuditLog, AuditAction
from flask import request, has_request_context
import json
import logging

logger = logging.getLogger(__name__)


def log_action(
    session,
    action: AuditAction,
    gym_id: int,
    user_id: int = None,
    resource_type: str = None,
    resource_id: int = None,
    details: dict = None
):
    """
    Add an audit entry to the caller's transaction.

    Args:
        session: Database session
        action: AuditAction enum value
        gym_id: Gym the action happened in
        user_id: Acting user, if known
        resource_type: Type of resource affected (e.g., 'role', 'order')
        resource_id: ID of the affected resource
        details: Dict with additional details (will be JSON encoded)

    The caller commits; nothing is flushed here.
    """
    ip_address = None
    user_agent = None
    if has_request_context():
        ip_address = request.remote_addr
        user_agent = request.headers.get('User-Agent', '')[:255]

    details_json = None
    if details:
        try:
            details_json = json.dumps(details, default=str)
        except (TypeError, ValueError) as e:
            logger.warning(f"Failed to serialize audit details: {e}")
            details_json = str(details)

    session.add(AuditLog(
        gym_id=gym_id,
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        details=details_json,
        ip_address=ip_address,
        user_agent=user_agent
    ))

    logger.info(f"Audit log: {action.value} by user {user_id} on {resource_type} {resource_id}")


def get_audit_logs(
    session,
    gym_id: int,
    limit: int = 100,
    offset: int = 0,
    action_filter: AuditAction = None,
    resource_type_filter: str = None,
    resource_id_filter: int = None
):
    """
    Retrieve audit logs for a gym with optional filters, newest first.
    """
    query = session.query(AuditLog).filter(
        AuditLog.gym_id == gym_id
    )

    if action_filter:
        query = query.filter(AuditLog.action == action_filter)

    if resource_type_filter:
        query = query.filter(AuditLog.resource_type == resource_type_filter)

    if resource_id_filter is not None:
        query = query.filter(AuditLog.resource_id == resource_id_filter)

    query = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
    query = query.limit(limit).offset(offset)

    return query.all()
