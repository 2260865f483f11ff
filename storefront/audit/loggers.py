from typing import Any, Dict, Optional
from fastapi import Request
from storefront.common.logging_setup import get_logger

admin_audit_logger = get_logger("storefront.audit.admin")
user_activity_logger = get_logger("storefront.audit.user")
logger = get_logger("storefront.audit")


def _client_ip(request: Request) -> Optional[str]:
    xff = request.headers.get("X-Forwarded-For")
    if xff:
        return xff.split(",")[0].strip()
    return request.client.host if request.client else None


def log_admin_action(request: Request, action_type: str, resource_type: str,
                     resource_id: Any = None, changes: Optional[Dict[str, Any]] = None,
                     status: str = "SUCCESS", error_message: Optional[str] = None) -> None:
    """Record an admin action. Never raises into the request."""
    try:
        admin_audit_logger.info("admin.action", extra={
            "admin_id": getattr(request.state, "user_identifier", None),
            "admin_public_id": getattr(request.state, "user_public_id", None),
            "admin_roles": getattr(request.state, "user_roles", None),
            "ip_address": _client_ip(request),
            "user_agent": request.headers.get("user-agent", "")[:255],
            "action_type": action_type,
            "resource_type": resource_type,
            "resource_id": str(resource_id) if resource_id is not None else None,
            "changes": changes,
            "audit_status": status,
            "error_message": error_message,
            "http_method": request.method,
            "url": str(request.url.path),
        })
    except Exception as exc:
        logger.error("audit.admin.failed", extra={"action_type": action_type, "error": str(exc)})


def log_user_activity(user_id: Any, activity: str, details: Optional[Dict[str, Any]] = None) -> None:
    try:
        user_activity_logger.info("user.activity", extra={
            "user_id": user_id,
            "activity": activity,
            "details": details or {},
        })
    except Exception as exc:
        logger.error("audit.user.failed", extra={"activity": activity, "error": str(exc)})
