from storefront.common.utils import as_utc, to_public

_TIMESTAMPS = ("sla_response_due", "sla_resolution_due", "first_response_at", "resolved_at", "last_activity_at",
               "closed_at", "created_at", "updated_at")


def ticket_out(ticket, admin_view: bool = False, assigned_to_public_id=None):
    exclude = {"user_id", "assigned_to_id"}
    if not admin_view:
        exclude |= {"is_sla_breached", "response_time_minutes", "resolution_time_minutes"}
    data = to_public(ticket, exclude=exclude)
    for key in _TIMESTAMPS:
        if key in data:
            data[key] = as_utc(getattr(ticket, key))
    if admin_view:
        data["assigned_to"] = assigned_to_public_id
    return data


def message_out(message, sender_public_id=None, admin_view: bool = False):
    data = {
        "sender_role": message.sender_role,
        "message": message.message,
        "message_type": message.message_type,
        "created_at": as_utc(message.created_at),
    }
    if admin_view:
        data["sender_id"] = sender_public_id
        data["is_internal"] = message.is_internal
    return data
