"""CRUD operations package.

- users.py: user lookups, profile updates and admin operations
- audit.py: security and admin audit logs
"""

from mindbridge.app.db.crud.audit import log_admin_action, log_security_event
from mindbridge.app.db.crud.users import (
    count_users,
    delete_user,
    get_system_stats,
    get_user_by_email,
    get_user_by_id,
    list_users,
    update_user_profile,
    verify_therapist,
)

__all__ = [
    # Users
    "count_users",
    "delete_user",
    "get_system_stats",
    "get_user_by_email",
    "get_user_by_id",
    "list_users",
    "update_user_profile",
    "verify_therapist",
    # Audit
    "log_admin_action",
    "log_security_event",
]
