"""
Access Module - role-based authorization gate

Decides which modules a user may open and which actions they may perform,
with client scoping for CLIENTE users and an explicit, time-boxed bootstrap
window for sessions whose profile is still loading.
"""

from broker_ledger.access.gate import (
    can_access,
    can_perform,
    require_access,
    require_permission,
    session_can_access,
)
from broker_ledger.access.models import (
    Action,
    BootstrapWindow,
    Module,
    Resource,
    Role,
    SessionContext,
    UserProfile,
    normalize_module_path,
)

__all__ = [
    "Action",
    "BootstrapWindow",
    "Module",
    "Resource",
    "Role",
    "SessionContext",
    "UserProfile",
    "can_access",
    "can_perform",
    "normalize_module_path",
    "require_access",
    "require_permission",
    "session_can_access",
]
