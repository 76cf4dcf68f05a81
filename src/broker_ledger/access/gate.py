"""
Authorization Gate - allow/deny decisions for modules and actions

Pure functions of (profile, request); no locking, no side effects.

Rules:
- ADMIN may do anything
- Other roles may open a module iff it is authorized or a baseline module
- ANALISTA may perform any action on modules it can open
- CONSULTA may only READ
- CLIENTE may only READ, and only resources owned by its own client
- Inactive profiles are denied everything

Denials raise a generic Unauthorized("Access denied") that never says
which rule failed.
"""

from datetime import datetime

from typing_extensions import assert_never

from broker_ledger.access.models import (
    Action,
    Resource,
    Role,
    SessionContext,
    UserProfile,
    normalize_module_path,
)
from broker_ledger.kernel.errors import Unauthorized
from broker_ledger.kernel.logging import get_logger
from broker_ledger.kernel.policy import LedgerPolicy, default_ledger_policy

logger = get_logger(__name__)


def can_access(
    profile: UserProfile,
    module_path: str,
    policy: LedgerPolicy = default_ledger_policy,
) -> bool:
    """
    May this profile open the module?

    Args:
        profile: Authenticated subject
        module_path: Requested module, e.g. "/presupuesto"
        policy: Supplies the baseline modules

    Returns:
        True if allowed
    """
    if not profile.active:
        return False
    if profile.role == Role.ADMIN:
        return True

    module = normalize_module_path(module_path)
    return module in profile.authorized_modules or module in policy.baseline_modules


def can_perform(
    profile: UserProfile,
    action: Action,
    resource: Resource,
    policy: LedgerPolicy = default_ledger_policy,
) -> bool:
    """
    May this profile perform the action on the resource?

    A CLIENTE request on a resource without an owning client is denied:
    client users only ever see their own data.
    """
    if not profile.active:
        return False

    match profile.role:
        case Role.ADMIN:
            return True
        case Role.ANALISTA:
            return can_access(profile, resource.module, policy)
        case Role.CONSULTA:
            return action == Action.READ and can_access(profile, resource.module, policy)
        case Role.CLIENTE:
            return (
                action == Action.READ
                and resource.client_id is not None
                and resource.client_id == profile.client_id
                and can_access(profile, resource.module, policy)
            )
        case _:
            assert_never(profile.role)


def require_access(
    profile: UserProfile,
    module_path: str,
    policy: LedgerPolicy = default_ledger_policy,
) -> None:
    """
    Raises:
        Unauthorized: If can_access denies
    """
    if not can_access(profile, module_path, policy):
        logger.info("Module access denied", role=profile.role.value, module=module_path)
        raise Unauthorized()


def require_permission(
    profile: UserProfile,
    action: Action,
    resource: Resource,
    policy: LedgerPolicy = default_ledger_policy,
) -> None:
    """
    Raises:
        Unauthorized: If can_perform denies
    """
    if not can_perform(profile, action, resource, policy):
        logger.info(
            "Action denied",
            role=profile.role.value,
            action=action.value,
            module=resource.module,
        )
        raise Unauthorized()


def session_can_access(
    session: SessionContext,
    module_path: str,
    now: datetime,
    policy: LedgerPolicy = default_ledger_policy,
) -> bool:
    """
    Module check for a session whose profile may still be loading

    Without a profile the session is let through only while the profile
    fetch is pending and the bootstrap window is open. A completed fetch
    that found nothing is denied.
    """
    if session.profile is not None:
        return can_access(session.profile, module_path, policy)

    if not session.profile_loaded and session.bootstrap.is_open(now):
        logger.warning(
            "Bootstrap access granted without profile",
            module=module_path,
            expires_at=session.bootstrap.expires_at.isoformat(),
        )
        return True

    return False
