"""
Access Models - subjects, actions and resources of the authorization gate

Profiles come from the identity provider already verified; the gate only
reads them. Session state is explicit: a SessionContext is passed into every
check instead of living in a process-wide global.
"""

from datetime import datetime, timedelta
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class Role(str, Enum):
    """Closed set of user roles"""

    ADMIN = "ADMIN"
    ANALISTA = "ANALISTA"  # Analyst, full operation on authorized modules
    CONSULTA = "CONSULTA"  # Read-only staff
    CLIENTE = "CLIENTE"  # Client, read-only and scoped to own data


class Action(str, Enum):
    READ = "READ"
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class Module(str, Enum):
    """Modules guarding ledger operations"""

    COMMISSIONS = "comisiones"
    BUDGETS = "presupuesto"
    ORDERS = "ordenes-servicio"
    REPORTS = "reportes"
    CLIENT_PORTAL = "portal-cliente"


def normalize_module_path(path: "str | Module") -> str:
    """
    Canonical form of a module path

    Leading and trailing slashes are stripped and the result lower-cased;
    the empty path is the home module.
    """
    if isinstance(path, Enum):
        path = path.value
    normalized = path.strip().strip("/").lower()
    return normalized or "home"


class UserProfile(BaseModel):
    """
    Authorization subject

    Attributes:
        user_id: Identity provider subject id
        role: User role
        authorized_modules: Module paths the user may open (normalized)
        client_id: Owning client, only meaningful for CLIENTE
        active: Inactive profiles are denied everything
    """

    user_id: str
    role: Role
    authorized_modules: frozenset[str] = Field(default_factory=frozenset)
    client_id: str | None = None
    active: bool = True

    model_config = {"frozen": True}

    @field_validator("authorized_modules", mode="before")
    @classmethod
    def _normalize_modules(cls, value):
        return frozenset(normalize_module_path(path) for path in value)


class Resource(BaseModel):
    """What an action targets: a module and, for client data, its owner"""

    module: str
    client_id: str | None = None

    model_config = {"frozen": True}

    @field_validator("module", mode="before")
    @classmethod
    def _normalize_module(cls, value):
        return normalize_module_path(value)


class BootstrapWindow(BaseModel):
    """
    Time box during which a session without a loaded profile is let through

    Exists so the first administrator can provision profiles.
    """

    opened_at: datetime
    duration_seconds: int = Field(ge=0)

    model_config = {"frozen": True}

    @property
    def expires_at(self) -> datetime:
        return self.opened_at + timedelta(seconds=self.duration_seconds)

    def is_open(self, now: datetime) -> bool:
        return now < self.expires_at


class SessionContext(BaseModel):
    """
    Explicit authorization context of one session

    profile_loaded turns true as soon as the profile fetch completes, whether
    or not a profile was found; from then on the bootstrap window no longer
    applies.
    """

    bootstrap: BootstrapWindow
    profile: UserProfile | None = None
    profile_loaded: bool = False

    model_config = {"frozen": True}

    @classmethod
    def start(cls, now: datetime, window_seconds: int) -> "SessionContext":
        """New session whose profile is still loading"""
        return cls(
            bootstrap=BootstrapWindow(opened_at=now, duration_seconds=window_seconds)
        )

    def with_profile(self, profile: UserProfile | None) -> "SessionContext":
        """Session after the profile fetch completed (profile may be None)"""
        return self.model_copy(update={"profile": profile, "profile_loaded": True})
