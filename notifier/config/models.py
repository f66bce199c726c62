"""Configuration schema models using Pydantic."""

from enum import Enum
from typing import Dict, List, Literal, Optional, Tuple, Union

from pydantic import (
    BaseModel,
    EmailStr,
    Field,
    SecretStr,
    field_validator,
    model_validator,
)


class TransportScheme(str, Enum):
    """Credential/connection shapes a Transport can be built from."""

    HOSTED_MAILBOX = "hosted-mailbox"
    GENERIC_SMTP = "generic-smtp"


class NotificationKind(str, Enum):
    """Closed enumeration of notification types the pipeline can dispatch."""

    APPLICATION_APPROVED = "application_approved"
    APPLICATION_REJECTED = "application_rejected"
    EVENT_PUBLISHED = "event_published"
    EVENT_REJECTED = "event_rejected"
    EVENT_GROUP_JOIN_REQUEST = "event_group_join_request"
    EVENT_GROUP_MEMBER_APPROVED = "event_group_member_approved"
    EVENT_GROUP_REJECTED = "event_group_rejected"
    PROJECT_APPLICATION = "project_application"
    PROJECT_APPROVED = "project_approved"
    PROJECT_REJECTED = "project_rejected"
    PROJECT_REVIEW_APPROVED = "project_review_approved"
    PROJECT_REVIEW_REJECTED = "project_review_rejected"
    PROJECT_SUBMITTED_ADMIN = "project_submitted_admin"
    PROJECT_SUBMITTED_FOR_REVIEW = "project_submitted_for_review"
    EVENT_GROUP_SUBMISSION_ADMIN = "event_group_submission_admin"
    EVENT_SUBMISSION_ADMIN = "event_submission_admin"
    BADGE_AWARDED = "badge_awarded"
    COMMUNITY_MENTION = "community_mention"


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    KEY_VALUE = "key-value"


# Well-known hosted mailbox relays: service name -> (host, port, implicit TLS)
HOSTED_MAILBOX_SERVICES: Dict[str, Tuple[str, int, bool]] = {
    "gmail": ("smtp.gmail.com", 465, True),
    "outlook": ("smtp.office365.com", 587, False),
    "yahoo": ("smtp.mail.yahoo.com", 465, True),
    "zoho": ("smtp.zoho.com", 465, True),
}


class HostedMailboxConfig(BaseModel):
    """Connection parameters for a hosted mailbox (service name + user/password)."""

    scheme: Literal["hosted-mailbox"] = "hosted-mailbox"
    service: str = Field("gmail", description="Hosted mailbox provider name")
    user: str = Field(..., min_length=1)
    password: SecretStr

    model_config = {"frozen": True}

    @field_validator("service")
    @classmethod
    def known_service(cls, v: str) -> str:
        """Only services with a known relay can be used."""
        normalized = v.strip().lower()
        if normalized not in HOSTED_MAILBOX_SERVICES:
            raise ValueError(
                f"Unknown hosted mailbox service '{v}'. "
                f"Expected one of: {', '.join(sorted(HOSTED_MAILBOX_SERVICES))}"
            )
        return normalized

    def connection_params(self) -> Tuple[str, int, bool]:
        """Return (host, port, secure) for the hosted relay."""
        return HOSTED_MAILBOX_SERVICES[self.service]

    @property
    def sender_address(self) -> str:
        """Hosted mailboxes send as the authenticated user."""
        return self.user


class GenericSmtpConfig(BaseModel):
    """Connection parameters for an arbitrary SMTP relay."""

    scheme: Literal["generic-smtp"] = "generic-smtp"
    host: str = Field(..., min_length=1)
    port: int = Field(..., ge=1, le=65535)
    secure: bool = Field(False, description="Use implicit TLS instead of STARTTLS")
    user: str = Field(..., min_length=1)
    password: SecretStr
    from_email: str = Field(..., min_length=1)

    model_config = {"frozen": True}

    def connection_params(self) -> Tuple[str, int, bool]:
        """Return (host, port, secure) for the relay."""
        return self.host, self.port, self.secure

    @property
    def sender_address(self) -> str:
        """Generic relays send as the configured FROM_EMAIL."""
        return self.from_email


TransportConfig = Union[HostedMailboxConfig, GenericSmtpConfig]


class AppSettings(BaseModel):
    """Deployment-wide settings with declared defaults.

    Every value that used to be an inline literal in the handlers (public URL,
    admin and support addresses) is a setting so tests and deployments can
    override it.
    """

    public_app_url: str = Field(
        "https://www.favoredonline.com",
        description="Base URL interpolated into action links",
    )
    admin_email: EmailStr = Field(
        "admin@favoredsite.com",
        description="Default recipient for admin-facing notifications",
    )
    support_email: EmailStr = Field(
        "support@favoredsite.com",
        description="Contact address shown when no organizer address is known",
    )
    smtp_timeout_seconds: float = Field(
        30.0, gt=0, le=300, description="Connect/greeting/socket timeout"
    )
    log_level: LogLevel = LogLevel.INFO
    log_format: LogFormat = LogFormat.KEY_VALUE
    environment: str = "local"

    # Defaults go through validation too, so enum fields hold plain strings
    model_config = {"frozen": True, "use_enum_values": True, "validate_default": True}

    @field_validator("public_app_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Links are built as f"{public_app_url}/path"."""
        stripped = v.strip().rstrip("/")
        if not stripped.startswith(("http://", "https://")):
            raise ValueError("public_app_url must start with http:// or https://")
        return stripped


class FieldSpec(BaseModel):
    """How one template variable is resolved from a request payload.

    Sources are tried in order: dotted payload paths (``projectData.title``)
    or special sources (``$now.date``, ``$now.datetime``,
    ``$settings.<name>``). The first non-blank value wins; otherwise the
    fixed ``default`` string is used.
    """

    sources: List[str] = Field(default_factory=list, alias="from")
    default: str = ""

    model_config = {"populate_by_name": True, "frozen": True}

    @field_validator("sources", mode="before")
    @classmethod
    def accept_single_source(cls, v):
        """Allow ``from: a.b`` as shorthand for ``from: [a.b]``."""
        if isinstance(v, str):
            return [v]
        return v


class RecipientSpec(BaseModel):
    """Where the envelope addresses come from (same source syntax as fields)."""

    to: List[str] = Field(..., min_length=1)
    cc: List[str] = Field(default_factory=list)
    reply_to: List[str] = Field(default_factory=list)

    model_config = {"frozen": True}


# Names every template context carries; kind fields may not reuse them
SHARED_CONTEXT_NAMES = frozenset(
    {"app_url", "admin_email", "support_email", "now_date", "now_time", "now_year"}
)


class KindSpec(BaseModel):
    """Registry entry: everything that differs between notification kinds."""

    kind: NotificationKind
    route: str = Field(..., min_length=1, description="HTTP route slug")
    scheme: TransportScheme
    sender_name: str = "Favored Online"
    success_message: str = Field(..., min_length=1)
    requirement: str = Field(
        ..., min_length=1, description="Sentence naming the required fields"
    )
    required: List[str] = Field(..., min_length=1)
    recipients: RecipientSpec
    fields: Dict[str, FieldSpec] = Field(default_factory=dict)
    result_metadata: Dict[str, str] = Field(default_factory=dict)

    model_config = {"frozen": True}

    @field_validator("route")
    @classmethod
    def route_is_slug(cls, v: str) -> str:
        """Routes are single URL path segments."""
        stripped = v.strip()
        if "/" in stripped or " " in stripped:
            raise ValueError(f"Route must be a single path segment: '{v}'")
        return stripped

    @field_validator("fields")
    @classmethod
    def fields_do_not_shadow_shared_names(cls, v: Dict[str, FieldSpec]) -> Dict[str, FieldSpec]:
        clashes = sorted(SHARED_CONTEXT_NAMES.intersection(v))
        if clashes:
            raise ValueError(f"Fields shadow shared context names: {', '.join(clashes)}")
        return v

    @model_validator(mode="after")
    def metadata_refers_to_fields(self):
        """Result metadata can only expose resolved fields."""
        unknown = [
            name for name in self.result_metadata.values() if name not in self.fields
        ]
        if unknown:
            raise ValueError(
                f"result_metadata refers to undeclared fields: {', '.join(sorted(unknown))}"
            )
        return self


class KindRegistry(BaseModel):
    """All registered notification kinds."""

    kinds: Dict[NotificationKind, KindSpec]

    model_config = {"frozen": True}

    @model_validator(mode="before")
    @classmethod
    def inject_kind_names(cls, data):
        """Copy each mapping key into its entry so entries know their kind."""
        if isinstance(data, dict) and isinstance(data.get("kinds"), dict):
            kinds = {}
            for name, entry in data["kinds"].items():
                if isinstance(entry, dict):
                    entry = {"kind": name, **entry}
                kinds[name] = entry
            data = {**data, "kinds": kinds}
        return data

    @model_validator(mode="after")
    def validate_registry(self):
        """Every kind is registered exactly once with a unique route."""
        missing = [kind.value for kind in NotificationKind if kind not in self.kinds]
        if missing:
            raise ValueError(f"Kinds without a registry entry: {', '.join(missing)}")

        routes: Dict[str, str] = {}
        for kind, spec in self.kinds.items():
            if spec.route in routes:
                raise ValueError(
                    f"Route '{spec.route}' used by both {routes[spec.route]} and {kind.value}"
                )
            routes[spec.route] = kind.value
        return self

    def get(self, kind: Union[str, NotificationKind]) -> Optional[KindSpec]:
        """Look up a kind by enum member or value; None if unknown."""
        try:
            return self.kinds.get(NotificationKind(kind))
        except ValueError:
            return None

    def by_route(self, route: str) -> Optional[KindSpec]:
        """Look up a kind by its HTTP route slug."""
        for spec in self.kinds.values():
            if spec.route == route:
                return spec
        return None
