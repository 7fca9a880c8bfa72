from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ErrorKind(str, Enum):
    CONFIGURATION_MISSING = "configuration_missing"
    AUTH_REJECTED = "auth_rejected"
    NAME_CONFLICT_OR_INVALID = "name_conflict_or_invalid"
    REMOTE_REJECTED = "remote_rejected"
    REMOTE_UNAVAILABLE = "remote_unavailable"
    MALFORMED_RESPONSE = "malformed_response"
    UNKNOWN = "unknown"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Artifact(BaseModel):
    """Three-file static site (index.html, style.css, script.js) plus a short note for the user."""

    model_config = ConfigDict(frozen=True)

    markup: str
    styles: str
    script: str
    summary_message: str = ""


class RepositoryRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    web_url: str
    full_name: str
    clone_url: Optional[str] = None
    # True when no repository was actually created
    placeholder: bool = False

    @property
    def name(self) -> str:
        return self.full_name.split("/", 1)[-1]


class DeploymentResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    public_url: str
    succeeded: bool
    degraded: bool
    deployment_id: Optional[str] = None
    strategy: str = "placeholder"


class StepResult(BaseModel):
    """Outcome of one component call.

    ``value`` is always usable; ``degraded`` and ``cause`` say whether it is a
    real remote result or a substitute.
    """

    value: Any = None
    degraded: bool = False
    cause: Optional[ErrorKind] = None
    detail: Optional[str] = None

    def summary(self) -> Dict[str, Any]:
        return {
            "degraded": self.degraded,
            "cause": self.cause.value if self.cause else None,
            "detail": self.detail,
        }


class SavedProject(BaseModel):
    id: str
    name: str
    preview_text: str
    timestamp: datetime = Field(default_factory=_utcnow)
    artifact: Artifact


class ConversationTurn(BaseModel):
    role: str
    content: str
    timestamp: datetime = Field(default_factory=_utcnow)


class DeployedWebsite(BaseModel):
    url: str
    repository_url: str
    description: str
    created: datetime = Field(default_factory=_utcnow)


class UserSession(BaseModel):
    user_id: str
    created_at: datetime = Field(default_factory=_utcnow)
    projects: List[SavedProject] = Field(default_factory=list)
    conversation: List[ConversationTurn] = Field(default_factory=list)
    websites: List[DeployedWebsite] = Field(default_factory=list)


class ProvisionResult(BaseModel):
    success: bool
    message: str
    public_url: Optional[str] = None
    repository_url: Optional[str] = None
    clarification: bool = False
    steps: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


class ChatResult(BaseModel):
    assistant_message: str
    artifact: Artifact
    degraded: bool = False
