"""
Data models for team provisioning requests and outcomes.
"""

import uuid
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class ProvisioningIntent(str, Enum):
    """What the uploaded spreadsheet should be used for."""

    CREATE = "create"
    UPDATE = "update"


class OutcomeStatus(str, Enum):
    """Result of provisioning a single team request."""

    SUCCESS = "success"
    PARTIAL_FAILURE = "partial_failure"
    HARD_FAILURE = "hard_failure"


class FailureKind(str, Enum):
    """Reasons a provisioning step can fail."""

    OWNER_REQUIRED = "owner_required"
    OWNER_NOT_FOUND = "owner_not_found"
    GROUP_CREATION_FAILED = "group_creation_failed"
    RETRY_EXHAUSTED = "retry_exhausted"
    TEAM_NOT_FOUND = "team_not_found"
    DIRECTORY_LOOKUP_MISS = "directory_lookup_miss"
    REMOTE_REJECTED = "remote_rejected"
    UNEXPECTED_ERROR = "unexpected_error"


class TeamRequest(BaseModel):
    """One spreadsheet row: a team with its channels, members and guests."""

    team_name: str
    channel_names: List[str] = Field(default_factory=list)
    member_emails: List[str] = Field(default_factory=list)
    guest_emails: List[str] = Field(default_factory=list)

    @field_validator("team_name")
    @classmethod
    def team_name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("team name must not be empty")
        return value

    @property
    def owner_email(self) -> Optional[str]:
        """The first member is the owner of a newly created team."""
        return self.member_emails[0] if self.member_emails else None


class StepFailure(BaseModel):
    """A failed sub-step (channel, member, guest) or the reason of a hard failure."""

    kind: FailureKind
    target: str
    message: str


class ProvisioningOutcome(BaseModel):
    """Aggregated result for one TeamRequest."""

    team_name: str
    status: OutcomeStatus
    group_id: Optional[str] = None
    team_id: Optional[str] = None
    failures: List[StepFailure] = Field(default_factory=list)
    messages: List[str] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == OutcomeStatus.SUCCESS


class BotMessage(BaseModel):
    """Message model for bot responses."""

    text: str
    attachments: Optional[List[Dict[str, Any]]] = None
    suggested_actions: Optional[List[Dict[str, Any]]] = None


def is_valid_guid(value: Optional[str]) -> bool:
    """Return True when value parses as a GUID."""
    if not value:
        return False
    try:
        uuid.UUID(value.strip())
    except (ValueError, AttributeError, TypeError):
        return False
    return True
