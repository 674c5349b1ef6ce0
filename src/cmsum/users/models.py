"""Pydantic models for CMS user accounts."""

from pydantic import BaseModel, Field, field_validator

from cmsum.config.models import CmsFamily


class UserRecord(BaseModel):
    """A user row as read from one installation.

    Records are read fresh for every operation and never cached; the
    database is the only source of truth.
    """

    id: int
    username: str
    name: str = ""
    email: str = ""
    roles: list[str] = Field(default_factory=list)
    prefix: str
    cms: CmsFamily
    # WordPress profile meta; always None for Joomla
    first_name: str | None = None
    last_name: str | None = None
    nickname: str | None = None

    @field_validator("roles")
    @classmethod
    def _roles_as_set(cls, roles: list[str]) -> list[str]:
        """Roles have set semantics; keep them deduplicated and sorted."""
        return sorted(set(roles))

    @property
    def role(self) -> str:
        """Primary role label for display."""
        return ", ".join(self.roles) if self.roles else "Unknown"


class UserChanges(BaseModel):
    """Already-collected replacement values for an update.

    ``None`` means "keep the current value". Fields equal to the current
    value are skipped by the repository.
    """

    username: str | None = None
    name: str | None = None
    email: str | None = None
    roles: list[str] | None = None
    first_name: str | None = None
    last_name: str | None = None
    nickname: str | None = None

    @classmethod
    def from_record(cls, record: UserRecord) -> "UserChanges":
        """Every editable field of ``record`` as a desired value."""
        return cls(
            username=record.username,
            name=record.name,
            email=record.email,
            roles=list(record.roles),
            first_name=record.first_name,
            last_name=record.last_name,
            nickname=record.nickname,
        )

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)
