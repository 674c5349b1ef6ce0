"""Models for prefix resolution.

- ``CompanionKind``: which CMS table a suffix identifies
- ``PrefixCandidate``: scratch record built during one resolution pass
- ``ResolvedInstallation``: an accepted (prefix, CMS family) pair
- ``PrefixResolution``: the ordered result plus the default installation
"""

from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from cmsum.config.models import CmsFamily


class CompanionKind(str, Enum):
    """Table kinds whose presence is evidence of an installation."""

    USERS = "users"
    POSTS = "posts"
    USERMETA = "usermeta"
    USER_GROUP_MAP = "user_usergroup_map"
    USER_GROUPS = "usergroups"


@dataclass
class PrefixCandidate:
    """Presence flags for one prefix; never outlives a resolution call."""

    prefix: str
    flags: set[CompanionKind] = field(default_factory=set)

    def has(self, kind: CompanionKind) -> bool:
        return kind in self.flags


class ResolvedInstallation(BaseModel):
    """A prefix accepted as a complete installation of one CMS family."""

    model_config = ConfigDict(frozen=True)

    prefix: str
    cms: CmsFamily
    companions: frozenset[CompanionKind] = Field(default_factory=frozenset)
    declared: bool = False  # kept only because the CMS config names it

    def table(self, kind: CompanionKind | str) -> str:
        """Physical table name, e.g. ``table(CompanionKind.USERS) -> 'wp_users'``."""
        name = kind.value if isinstance(kind, CompanionKind) else kind
        return f"{self.prefix}_{name}"

    def has(self, kind: CompanionKind) -> bool:
        """Whether the companion table was seen; declared installations assume all."""
        return self.declared or kind in self.companions

    @property
    def sort_key(self) -> tuple[str, str]:
        return (self.prefix, self.cms.value)


class PrefixResolution(BaseModel):
    """Installations found in one listing, in deterministic order."""

    installations: list[ResolvedInstallation] = Field(default_factory=list)
    default: ResolvedInstallation | None = None

    @property
    def prefixes(self) -> list[str]:
        """Distinct prefixes in order."""
        return list(dict.fromkeys(i.prefix for i in self.installations))

    @property
    def ambiguous_prefixes(self) -> list[str]:
        """Prefixes that matched both the WordPress and the Joomla shape."""
        seen: dict[str, int] = {}
        for installation in self.installations:
            seen[installation.prefix] = seen.get(installation.prefix, 0) + 1
        return [p for p, n in seen.items() if n > 1]

    def for_cms(self, cms: CmsFamily) -> list[ResolvedInstallation]:
        return [i for i in self.installations if i.cms == cms]

    def find(self, prefix: str, cms: CmsFamily | None = None) -> ResolvedInstallation | None:
        """Look up an installation by prefix (trailing underscore tolerated)."""
        prefix = prefix.rstrip("_")
        for installation in self.installations:
            if installation.prefix == prefix and (cms is None or installation.cms == cms):
                return installation
        return None
