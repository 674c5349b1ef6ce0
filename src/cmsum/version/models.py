"""Pydantic models for resolved CMS versions."""

import re
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict


class VersionLayout(str, Enum):
    """How the version fields were laid out in the source file."""

    # RELEASE / DEV_LEVEL / DEV_STATUS (or a single release string)
    THREE_FIELD = "three-field"
    # MAJOR_VERSION / MINOR_VERSION / PATCH_VERSION / EXTRA_VERSION
    FOUR_FIELD = "four-field"


class VersionDescriptor(BaseModel):
    """A product version, as far as the source file describes it.

    Optional fields that the file does not define stay ``None`` and are
    left out of ``display``.
    """

    model_config = ConfigDict(frozen=True)

    release: str
    patch: str | None = None
    status: str | None = None
    release_date: str | None = None
    extra: str | None = None
    layout: VersionLayout = VersionLayout.THREE_FIELD
    source: Path | None = None

    @property
    def display(self) -> str:
        """Human-readable version.

        Three-field: ``release[.patch][ (status)]``, e.g. ``3.10.6 (Stable)``.
        Four-field:  ``major.minor[.patch][-extra]``, e.g. ``4.4`` or ``5.1.2-rc1``.
        """
        version = self.release
        if self.patch:
            version += f".{self.patch}"
        if self.layout is VersionLayout.FOUR_FIELD:
            if self.extra:
                version += f"-{self.extra}"
        elif self.status:
            version += f" ({self.status})"
        return version

    @property
    def major(self) -> int | None:
        """Leading numeric component, or None if the release has none."""
        return parse_major(self.display)

    def __str__(self) -> str:
        return self.display


def parse_major(version: str) -> int | None:
    """First numeric token before a delimiter.

    Examples:
        >>> parse_major("3.10.6 (Stable)")
        3
        >>> parse_major("unknown") is None
        True
    """
    match = re.match(r"\s*v?(\d+)", version)
    return int(match.group(1)) if match else None
