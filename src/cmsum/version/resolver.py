"""Resolve a CMS product version from its version files.

Every CMS release line kept its version in a different file, with
different field names. The fallback order is explicit data: each family
has an ordered tuple of ``VersionSource(path, schemes)``. Resolution
commits to the *first readable file* (oldest dialect first) and never
merges fields across files. Within that file each scheme is tried in
order until one yields a release.

Schemes:
- property-style: ``public $RELEASE = '2.5';`` (Joomla 1.x/2.5)
- constant-style: ``const RELEASE = '3.10';`` (Joomla 3), falling back to
  ``const MAJOR_VERSION = 4;`` and friends only when ``RELEASE`` is absent
  (Joomla 4+)
- variable-style: ``$wp_version = '6.4.2';`` (WordPress)

Usage:
    from cmsum.version.resolver import resolve_version

    version = resolve_version(Path("/var/www/site"), CmsFamily.JOOMLA)
    print(version.display)  # "3.10.6 (Stable)"
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from cmsum.config.models import CmsFamily
from cmsum.errors import VersionUnresolvableError
from cmsum.parsing import (
    ConstantMatcher,
    KeyValueMatcher,
    PropertyMatcher,
    VariableMatcher,
    first_match,
)
from cmsum.version.models import VersionDescriptor, VersionLayout

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Schemes
# ------------------------------------------------------------------


@dataclass(frozen=True)
class ThreeFieldScheme:
    """release / patch / status (+ release date), all but release optional."""

    name: str
    matcher: KeyValueMatcher
    release_keys: tuple[str, ...] = ("RELEASE",)
    patch_keys: tuple[str, ...] = ("DEV_LEVEL",)
    status_keys: tuple[str, ...] = ("DEV_STATUS", "RELTYPE")
    date_keys: tuple[str, ...] = ("RELDATE",)

    def parse(self, text: str) -> VersionDescriptor | None:
        release = first_match(text, self.matcher, self.release_keys)
        if not release:
            return None
        return VersionDescriptor(
            release=release,
            patch=first_match(text, self.matcher, self.patch_keys) or None,
            status=first_match(text, self.matcher, self.status_keys) or None,
            release_date=first_match(text, self.matcher, self.date_keys) or None,
            layout=VersionLayout.THREE_FIELD,
        )


@dataclass(frozen=True)
class FourFieldScheme:
    """Numeric MAJOR / MINOR / PATCH plus an EXTRA tag."""

    name: str
    matcher: KeyValueMatcher

    def parse(self, text: str) -> VersionDescriptor | None:
        def get(*keys: str) -> str | None:
            return first_match(text, self.matcher, keys) or None

        major = get("MAJOR_VERSION")
        if major is None:
            return None
        minor = get("MINOR_VERSION")
        patch = get("PATCH_VERSION")

        return VersionDescriptor(
            release=f"{major}.{minor}" if minor is not None else major,
            # A zero patch level is not shown: 4.4.0 displays as 4.4
            patch=patch if patch not in (None, "0") else None,
            extra=get("EXTRA_VERSION"),
            status=get("DEV_STATUS", "RELTYPE"),
            release_date=get("RELDATE"),
            layout=VersionLayout.FOUR_FIELD,
        )


@dataclass(frozen=True)
class ConstantScheme:
    """Class constants: three-field first, four-field only without RELEASE."""

    name: str = "constant"
    matcher: KeyValueMatcher = ConstantMatcher()

    def parse(self, text: str) -> VersionDescriptor | None:
        three = ThreeFieldScheme(f"{self.name}-three-field", self.matcher)
        if self.matcher.match(text, "RELEASE") is not None:
            return three.parse(text)
        return FourFieldScheme(f"{self.name}-four-field", self.matcher).parse(text)


PROPERTY_SCHEME = ThreeFieldScheme("property", PropertyMatcher())
CONSTANT_SCHEME = ConstantScheme()
WORDPRESS_SCHEME = ThreeFieldScheme(
    "variable",
    VariableMatcher(),
    release_keys=("wp_version",),
    patch_keys=(),
    status_keys=(),
    date_keys=(),
)

JOOMLA_SCHEMES = (PROPERTY_SCHEME, CONSTANT_SCHEME)


# ------------------------------------------------------------------
# Sources
# ------------------------------------------------------------------


@dataclass(frozen=True)
class VersionSource:
    """A version file (relative to the installation root) and its schemes."""

    path: str
    schemes: tuple = JOOMLA_SCHEMES


# Oldest dialect first.
VERSION_SOURCES: dict[CmsFamily, tuple[VersionSource, ...]] = {
    CmsFamily.WORDPRESS: (
        VersionSource("wp-includes/version.php", (WORDPRESS_SCHEME,)),
    ),
    CmsFamily.JOOMLA: (
        VersionSource("includes/version.php"),  # 1.0
        VersionSource("libraries/joomla/version.php"),  # 1.5
        VersionSource("libraries/cms/version/version.php"),  # 2.5 - 3.7
        VersionSource("libraries/src/Version.php"),  # 3.8+
    ),
}


def parse_version_text(text: str, schemes: tuple) -> VersionDescriptor | None:
    """Apply schemes in order to one file's text; first release wins."""
    for scheme in schemes:
        descriptor = scheme.parse(text)
        if descriptor is not None:
            logger.debug("Version %s matched by %s scheme", descriptor.display, scheme.name)
            return descriptor
    return None


def resolve_from_sources(root: Path, sources: tuple[VersionSource, ...]) -> VersionDescriptor:
    """Commit to the first readable source under ``root`` and parse it.

    Raises:
        VersionUnresolvableError: If no source is readable, or the one
            that is yields no release identifier.
    """
    root = Path(root)
    for source in sources:
        path = root / source.path
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.debug("Version source %s not readable: %s", path, e)
            continue

        descriptor = parse_version_text(text, source.schemes)
        if descriptor is None:
            raise VersionUnresolvableError(f"No release identifier found in {path}")
        return descriptor.model_copy(update={"source": path})

    tried = ", ".join(s.path for s in sources)
    raise VersionUnresolvableError(f"No readable version file under {root} (tried {tried})")


def resolve_version(root: Path, cms: CmsFamily) -> VersionDescriptor:
    """Resolve the installed version of a CMS rooted at ``root``.

    Raises:
        VersionUnresolvableError: See ``resolve_from_sources``.
    """
    return resolve_from_sources(root, VERSION_SOURCES[cms])
