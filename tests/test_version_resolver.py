"""Tests for CMS version resolution from version files."""

from pathlib import Path

import pytest

from cmsum.config.models import CmsFamily
from cmsum.errors import VersionUnresolvableError
from cmsum.version.models import VersionDescriptor, VersionLayout, parse_major
from cmsum.version.resolver import (
    JOOMLA_SCHEMES,
    VersionSource,
    parse_version_text,
    resolve_from_sources,
    resolve_version,
)

JOOMLA_15 = """<?php
class JVersion
{
\tvar $PRODUCT = 'Joomla!';
\tvar $RELEASE = '1.5';
\tvar $DEV_STATUS = 'Stable';
\tvar $DEV_LEVEL = '26';
\tvar $RELDATE = '27-March-2012';
}
"""

JOOMLA_25 = """<?php
final class JVersion
{
\tpublic $RELEASE = '3.10';
\tpublic $DEV_LEVEL = '6';
\tpublic $DEV_STATUS = 'Stable';
}
"""

JOOMLA_3_CONST = """<?php
final class Version
{
\tconst PRODUCT = 'Joomla!';
\tconst RELEASE = '3.9';
\tconst MAJOR_VERSION = 3;
\tconst MINOR_VERSION = 9;
\tconst PATCH_VERSION = 28;
\tconst DEV_LEVEL = '28';
\tconst DEV_STATUS = 'Stable';
\tconst RELDATE = '6-July-2021';
}
"""

JOOMLA_4 = """<?php
final class Version
{
    public const PRODUCT = 'Joomla!';
    public const MAJOR_VERSION = 4;
    public const MINOR_VERSION = 4;
    public const PATCH_VERSION = 0;
    public const EXTRA_VERSION = '';
    public const DEV_STATUS = 'Stable';
    public const RELDATE = '17-October-2023';
}
"""

JOOMLA_5_RC = JOOMLA_4.replace("MAJOR_VERSION = 4", "MAJOR_VERSION = 5").replace(
    "MINOR_VERSION = 4", "MINOR_VERSION = 1"
).replace("PATCH_VERSION = 0", "PATCH_VERSION = 2").replace(
    "EXTRA_VERSION = ''", "EXTRA_VERSION = 'rc1'"
)

WP_VERSION = """<?php
/**
 * The WordPress version string.
 */
$wp_version = '6.4.2';
$wp_db_version = 56657;
"""


def write(root: Path, relative: str, text: str) -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


# ============================================================================
# Parsing one file
# ============================================================================


class TestThreeFieldLayouts:
    """RELEASE / DEV_LEVEL / DEV_STATUS, as property or constant."""

    def test_property_style(self) -> None:
        version = parse_version_text(JOOMLA_25, JOOMLA_SCHEMES)
        assert version is not None
        assert version.display == "3.10.6 (Stable)"
        assert version.layout is VersionLayout.THREE_FIELD
        assert version.major == 3

    def test_php4_var_style(self) -> None:
        version = parse_version_text(JOOMLA_15, JOOMLA_SCHEMES)
        assert version is not None
        assert version.display == "1.5.26 (Stable)"
        assert version.release_date == "27-March-2012"

    def test_constant_release_preferred_over_four_field(self) -> None:
        version = parse_version_text(JOOMLA_3_CONST, JOOMLA_SCHEMES)
        assert version is not None
        assert version.layout is VersionLayout.THREE_FIELD
        assert version.display == "3.9.28 (Stable)"

    def test_release_only(self) -> None:
        version = parse_version_text("public $RELEASE = '2.5';", JOOMLA_SCHEMES)
        assert version is not None
        assert version.display == "2.5"


class TestFourFieldLayout:
    """MAJOR / MINOR / PATCH / EXTRA constants."""

    def test_zero_patch_omitted(self) -> None:
        version = parse_version_text(JOOMLA_4, JOOMLA_SCHEMES)
        assert version is not None
        assert version.display == "4.4"
        assert version.layout is VersionLayout.FOUR_FIELD
        assert version.major == 4
        assert version.status == "Stable"

    def test_patch_and_extra(self) -> None:
        version = parse_version_text(JOOMLA_5_RC, JOOMLA_SCHEMES)
        assert version is not None
        assert version.display == "5.1.2-rc1"
        assert version.major == 5

    def test_no_release_fields(self) -> None:
        assert parse_version_text("<?php class Version {}", JOOMLA_SCHEMES) is None


class TestParseMajor:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [("3.10.6 (Stable)", 3), ("4.4", 4), ("v2.5", 2), ("10", 10), ("beta", None), ("", None)],
    )
    def test_parse_major(self, text: str, expected: int | None) -> None:
        assert parse_major(text) == expected

    def test_descriptor_str(self) -> None:
        assert str(VersionDescriptor(release="1.0", patch="15")) == "1.0.15"


# ============================================================================
# Resolving from an installation root
# ============================================================================


class TestResolveVersion:
    def test_wordpress(self, tmp_path: Path) -> None:
        path = write(tmp_path, "wp-includes/version.php", WP_VERSION)
        version = resolve_version(tmp_path, CmsFamily.WORDPRESS)
        assert version.display == "6.4.2"
        assert version.major == 6
        assert version.source == path

    def test_joomla_modern_location(self, tmp_path: Path) -> None:
        write(tmp_path, "libraries/src/Version.php", JOOMLA_4)
        assert resolve_version(tmp_path, CmsFamily.JOOMLA).display == "4.4"

    def test_joomla_legacy_location(self, tmp_path: Path) -> None:
        write(tmp_path, "libraries/joomla/version.php", JOOMLA_15)
        assert resolve_version(tmp_path, CmsFamily.JOOMLA).major == 1

    def test_first_readable_file_wins(self, tmp_path: Path) -> None:
        write(tmp_path, "libraries/cms/version/version.php", JOOMLA_25)
        write(tmp_path, "libraries/src/Version.php", JOOMLA_4)
        assert resolve_version(tmp_path, CmsFamily.JOOMLA).display == "3.10.6 (Stable)"

    def test_first_readable_file_is_committed_to(self, tmp_path: Path) -> None:
        """A readable file without a release does not fall through to later files."""
        write(tmp_path, "libraries/cms/version/version.php", "<?php // empty")
        write(tmp_path, "libraries/src/Version.php", JOOMLA_4)
        with pytest.raises(VersionUnresolvableError, match="No release identifier"):
            resolve_version(tmp_path, CmsFamily.JOOMLA)

    def test_no_version_file(self, tmp_path: Path) -> None:
        with pytest.raises(VersionUnresolvableError, match="No readable version file"):
            resolve_version(tmp_path, CmsFamily.JOOMLA)

    def test_custom_sources(self, tmp_path: Path) -> None:
        write(tmp_path, "VERSION.php", "const RELEASE = '9.0';")
        version = resolve_from_sources(tmp_path, (VersionSource("VERSION.php"),))
        assert version.display == "9.0"
