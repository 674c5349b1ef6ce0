"""Key/value matchers over PHP configuration and version sources.

CMS configuration and version files are PHP, but we never evaluate them.
Each matcher knows one assignment shape and returns the first value
assigned to a given key, or ``None``:

- ``DefineMatcher``:   ``define('DB_NAME', 'wordpress');``
- ``PropertyMatcher``: ``public $host = 'localhost';`` / ``var $RELEASE = '1.5';``
- ``VariableMatcher``: ``$table_prefix = 'wp_';``
- ``ConstantMatcher``: ``const RELEASE = '3.10';`` / ``const MAJOR_VERSION = 4;``

Usage:
    from cmsum.parsing import DefineMatcher

    DefineMatcher().match(text, "DB_HOST")
"""

import re
from typing import Protocol

# A quoted PHP string ('...' or "...") or a bare integer literal.
_VALUE = r"""(?:'(?P<single>(?:[^'\\]|\\.)*)'|"(?P<double>(?:[^"\\]|\\.)*)"|(?P<number>-?\d+))"""


class KeyValueMatcher(Protocol):
    """Find the value assigned to ``key`` in ``text``."""

    def match(self, text: str, key: str) -> str | None:
        ...


class _RegexMatcher:
    """Shared implementation: subclasses supply the assignment template."""

    # ``{key}`` is substituted with the escaped key name.
    template: str = ""
    flags: int = 0

    def _pattern(self, key: str) -> re.Pattern[str]:
        return re.compile(self.template.format(key=re.escape(key)) + _VALUE, self.flags)

    def match(self, text: str, key: str) -> str | None:
        found = self._pattern(key).search(text)
        if found is None:
            return None
        for group in ("single", "double", "number"):
            value = found.group(group)
            if value is not None:
                return _unescape(value)
        return None


class DefineMatcher(_RegexMatcher):
    """``define('KEY', 'value')``; key quotes may be single or double."""

    template = r"""define\s*\(\s*['"]{key}['"]\s*,\s*"""
    flags = re.IGNORECASE


class PropertyMatcher(_RegexMatcher):
    """Class property: ``public $key = 'value';`` or the PHP4 ``var`` form."""

    template = r"(?:public|var|protected|private)(?:\s+static)?\s+\${key}\s*=\s*"


class VariableMatcher(_RegexMatcher):
    """Bare assignment: ``$key = 'value';``."""

    template = r"\${key}\s*=\s*"


class ConstantMatcher(_RegexMatcher):
    """Class constant: ``const KEY = 'value';`` or ``const KEY = 4;``."""

    template = r"\bconst\s+{key}\s*=\s*"


def _unescape(value: str) -> str:
    """Undo PHP backslash escapes for quotes and backslashes."""
    return re.sub(r"\\([\\'\"])", r"\1", value)


def first_match(text: str, matcher: KeyValueMatcher, keys: tuple[str, ...]) -> str | None:
    """Return the value of the first key in ``keys`` that is assigned in ``text``."""
    for key in keys:
        value = matcher.match(text, key)
        if value is not None:
            return value
    return None
