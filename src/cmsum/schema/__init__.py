"""Prefix resolution: which table prefixes are genuine CMS installations.

Usage:
    from cmsum.schema import resolve_prefixes, ResolvedInstallation
"""

from cmsum.schema.models import (
    CompanionKind,
    PrefixCandidate,
    PrefixResolution,
    ResolvedInstallation,
)
from cmsum.schema.prefixes import SUFFIX_RULES, classify, match_suffix, resolve_prefixes

__all__ = [
    "resolve_prefixes",
    "match_suffix",
    "classify",
    "SUFFIX_RULES",
    "CompanionKind",
    "PrefixCandidate",
    "PrefixResolution",
    "ResolvedInstallation",
]
