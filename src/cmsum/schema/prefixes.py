"""Resolve CMS installation prefixes from a raw table listing.

A shared database may hold several installations side by side. Nothing
labels them, so a prefix is accepted only when its companion tables form
a complete installation shape:

- WordPress ("A"): ``P_users`` and ``P_posts``
- Joomla ("B"):    ``P_users`` and ``P_user_usergroup_map`` and/or ``P_usergroups``

``P_users`` is the anchor: a prefix without it is always discarded. A
prefix carrying both shapes is reported twice, once per family; picking
one is left to the caller.

Pure logic: the listing comes from ``DatabaseClient.list_tables()``.

Usage:
    from cmsum.schema.prefixes import resolve_prefixes

    resolution = resolve_prefixes(client.list_tables(), hinted_prefix="jos")
    for installation in resolution.installations:
        print(installation.prefix, installation.cms)
"""

import logging
from collections.abc import Iterable

from cmsum.config.models import CmsFamily
from cmsum.errors import PrefixResolutionEmptyError
from cmsum.schema.models import (
    CompanionKind,
    PrefixCandidate,
    PrefixResolution,
    ResolvedInstallation,
)

logger = logging.getLogger(__name__)

# Ordered: a table matches the first rule whose suffix fits.
SUFFIX_RULES: tuple[tuple[str, CompanionKind], ...] = (
    ("_users", CompanionKind.USERS),
    ("_posts", CompanionKind.POSTS),
    ("_usermeta", CompanionKind.USERMETA),
    ("_user_usergroup_map", CompanionKind.USER_GROUP_MAP),
    ("_usergroups", CompanionKind.USER_GROUPS),
)


def match_suffix(table: str) -> tuple[str, CompanionKind] | None:
    """Split a table name into ``(prefix, kind)`` using the first fitting rule.

    Examples:
        >>> match_suffix("wp_users")
        ('wp', <CompanionKind.USERS: 'users'>)
        >>> match_suffix("jos_user_usergroup_map")
        ('jos', <CompanionKind.USER_GROUP_MAP: 'user_usergroup_map'>)
        >>> match_suffix("wp_options") is None
        True
    """
    for suffix, kind in SUFFIX_RULES:
        if table.endswith(suffix) and len(table) > len(suffix):
            return table[: -len(suffix)], kind
    return None


def collect_candidates(tables: Iterable[str]) -> dict[str, PrefixCandidate]:
    """Build one ``PrefixCandidate`` per discovered prefix, merging flags."""
    candidates: dict[str, PrefixCandidate] = {}
    for table in tables:
        matched = match_suffix(table)
        if matched is None:
            continue
        prefix, kind = matched
        candidate = candidates.get(prefix)
        if candidate is None:
            candidate = candidates[prefix] = PrefixCandidate(prefix=prefix)
        candidate.flags.add(kind)
    return candidates


def classify(candidate: PrefixCandidate) -> list[CmsFamily]:
    """CMS families whose shape this candidate satisfies (possibly both)."""
    if not candidate.has(CompanionKind.USERS):
        return []

    families: list[CmsFamily] = []
    if candidate.has(CompanionKind.POSTS):
        families.append(CmsFamily.WORDPRESS)
    if candidate.has(CompanionKind.USER_GROUP_MAP) or candidate.has(CompanionKind.USER_GROUPS):
        families.append(CmsFamily.JOOMLA)
    return families


def resolve_prefixes(
    tables: Iterable[str],
    hinted_prefix: str | None = None,
    hinted_cms: CmsFamily | None = None,
) -> PrefixResolution:
    """Determine which prefixes in a table listing are genuine installations.

    Args:
        tables: Every table name in the database.
        hinted_prefix: Prefix declared by the CMS config, if any. A trailing
            underscore is ignored (``"wp_"`` and ``"wp"`` are the same).
        hinted_cms: Family of the config that declared ``hinted_prefix``.

    Returns:
        ``PrefixResolution`` with installations sorted by prefix then family,
        and a default: the declared installation when there is a hint,
        otherwise the sole installation, otherwise ``None``.

    Raises:
        PrefixResolutionEmptyError: If nothing was found and nothing declared.

    Examples:
        >>> resolve_prefixes(["wp_users", "wp_posts"]).prefixes
        ['wp']
        >>> resolve_prefixes(["x_user_usergroup_map"], hinted_prefix=None)
        Traceback (most recent call last):
        ...
        cmsum.errors.PrefixResolutionEmptyError: No CMS installation found in 1 table(s)
    """
    tables = list(tables)
    candidates = collect_candidates(tables)

    installations: list[ResolvedInstallation] = []
    for prefix, candidate in candidates.items():
        families = classify(candidate)
        if not families:
            logger.debug("Discarding prefix %r: flags=%s", prefix, sorted(candidate.flags))
            continue
        for cms in families:
            installations.append(
                ResolvedInstallation(
                    prefix=prefix,
                    cms=cms,
                    companions=frozenset(candidate.flags),
                )
            )

    default: ResolvedInstallation | None = None
    hint = hinted_prefix.rstrip("_") if hinted_prefix else None
    if hint:
        matches = [
            i for i in installations
            if i.prefix == hint and (hinted_cms is None or i.cms == hinted_cms)
        ]
        if matches:
            default = matches[0]
        elif hinted_cms is not None:
            # The config is the installation's own declaration; a listing
            # that disagrees is not proof of absence.
            logger.info(
                "Configured prefix %r not confirmed by table listing; keeping it",
                hint,
            )
            candidate = candidates.get(hint)
            default = ResolvedInstallation(
                prefix=hint,
                cms=hinted_cms,
                companions=frozenset(candidate.flags) if candidate else frozenset(),
                declared=True,
            )
            installations.append(default)
        else:
            logger.info(
                "Configured prefix %r not in table listing and no CMS family given; ignoring it",
                hint,
            )

    if not installations:
        raise PrefixResolutionEmptyError(
            f"No CMS installation found in {len(tables)} table(s)"
        )

    installations.sort(key=lambda i: i.sort_key)
    if default is None and len(installations) == 1:
        default = installations[0]

    resolution = PrefixResolution(installations=installations, default=default)
    if resolution.ambiguous_prefixes:
        logger.warning(
            "Prefixes match both WordPress and Joomla table shapes: %s",
            ", ".join(resolution.ambiguous_prefixes),
        )
    return resolution
