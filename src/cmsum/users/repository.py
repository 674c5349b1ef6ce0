"""User listing, lookup, and transactional update across installations.

Reads go straight to the database every time. Updates run in a single
transaction per user:

1. Re-read the baseline row inside the transaction.
2. Write only the fields that differ from it.
3. Check every write touched exactly one row (the role-map delete is the
   one exemption: it clears however many rows exist).
4. Any mismatch or error rolls the whole transaction back.

Joomla roles are group titles from ``P_usergroups`` joined through
``P_user_usergroup_map``; role edits delete all of a user's mappings and
insert the selected ones. WordPress keeps one role inside a serialized
PHP capabilities array in ``P_usermeta``; the role is derived by
substring match and edits rewrite that array.

Usage:
    from cmsum.users.repository import UserRepository

    repo = UserRepository(adapter)
    users = repo.list_across_prefixes(resolution.installations)
    changed = repo.update(installation, user.id, UserChanges(email="new@example.com"))
"""

import logging
from collections.abc import Iterable
from typing import Any

from cmsum.adapters.base import DatabaseClient, Transaction
from cmsum.config.models import CmsFamily
from cmsum.credentials import HashResult
from cmsum.errors import UpdateAffectedRowMismatchError, UserNotFoundError
from cmsum.schema.models import CompanionKind, ResolvedInstallation
from cmsum.users.models import UserChanges, UserRecord

logger = logging.getLogger(__name__)

# Checked in order; the first substring found in the capabilities blob wins.
WORDPRESS_ROLES: tuple[str, ...] = (
    "administrator",
    "editor",
    "author",
    "contributor",
    "subscriber",
)
UNKNOWN_ROLE = "Unknown"

# UserChanges field -> users table column
_WORDPRESS_COLUMNS = {"username": "user_login", "email": "user_email", "name": "display_name"}
_JOOMLA_COLUMNS = {"username": "username", "email": "email", "name": "name"}
_PASSWORD_COLUMNS = {CmsFamily.WORDPRESS: "user_pass", CmsFamily.JOOMLA: "password"}
_WORDPRESS_META = ("first_name", "last_name", "nickname")


def derive_role(capabilities: str | None) -> str:
    """Coarse role label from a serialized WordPress capabilities value.

    Examples:
        >>> derive_role('a:1:{s:13:"administrator";b:1;}')
        'Administrator'
        >>> derive_role(None)
        'Unknown'
    """
    lowered = (capabilities or "").lower()
    for role in WORDPRESS_ROLES:
        if role in lowered:
            return role.capitalize()
    return UNKNOWN_ROLE


def serialize_capabilities(role: str) -> str:
    """PHP-serialized single-role capabilities array.

    Example:
        >>> serialize_capabilities("Editor")
        'a:1:{s:6:"editor";b:1;}'
    """
    key = role.strip().lower()
    return f'a:1:{{s:{len(key.encode("utf-8"))}:"{key}";b:1;}}'


class _RowGuard:
    """Checks affected-row counts for one user's update."""

    def __init__(self, tx: Transaction, installation: ResolvedInstallation, username: str):
        self._tx = tx
        self._installation = installation
        self._username = username

    def execute(self, step: str, sql: str, params: dict[str, Any], expected: int | None = 1) -> int:
        affected = self._tx.execute(sql, params)
        if expected is not None and affected != expected:
            raise UpdateAffectedRowMismatchError(
                prefix=self._installation.prefix,
                username=self._username,
                step=step,
                expected=expected,
                actual=affected,
            )
        return affected


class UserRepository:
    """User operations over a ``DatabaseClient``, parameterized by installation."""

    def __init__(self, client: DatabaseClient) -> None:
        self._client = client

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_users(self, installation: ResolvedInstallation) -> list[UserRecord]:
        """All users of one installation, ordered by id."""
        sql, params = _select(installation)
        return _to_records(installation, self._client.query(sql, params))

    def list_across_prefixes(
        self, installations: Iterable[ResolvedInstallation]
    ) -> list[UserRecord]:
        """Users of every installation, in installation order then id order."""
        users: list[UserRecord] = []
        for installation in installations:
            found = self.list_users(installation)
            logger.debug(
                "Listed %d user(s) for %s prefix %r",
                len(found),
                installation.cms.value,
                installation.prefix,
            )
            users.extend(found)
        return users

    def get_by_username(self, installation: ResolvedInstallation, username: str) -> UserRecord:
        """Look up one user by login name.

        Raises:
            UserNotFoundError: If no such user exists under this prefix.
        """
        return _fetch_one(self._client, installation, "username", username)

    def get_by_id(self, installation: ResolvedInstallation, user_id: int) -> UserRecord:
        """Look up one user by primary key.

        Raises:
            UserNotFoundError: If no such user exists under this prefix.
        """
        return _fetch_one(self._client, installation, "id", user_id)

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update(
        self,
        installation: ResolvedInstallation,
        user_id: int,
        changes: UserChanges,
        password: HashResult | None = None,
    ) -> list[str]:
        """Apply changes to one user in a single transaction.

        Args:
            installation: Where the user lives.
            user_id: Primary key of the user to edit.
            changes: Replacement values; ``None`` fields are kept.
            password: Pre-hashed new password, if changing it.

        Returns:
            Names of the fields that were written (empty if nothing differed).

        Raises:
            UserNotFoundError: If the user no longer exists.
            UpdateAffectedRowMismatchError: If any write touched the wrong
                number of rows; nothing is committed.
            ValueError: If the requested roles cannot be written.
        """
        if installation.cms is CmsFamily.JOOMLA and any(
            getattr(changes, key) is not None for key in _WORDPRESS_META
        ):
            raise ValueError("Joomla users have no first name, last name or nickname")

        with self._client.transaction() as tx:
            baseline, row = _fetch_one_row(tx, installation, "id", user_id)
            guard = _RowGuard(tx, installation, baseline.username)

            changed = _update_users_row(guard, installation, baseline, changes, password)
            if installation.cms is CmsFamily.WORDPRESS:
                changed += _update_wordpress_meta(guard, installation, baseline, row, changes)
            else:
                changed += _update_joomla_groups(guard, installation, baseline, changes)

        if changed:
            logger.info(
                "Updated %s user %r (prefix %r): %s",
                installation.cms.value,
                baseline.username,
                installation.prefix,
                ", ".join(changed),
            )
        else:
            logger.info("No changes for user %r (prefix %r)", baseline.username, installation.prefix)
        return changed


# ============================================================================
# Query building
# ============================================================================


def _select(
    installation: ResolvedInstallation,
    by: str | None = None,
    value: Any = None,
) -> tuple[str, dict[str, Any]]:
    """SELECT for the installation's users, optionally filtered by id/username."""
    if installation.cms is CmsFamily.WORDPRESS:
        return _wordpress_select(installation, by, value)
    return _joomla_select(installation, by, value)


def _wordpress_select(
    installation: ResolvedInstallation, by: str | None, value: Any
) -> tuple[str, dict[str, Any]]:
    users = installation.table(CompanionKind.USERS)
    meta = installation.table(CompanionKind.USERMETA)
    params: dict[str, Any] = {}
    where = ""
    if by is not None:
        column = "u.ID" if by == "id" else "u.user_login"
        where = f"WHERE {column} = :value"
        params["value"] = value

    if not installation.has(CompanionKind.USERMETA):
        sql = f"""
            SELECT u.ID AS id, u.user_login AS username, u.user_email AS email,
                   u.display_name AS name,
                   NULL AS capabilities, NULL AS first_name,
                   NULL AS last_name, NULL AS nickname
            FROM {users} u
            {where}
            ORDER BY u.ID
        """
        return sql, params

    params["caps_key"] = f"{installation.prefix}_capabilities"
    sql = f"""
        SELECT u.ID AS id, u.user_login AS username, u.user_email AS email,
               u.display_name AS name,
               MAX(CASE WHEN m.meta_key = :caps_key THEN m.meta_value ELSE NULL END) AS capabilities,
               MAX(CASE WHEN m.meta_key = 'first_name' THEN m.meta_value ELSE NULL END) AS first_name,
               MAX(CASE WHEN m.meta_key = 'last_name' THEN m.meta_value ELSE NULL END) AS last_name,
               MAX(CASE WHEN m.meta_key = 'nickname' THEN m.meta_value ELSE NULL END) AS nickname
        FROM {users} u
        LEFT JOIN {meta} m ON u.ID = m.user_id
        {where}
        GROUP BY u.ID, u.user_login, u.user_email, u.display_name
        ORDER BY u.ID
    """
    return sql, params


def _joomla_select(
    installation: ResolvedInstallation, by: str | None, value: Any
) -> tuple[str, dict[str, Any]]:
    users = installation.table(CompanionKind.USERS)
    group_map = installation.table(CompanionKind.USER_GROUP_MAP)
    groups = installation.table(CompanionKind.USER_GROUPS)
    params: dict[str, Any] = {}
    where = ""
    if by is not None:
        where = f"WHERE u.{'id' if by == 'id' else 'username'} = :value"
        params["value"] = value

    has_map = installation.has(CompanionKind.USER_GROUP_MAP)
    if has_map and installation.has(CompanionKind.USER_GROUPS):
        # Fuller path: group titles
        role = "g.title"
        joins = (
            f"LEFT JOIN {group_map} m ON u.id = m.user_id\n"
            f"            LEFT JOIN {groups} g ON m.group_id = g.id"
        )
    elif has_map:
        # Map without group table: group ids are the best label available
        role = "m.group_id"
        joins = f"LEFT JOIN {group_map} m ON u.id = m.user_id"
    else:
        role = "NULL"
        joins = ""

    sql = f"""
        SELECT u.id AS id, u.username AS username, u.name AS name, u.email AS email,
               {role} AS role
        FROM {users} u
            {joins}
        {where}
        ORDER BY u.id
    """
    return sql, params


def _to_records(installation: ResolvedInstallation, rows: list[dict]) -> list[UserRecord]:
    """Fold query rows (one per user, or one per user-group for Joomla) into records."""
    records: dict[int, dict[str, Any]] = {}
    for row in rows:
        user_id = int(row["id"])
        if installation.cms is CmsFamily.WORDPRESS:
            records[user_id] = {
                "id": user_id,
                "username": row["username"],
                "name": row["name"] or "",
                "email": row["email"] or "",
                "roles": [derive_role(row["capabilities"])],
                "first_name": row["first_name"],
                "last_name": row["last_name"],
                "nickname": row["nickname"],
            }
            continue

        record = records.setdefault(
            user_id,
            {
                "id": user_id,
                "username": row["username"],
                "name": row["name"] or "",
                "email": row["email"] or "",
                "roles": [],
            },
        )
        if row["role"] is not None:
            record["roles"].append(str(row["role"]))

    return [
        UserRecord(prefix=installation.prefix, cms=installation.cms, **fields)
        for fields in records.values()
    ]


def _fetch_one_row(
    executor: DatabaseClient | Transaction,
    installation: ResolvedInstallation,
    by: str,
    value: Any,
) -> tuple[UserRecord, dict]:
    sql, params = _select(installation, by, value)
    rows = executor.query(sql, params)
    records = _to_records(installation, rows)
    if not records:
        raise UserNotFoundError(installation.prefix, str(value) if by == "username" else f"#{value}")
    return records[0], rows[0]


def _fetch_one(
    executor: DatabaseClient | Transaction,
    installation: ResolvedInstallation,
    by: str,
    value: Any,
) -> UserRecord:
    return _fetch_one_row(executor, installation, by, value)[0]


# ============================================================================
# Update steps
# ============================================================================


def _update_users_row(
    guard: _RowGuard,
    installation: ResolvedInstallation,
    baseline: UserRecord,
    changes: UserChanges,
    password: HashResult | None,
) -> list[str]:
    """UPDATE the users table with the differing profile columns."""
    columns = _WORDPRESS_COLUMNS if installation.cms is CmsFamily.WORDPRESS else _JOOMLA_COLUMNS
    id_column = "ID" if installation.cms is CmsFamily.WORDPRESS else "id"

    assignments: dict[str, Any] = {}
    changed: list[str] = []
    for field, column in columns.items():
        new = getattr(changes, field)
        if new is not None and new != getattr(baseline, field):
            assignments[column] = new
            changed.append(field)
    if password is not None:
        assignments[_PASSWORD_COLUMNS[installation.cms]] = password.encoded
        changed.append("password")

    if not assignments:
        return []

    set_clause = ", ".join(f"{column} = :{column}" for column in assignments)
    guard.execute(
        "update users",
        f"UPDATE {installation.table(CompanionKind.USERS)} SET {set_clause} "
        f"WHERE {id_column} = :user_id",
        {**assignments, "user_id": baseline.id},
    )
    return changed


def _write_meta(
    guard: _RowGuard,
    installation: ResolvedInstallation,
    user_id: int,
    key: str,
    value: str,
    exists: bool,
) -> None:
    meta = installation.table(CompanionKind.USERMETA)
    params = {"user_id": user_id, "meta_key": key, "meta_value": value}
    if exists:
        guard.execute(
            f"update meta {key}",
            f"UPDATE {meta} SET meta_value = :meta_value "
            f"WHERE user_id = :user_id AND meta_key = :meta_key",
            params,
        )
    else:
        guard.execute(
            f"insert meta {key}",
            f"INSERT INTO {meta} (user_id, meta_key, meta_value) "
            f"VALUES (:user_id, :meta_key, :meta_value)",
            params,
        )


def _update_wordpress_meta(
    guard: _RowGuard,
    installation: ResolvedInstallation,
    baseline: UserRecord,
    row: dict,
    changes: UserChanges,
) -> list[str]:
    """Profile meta and the capabilities-encoded role."""
    wants_meta = any(getattr(changes, key) is not None for key in _WORDPRESS_META)
    if not installation.has(CompanionKind.USERMETA):
        if wants_meta or (changes.roles is not None and changes.roles != baseline.roles):
            raise ValueError(f"Installation '{installation.prefix}' has no usermeta table")
        return []

    changed: list[str] = []
    for key in _WORDPRESS_META:
        new = getattr(changes, key)
        current = row[key]
        if new is not None and new != (current or ""):
            _write_meta(guard, installation, baseline.id, key, new, exists=current is not None)
            changed.append(key)

    if changes.roles is not None:
        if len(changes.roles) != 1:
            raise ValueError("WordPress users have exactly one role")
        requested = changes.roles[0].strip()
        current = row["capabilities"]
        # A custom role or a missing row reads back as Unknown; resubmitting
        # the label read is not a change
        if requested.capitalize() == derive_role(current):
            return changed
        if requested.lower() == UNKNOWN_ROLE.lower():
            raise ValueError(f"'{UNKNOWN_ROLE}' is not a role that can be written")
        new_caps = serialize_capabilities(requested)
        if new_caps != current:
            _write_meta(
                guard,
                installation,
                baseline.id,
                f"{installation.prefix}_capabilities",
                new_caps,
                exists=current is not None,
            )
            changed.append("roles")
    return changed


def _update_joomla_groups(
    guard: _RowGuard,
    installation: ResolvedInstallation,
    baseline: UserRecord,
    changes: UserChanges,
) -> list[str]:
    """Replace group mappings: delete all, then insert each selected group."""
    if changes.roles is None or sorted(set(changes.roles)) == baseline.roles:
        return []
    if not installation.has(CompanionKind.USER_GROUP_MAP):
        raise ValueError(f"Installation '{installation.prefix}' has no user group map table")

    group_map = installation.table(CompanionKind.USER_GROUP_MAP)
    groups = installation.table(CompanionKind.USER_GROUPS)

    guard.execute(
        "delete group map",
        f"DELETE FROM {group_map} WHERE user_id = :user_id",
        {"user_id": baseline.id},
        expected=None,
    )

    for role in sorted(set(changes.roles)):
        if installation.has(CompanionKind.USER_GROUPS):
            # An unknown title selects no row, so the guard rolls back
            guard.execute(
                f"insert group {role}",
                f"INSERT INTO {group_map} (user_id, group_id) "
                f"SELECT :user_id, g.id FROM {groups} g WHERE g.title = :title",
                {"user_id": baseline.id, "title": role},
            )
        else:
            if not role.isdigit():
                raise ValueError(f"Group id expected without a usergroups table, got {role!r}")
            guard.execute(
                f"insert group {role}",
                f"INSERT INTO {group_map} (user_id, group_id) VALUES (:user_id, :group_id)",
                {"user_id": baseline.id, "group_id": int(role)},
            )
    return ["roles"]
