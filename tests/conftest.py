"""Shared fixtures: in-memory SQLite databases shaped like CMS installations.

The same ``SqlAlchemyAdapter`` that drives MySQL and PostgreSQL runs over
these engines, so the repository and resolver SQL is exercised for real.
"""

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.pool import StaticPool

from cmsum.adapters.sql import SqlAlchemyAdapter
from cmsum.config.models import CmsFamily
from cmsum.schema.models import CompanionKind, ResolvedInstallation

WORDPRESS_SCHEMA = [
    """CREATE TABLE {p}_users (
        ID INTEGER PRIMARY KEY,
        user_login TEXT NOT NULL,
        user_pass TEXT NOT NULL DEFAULT '',
        user_email TEXT NOT NULL DEFAULT '',
        display_name TEXT NOT NULL DEFAULT ''
    )""",
    """CREATE TABLE {p}_usermeta (
        umeta_id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        meta_key TEXT,
        meta_value TEXT
    )""",
    "CREATE TABLE {p}_posts (ID INTEGER PRIMARY KEY, post_title TEXT)",
    "CREATE TABLE {p}_options (option_id INTEGER PRIMARY KEY, option_name TEXT)",
]

WORDPRESS_ROWS = [
    "INSERT INTO {p}_users (ID, user_login, user_pass, user_email, display_name) "
    "VALUES (1, 'admin', 'x', 'admin@example.com', 'Site Admin')",
    "INSERT INTO {p}_users (ID, user_login, user_pass, user_email, display_name) "
    "VALUES (2, 'writer', 'x', 'writer@example.com', 'Writer')",
    "INSERT INTO {p}_usermeta (user_id, meta_key, meta_value) "
    "VALUES (1, '{p}_capabilities', 'a:1:{{s:13:\"administrator\";b:1;}}')",
    "INSERT INTO {p}_usermeta (user_id, meta_key, meta_value) VALUES (1, 'first_name', 'Ada')",
    "INSERT INTO {p}_usermeta (user_id, meta_key, meta_value) VALUES (1, 'nickname', 'ada')",
    "INSERT INTO {p}_usermeta (user_id, meta_key, meta_value) "
    "VALUES (2, '{p}_capabilities', 'a:1:{{s:6:\"author\";b:1;}}')",
]

JOOMLA_SCHEMA = [
    """CREATE TABLE {p}_users (
        id INTEGER PRIMARY KEY,
        name TEXT NOT NULL DEFAULT '',
        username TEXT NOT NULL,
        email TEXT NOT NULL DEFAULT '',
        password TEXT NOT NULL DEFAULT ''
    )""",
    "CREATE TABLE {p}_usergroups (id INTEGER PRIMARY KEY, title TEXT NOT NULL)",
    """CREATE TABLE {p}_user_usergroup_map (
        user_id INTEGER NOT NULL,
        group_id INTEGER NOT NULL,
        PRIMARY KEY (user_id, group_id)
    )""",
    "CREATE TABLE {p}_content (id INTEGER PRIMARY KEY, title TEXT)",
]

JOOMLA_ROWS = [
    "INSERT INTO {p}_usergroups (id, title) VALUES (2, 'Registered')",
    "INSERT INTO {p}_usergroups (id, title) VALUES (3, 'Author')",
    "INSERT INTO {p}_usergroups (id, title) VALUES (8, 'Super Users')",
    "INSERT INTO {p}_users (id, name, username, email, password) "
    "VALUES (42, 'Super User', 'admin', 'admin@example.com', 'x')",
    "INSERT INTO {p}_users (id, name, username, email, password) "
    "VALUES (43, 'Jane Doe', 'jane', 'jane@example.com', 'x')",
    "INSERT INTO {p}_user_usergroup_map (user_id, group_id) VALUES (42, 8)",
    "INSERT INTO {p}_user_usergroup_map (user_id, group_id) VALUES (43, 2)",
    "INSERT INTO {p}_user_usergroup_map (user_id, group_id) VALUES (43, 3)",
]


def make_sqlite_adapter(*scripts: tuple[str, list[str]]) -> SqlAlchemyAdapter:
    """An adapter over a fresh in-memory database.

    Args:
        scripts: ``(prefix, statements)`` pairs; ``{p}`` in each statement
            is replaced with the prefix.
    """
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    with engine.begin() as conn:
        for prefix, statements in scripts:
            for statement in statements:
                conn.execute(text(statement.format(p=prefix)))
    return SqlAlchemyAdapter(engine)


def installation(prefix: str, cms: CmsFamily, *kinds: CompanionKind) -> ResolvedInstallation:
    return ResolvedInstallation(prefix=prefix, cms=cms, companions=frozenset(kinds))


@pytest.fixture
def wordpress_db():
    adapter = make_sqlite_adapter(("wp", WORDPRESS_SCHEMA + WORDPRESS_ROWS))
    yield adapter
    adapter.close()


@pytest.fixture
def joomla_db():
    adapter = make_sqlite_adapter(("jos", JOOMLA_SCHEMA + JOOMLA_ROWS))
    yield adapter
    adapter.close()


@pytest.fixture
def wordpress_install() -> ResolvedInstallation:
    return installation(
        "wp",
        CmsFamily.WORDPRESS,
        CompanionKind.USERS,
        CompanionKind.POSTS,
        CompanionKind.USERMETA,
    )


@pytest.fixture
def joomla_install() -> ResolvedInstallation:
    return installation(
        "jos",
        CmsFamily.JOOMLA,
        CompanionKind.USERS,
        CompanionKind.USER_GROUP_MAP,
        CompanionKind.USER_GROUPS,
    )
