"""Tests for the cmsum command-line interface.

Database access is redirected to in-memory SQLite installations by
patching ``cmsum.cli.connect``.
"""

import io
from pathlib import Path
from unittest.mock import patch

import pytest
from conftest import (
    JOOMLA_ROWS,
    JOOMLA_SCHEMA,
    WORDPRESS_ROWS,
    WORDPRESS_SCHEMA,
    make_sqlite_adapter,
)
from rich.console import Console

from cmsum.adapters.sql import SqlAlchemyAdapter
from cmsum.cli import build_parser, main
from cmsum.credentials import verify_password

WP_CONFIG = """<?php
define( 'DB_NAME', 'blog' );
define( 'DB_USER', 'blog_user' );
define( 'DB_PASSWORD', 'secret' );
define( 'DB_HOST', 'localhost' );
$table_prefix = 'wp_';
"""

JOOMLA_CONFIG = """<?php
class JConfig {
\tpublic $dbtype = 'mysqli';
\tpublic $host = 'localhost';
\tpublic $user = 'joomla';
\tpublic $password = 'secret';
\tpublic $db = 'site';
\tpublic $dbprefix = 'jos_';
}
"""


@pytest.fixture
def out():
    """Capture rich output at a width wide enough to keep table cells whole."""
    buffer = io.StringIO()
    with (
        patch("cmsum.cli.console", Console(file=buffer, width=200)),
        patch("cmsum.cli._configure_logging"),
    ):
        yield buffer


@pytest.fixture
def wordpress_site(tmp_path: Path) -> Path:
    (tmp_path / "wp-config.php").write_text(WP_CONFIG)
    (tmp_path / "wp-includes").mkdir()
    (tmp_path / "wp-includes" / "version.php").write_text("<?php\n$wp_version = '6.4.2';\n")
    return tmp_path


@pytest.fixture
def joomla_site(tmp_path: Path) -> Path:
    (tmp_path / "configuration.php").write_text(JOOMLA_CONFIG)
    version = tmp_path / "libraries" / "cms" / "version"
    version.mkdir(parents=True)
    (version / "version.php").write_text(
        "<?php\nfinal class JVersion {\n\tpublic $RELEASE = '2.5';\n\tpublic $DEV_LEVEL = '28';\n}\n"
    )
    return tmp_path


@pytest.fixture
def database():
    """A live SQLite adapter that survives the CLI's close() calls."""
    adapter = make_sqlite_adapter(
        ("wp", WORDPRESS_SCHEMA + WORDPRESS_ROWS),
        ("jos", JOOMLA_SCHEMA + JOOMLA_ROWS),
    )
    with (
        patch("cmsum.cli.connect", return_value=adapter),
        patch.object(SqlAlchemyAdapter, "close"),
    ):
        yield adapter
    adapter.engine.dispose()


# ============================================================================
# Parser
# ============================================================================


class TestParser:
    def test_prog_name(self) -> None:
        assert build_parser().prog == "cmsum"

    def test_commands(self) -> None:
        parser = build_parser()
        for command in ("info", "prefixes", "users", "version"):
            args = parser.parse_args([command, "/srv/site"])
            assert args.command == command
            assert args.root == "/srv/site"

    def test_edit_arguments(self) -> None:
        args = build_parser().parse_args(
            ["--cms", "joomla", "edit", "/srv", "jane", "--role", "Author", "--role", "Editor"]
        )
        assert args.cms == "joomla"
        assert args.username == "jane"
        assert args.role == ["Author", "Editor"]
        assert args.password is False
        assert args.first_name is None

    def test_profile_arguments(self) -> None:
        args = build_parser().parse_args(
            ["edit", "/srv", "ada", "--first-name", "Ada", "--last-name", "King", "--nickname", "ada"]
        )
        assert (args.first_name, args.last_name, args.nickname) == ("Ada", "King", "ada")

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_unknown_cms_rejected(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--cms", "drupal", "info", "/srv"])


# ============================================================================
# Read-only commands
# ============================================================================


class TestVersionCommand:
    def test_wordpress(self, out: io.StringIO, wordpress_site: Path) -> None:
        assert main(["version", str(wordpress_site)]) == 0
        assert "6.4.2" in out.getvalue()

    def test_joomla(self, out: io.StringIO, joomla_site: Path) -> None:
        assert main(["version", str(joomla_site)]) == 0
        assert "2.5.28" in out.getvalue()

    def test_unresolvable(self, out: io.StringIO, tmp_path: Path) -> None:
        (tmp_path / "wp-config.php").write_text(WP_CONFIG)
        assert main(["version", str(tmp_path)]) == 1
        assert "No readable version file" in out.getvalue()


class TestListingCommands:
    def test_users(self, out: io.StringIO, wordpress_site: Path, database) -> None:
        assert main(["users", str(wordpress_site)]) == 0
        text = out.getvalue()
        assert "admin@example.com" in text
        assert "writer" in text
        assert "Administrator" in text

    def test_users_with_prefix(self, out: io.StringIO, joomla_site: Path, database) -> None:
        assert main(["users", str(joomla_site), "--prefix", "jos_"]) == 0
        assert "Super Users" in out.getvalue()

    def test_users_unknown_prefix(self, out: io.StringIO, joomla_site: Path, database) -> None:
        assert main(["users", str(joomla_site), "--prefix", "nope"]) == 1
        assert "nope" in out.getvalue()

    def test_prefixes(self, out: io.StringIO, wordpress_site: Path, database) -> None:
        assert main(["prefixes", str(wordpress_site)]) == 0
        text = out.getvalue()
        assert "wp" in text
        assert "default installation" in text
        assert "Installations (configured: wordpress)" in text
        assert "jos" in text

    def test_info(self, out: io.StringIO, wordpress_site: Path, database) -> None:
        assert main(["info", str(wordpress_site)]) == 0
        text = out.getvalue()
        assert "blog_user" in text
        assert "3306" in text
        assert "6.4.2" in text
        assert "secret" not in text

    def test_no_config(self, out: io.StringIO, tmp_path: Path) -> None:
        assert main(["users", str(tmp_path)]) == 1
        assert "wp-config.php" in out.getvalue()

    def test_missing_settings_file(self, out: io.StringIO, wordpress_site: Path) -> None:
        code = main(["--settings", str(wordpress_site / "absent.toml"), "version", str(wordpress_site)])
        assert code == 1
        assert "Settings file not found" in out.getvalue()


# ============================================================================
# edit
# ============================================================================


class TestEditCommand:
    def test_email_change(self, out: io.StringIO, wordpress_site: Path, database) -> None:
        code = main(["edit", str(wordpress_site), "writer", "--email", "w@example.com"])
        assert code == 0
        assert "Updated" in out.getvalue()
        rows = database.query("SELECT user_email FROM wp_users WHERE ID = 2")
        assert rows == [{"user_email": "w@example.com"}]

    def test_no_changes(self, out: io.StringIO, wordpress_site: Path, database) -> None:
        assert main(["edit", str(wordpress_site), "writer"]) == 0
        assert "No changes" in out.getvalue()

    def test_password_uses_version_scheme(
        self, out: io.StringIO, wordpress_site: Path, database
    ) -> None:
        with patch("cmsum.cli.Prompt.ask", return_value="n3w-pass"):
            assert main(["edit", str(wordpress_site), "admin", "--password"]) == 0
        stored = database.query("SELECT user_pass FROM wp_users WHERE ID = 1")[0]["user_pass"]
        assert stored.startswith("$2y$")
        assert verify_password("n3w-pass", stored)

    def test_legacy_password_for_old_joomla(
        self, out: io.StringIO, joomla_site: Path, database
    ) -> None:
        with patch("cmsum.cli.Prompt.ask", return_value="pw"):
            assert main(["edit", str(joomla_site), "jane", "--password"]) == 0
        stored = database.query("SELECT password FROM jos_users WHERE id = 43")[0]["password"]
        assert ":" in stored
        assert verify_password("pw", stored)

    def test_interactive_prompts_for_unset_fields(
        self, out: io.StringIO, joomla_site: Path, database
    ) -> None:
        answers = iter(["jane", "Jane Q. Doe", "jane@example.com", "Registered"])
        with patch("cmsum.cli.Prompt.ask", side_effect=lambda *a, **k: next(answers)):
            assert main(["edit", str(joomla_site), "jane", "--interactive"]) == 0
        rows = database.query("SELECT name FROM jos_users WHERE id = 43")
        assert rows == [{"name": "Jane Q. Doe"}]
        groups = database.query("SELECT group_id FROM jos_user_usergroup_map WHERE user_id = 43")
        assert groups == [{"group_id": 2}]

    def test_unknown_user(self, out: io.StringIO, wordpress_site: Path, database) -> None:
        assert main(["edit", str(wordpress_site), "ghost", "--name", "Ghost"]) == 1
        assert "ghost" in out.getvalue()

    def test_failed_step_reports_rollback(
        self, out: io.StringIO, joomla_site: Path, database
    ) -> None:
        code = main(["edit", str(joomla_site), "jane", "--name", "X", "--role", "Nonexistent"])
        assert code == 1
        assert "rolled back" in out.getvalue()
        rows = database.query("SELECT name FROM jos_users WHERE id = 43")
        assert rows == [{"name": "Jane Doe"}]

    def test_both_configs_need_cms_flag(
        self, out: io.StringIO, wordpress_site: Path, database
    ) -> None:
        (wordpress_site / "configuration.php").write_text(JOOMLA_CONFIG)
        assert main(["edit", str(wordpress_site), "admin", "--name", "X"]) == 1
        assert "--cms" in out.getvalue()
        assert main(["--cms", "wordpress", "edit", str(wordpress_site), "admin", "--name", "X"]) == 0


class TestEditWordPressProfile:
    """First name, last name and nickname live in WordPress usermeta."""

    def meta(self, database, user_id: int) -> dict[str, str]:
        rows = database.query(
            "SELECT meta_key, meta_value FROM wp_usermeta WHERE user_id = :id "
            "AND meta_key IN ('first_name', 'last_name', 'nickname')",
            {"id": user_id},
        )
        return {row["meta_key"]: row["meta_value"] for row in rows}

    def test_users_lists_profile_columns(
        self, out: io.StringIO, wordpress_site: Path, database
    ) -> None:
        assert main(["users", str(wordpress_site)]) == 0
        text = out.getvalue()
        assert "First name" in text
        assert "Nickname" in text
        assert "Ada" in text

    def test_profile_flags(self, out: io.StringIO, wordpress_site: Path, database) -> None:
        code = main(
            ["edit", str(wordpress_site), "writer", "--first-name", "Wendy", "--nickname", "wen"]
        )
        assert code == 0
        assert "first_name, nickname" in out.getvalue()
        assert self.meta(database, 2) == {"first_name": "Wendy", "nickname": "wen"}

    def test_interactive_prompts_for_profile(
        self, out: io.StringIO, wordpress_site: Path, database
    ) -> None:
        answers = iter(
            ["writer", "Writer", "writer@example.com", "Wendy", "", "wen", "Author"]
        )
        with patch("cmsum.cli.Prompt.ask", side_effect=lambda *a, **k: next(answers)) as ask:
            assert main(["edit", str(wordpress_site), "writer", "--interactive"]) == 0
        prompts = [call.args[0] for call in ask.call_args_list]
        assert prompts[3:6] == ["New first name", "New last name", "New nickname"]
        assert self.meta(database, 2) == {"first_name": "Wendy", "nickname": "wen"}

    def test_interactive_accepting_defaults_changes_nothing(
        self, out: io.StringIO, wordpress_site: Path, database
    ) -> None:
        """Pressing Enter everywhere keeps a custom-role user's capabilities."""
        with database.transaction() as tx:
            tx.execute(
                "INSERT INTO wp_users (ID, user_login, user_email, display_name) "
                "VALUES (3, 'shop', 'shop@example.com', 'Shop')"
            )
            tx.execute(
                "INSERT INTO wp_usermeta (user_id, meta_key, meta_value) "
                "VALUES (3, 'wp_capabilities', :caps)",
                {"caps": 'a:1:{s:12:"shop_manager";b:1;}'},
            )
        with patch("cmsum.cli.Prompt.ask", side_effect=lambda *a, **k: k["default"]):
            assert main(["edit", str(wordpress_site), "shop", "--interactive"]) == 0
        assert "No changes" in out.getvalue()
        caps = database.query(
            "SELECT meta_value FROM wp_usermeta WHERE user_id = 3 AND meta_key = 'wp_capabilities'"
        )
        assert caps == [{"meta_value": 'a:1:{s:12:"shop_manager";b:1;}'}]

    def test_profile_flags_rejected_for_joomla(
        self, out: io.StringIO, joomla_site: Path, database
    ) -> None:
        assert main(["edit", str(joomla_site), "jane", "--nickname", "jj"]) == 1
        assert "Joomla users have no" in out.getvalue()

    def test_legacy_hash_on_old_wordpress_warns(
        self, out: io.StringIO, wordpress_site: Path, database
    ) -> None:
        (wordpress_site / "wp-includes" / "version.php").write_text("<?php\n$wp_version = '2.9.2';\n")
        with patch("cmsum.cli.Prompt.ask", return_value="pw"):
            assert main(["edit", str(wordpress_site), "admin", "--password"]) == 0
        text = out.getvalue()
        assert "legacy-salted-digest" in text
        assert "WordPress cannot verify" in text

    def test_adaptive_hash_on_wordpress_does_not_warn(
        self, out: io.StringIO, wordpress_site: Path, database
    ) -> None:
        with patch("cmsum.cli.Prompt.ask", return_value="pw"):
            assert main(["edit", str(wordpress_site), "admin", "--password"]) == 0
        assert "WordPress cannot verify" not in out.getvalue()
