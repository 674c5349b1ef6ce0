"""CLI for inspecting CMS installations and editing their users.

Reads ``wp-config.php`` / ``configuration.php`` from an installation
root, connects to the configured database, resolves which table prefixes
are real installations, and lists or edits users.

Usage:
    cmsum info /var/www/site
    cmsum prefixes /var/www/site
    cmsum users /var/www/site --prefix jos
    cmsum version /var/www/site
    cmsum edit /var/www/site alice --email alice@example.com --role Editor
    cmsum edit /var/www/site alice --first-name Alice --nickname ali
    cmsum edit /var/www/site alice --password
    cmsum edit /var/www/site alice --interactive

Commands:
    info      - Show connection details, prefixes and version
    prefixes  - List resolved installations per prefix
    users     - List users across all installations
    version   - Show the installed CMS version
    edit      - Edit one user (profile fields, roles, password)
"""

import argparse
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.prompt import Prompt
from rich.table import Table

from cmsum.adapters.sql import SqlAlchemyAdapter
from cmsum.config.extractor import config_path, detect_installations, read_config
from cmsum.config.loader import load_settings
from cmsum.config.models import CmsFamily, ExtractedConfig, ToolSettings
from cmsum.credentials import HashAlgorithm, hash_password
from cmsum.errors import (
    CmsumError,
    ConfigReadError,
    PrefixResolutionEmptyError,
    VersionUnresolvableError,
)
from cmsum.factory import connect
from cmsum.schema.models import PrefixResolution, ResolvedInstallation
from cmsum.schema.prefixes import resolve_prefixes
from cmsum.users.models import UserChanges, UserRecord
from cmsum.users.repository import UserRepository
from cmsum.version.models import VersionDescriptor
from cmsum.version.resolver import resolve_version

console = Console()
logger = logging.getLogger("cmsum")


# ============================================================================
# Helpers
# ============================================================================


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load_configs(args: argparse.Namespace) -> list[ExtractedConfig]:
    """Parse the config file of every CMS found under ``args.root``.

    Raises:
        ConfigReadError: If no config file exists or one can't be read.
    """
    root = Path(args.root)
    families = [CmsFamily(args.cms)] if args.cms else detect_installations(root)
    if not families:
        raise ConfigReadError(
            f"No {' or '.join(c.config_filename for c in CmsFamily)} found in {root}"
        )
    return [read_config(config_path(root, cms), cms) for cms in families]


@contextmanager
def _connected(config: ExtractedConfig, settings: ToolSettings) -> Iterator[SqlAlchemyAdapter]:
    adapter = connect(config.connection, settings)
    try:
        yield adapter
    finally:
        adapter.close()


def _resolve(adapter: SqlAlchemyAdapter, config: ExtractedConfig) -> PrefixResolution:
    return resolve_prefixes(
        adapter.list_tables(),
        hinted_prefix=config.hinted_prefix,
        hinted_cms=config.cms,
    )


def _resolve_version_or_none(root: Path, cms: CmsFamily) -> VersionDescriptor | None:
    try:
        return resolve_version(root, cms)
    except VersionUnresolvableError as e:
        logger.warning("%s", e)
        return None


def _pick_installation(
    resolution: PrefixResolution,
    cms: CmsFamily,
    prefix: str | None,
) -> ResolvedInstallation:
    """The installation an edit targets: explicit prefix, default, or the only one."""
    if prefix:
        found = resolution.find(prefix, cms)
        if found is None:
            raise PrefixResolutionEmptyError(
                f"Prefix '{prefix}' is not a {cms.value} installation. "
                f"Found: {', '.join(resolution.prefixes) or 'none'}"
            )
        return found
    if resolution.default is not None and resolution.default.cms == cms:
        return resolution.default
    candidates = resolution.for_cms(cms)
    if len(candidates) == 1:
        return candidates[0]
    if not candidates:
        raise PrefixResolutionEmptyError(f"No {cms.value} installation found")
    raise PrefixResolutionEmptyError(
        f"Several {cms.value} installations found "
        f"({', '.join(i.prefix for i in candidates)}); pass --prefix"
    )


def _user_table(users: list[UserRecord], title: str) -> Table:
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Prefix", style="dim")
    table.add_column("ID", justify="right")
    table.add_column("Username", style="cyan")
    table.add_column("Name")
    table.add_column("Email")
    table.add_column("Roles")
    # WordPress keeps profile fields in usermeta; Joomla has none
    profile = any(user.cms is CmsFamily.WORDPRESS for user in users)
    if profile:
        table.add_column("First name")
        table.add_column("Last name")
        table.add_column("Nickname")
    for user in users:
        row = [user.prefix, str(user.id), user.username, user.name, user.email, user.role]
        if profile:
            row += [user.first_name or "", user.last_name or "", user.nickname or ""]
        table.add_row(*row)
    return table


def _installation_table(resolution: PrefixResolution, cms: CmsFamily) -> Table:
    """Every installation in the database; ``cms`` is the config's family."""
    table = Table(
        title=f"Installations (configured: {cms.value})",
        show_header=True,
        header_style="bold",
    )
    table.add_column("", width=2)
    table.add_column("Prefix")
    table.add_column("CMS")
    table.add_column("Companion tables", style="dim")
    table.add_column("Source")

    ambiguous = set(resolution.ambiguous_prefixes)
    for installation in resolution.installations:
        marker = "[bold green]*[/bold green]" if installation == resolution.default else " "
        cms_label = installation.cms.value
        if installation.prefix in ambiguous:
            cms_label = f"[yellow]{cms_label} (ambiguous)[/yellow]"
        table.add_row(
            marker,
            f"[bold cyan]{installation.prefix}[/bold cyan]",
            cms_label,
            ", ".join(sorted(k.value for k in installation.companions)),
            "config (not in listing)" if installation.declared else "table listing",
        )
    return table


# ============================================================================
# Commands
# ============================================================================


def cmd_info(args: argparse.Namespace, settings: ToolSettings) -> int:
    """Show connection details, resolved prefixes and version per CMS.

    Returns:
        0 on success, 1 if a database could not be reached.
    """
    status = 0
    for config in _load_configs(args):
        conn = config.connection
        table = Table(title=f"{config.cms.value.capitalize()} Information", show_header=False)
        table.add_column("Key", style="dim")
        table.add_column("Value")
        table.add_row("Config", str(config.source))
        table.add_row("DB Type", conn.family.value)
        table.add_row("DB Name", conn.database)
        table.add_row("DB User", conn.user)
        table.add_row("DB Host", conn.host)
        table.add_row("DB Port", str(conn.port))
        table.add_row("Configured prefix", config.hinted_prefix or "[dim]-[/dim]")

        version = _resolve_version_or_none(Path(args.root), config.cms)
        table.add_row("Version", version.display if version else "[yellow]unknown[/yellow]")

        try:
            with _connected(config, settings) as adapter:
                resolution = _resolve(adapter, config)
            table.add_row("Table prefixes", ", ".join(resolution.prefixes))
        except PrefixResolutionEmptyError as e:
            table.add_row("Table prefixes", f"[yellow]{e}[/yellow]")
        except CmsumError as e:
            table.add_row("Table prefixes", f"[red]{e}[/red]")
            status = 1

        console.print(table)
    return status


def cmd_prefixes(args: argparse.Namespace, settings: ToolSettings) -> int:
    """List resolved installations per configured CMS."""
    for config in _load_configs(args):
        with _connected(config, settings) as adapter:
            resolution = _resolve(adapter, config)
        console.print(_installation_table(resolution, config.cms))
        if resolution.default is not None:
            console.print("[bold green]*[/bold green] = default installation")
    return 0


def cmd_users(args: argparse.Namespace, settings: ToolSettings) -> int:
    """List users of every installation of each configured CMS."""
    for config in _load_configs(args):
        with _connected(config, settings) as adapter:
            resolution = _resolve(adapter, config)
            if args.prefix:
                installations = [_pick_installation(resolution, config.cms, args.prefix)]
            else:
                installations = resolution.for_cms(config.cms)
            users = UserRepository(adapter).list_across_prefixes(installations)

        prefixes = ", ".join(i.prefix for i in installations)
        console.print(
            _user_table(users, f"{config.cms.value.capitalize()} users ({prefixes})")
        )
    return 0


def cmd_version(args: argparse.Namespace, settings: ToolSettings) -> int:
    """Show the installed version of each configured CMS."""
    root = Path(args.root)
    status = 0
    families = [CmsFamily(args.cms)] if args.cms else detect_installations(root)
    for cms in families or list(CmsFamily):
        try:
            version = resolve_version(root, cms)
        except VersionUnresolvableError as e:
            console.print(f"[bold red]x[/bold red] {cms.value}: {e}")
            status = 1
            continue
        console.print(
            f"{cms.value.capitalize()} [bold cyan]{version.display}[/bold cyan]"
            + (f" [dim]({version.release_date})[/dim]" if version.release_date else "")
        )
    return status


def _collect_changes(args: argparse.Namespace, user: UserRecord) -> UserChanges:
    """Replacement values from flags, prompting for the rest if ``--interactive``."""
    values = {
        "username": args.new_username,
        "name": args.name,
        "email": args.email,
        "roles": args.role or None,
        "first_name": args.first_name,
        "last_name": args.last_name,
        "nickname": args.nickname,
    }
    if args.interactive:
        fields = [("username", user.username), ("name", user.name), ("email", user.email)]
        if user.cms is CmsFamily.WORDPRESS:
            fields += [
                ("first_name", user.first_name),
                ("last_name", user.last_name),
                ("nickname", user.nickname),
            ]
        for field, current in fields:
            if values[field] is None:
                label = field.replace("_", " ")
                values[field] = Prompt.ask(f"New {label}", default=current or "", console=console)
        if values["roles"] is None:
            answer = Prompt.ask("Roles (comma-separated)", default=", ".join(user.roles), console=console)
            values["roles"] = [r.strip() for r in answer.split(",") if r.strip()]
    return UserChanges(**values)


def cmd_edit(args: argparse.Namespace, settings: ToolSettings) -> int:
    """Edit one user in a single transaction.

    Returns:
        0 on success (including "nothing to change"), 1 on failure.
    """
    root = Path(args.root)
    configs = _load_configs(args)
    if len(configs) > 1:
        console.print("[yellow]Both WordPress and Joomla configs found; pass --cms.[/yellow]")
        return 1
    config = configs[0]

    with _connected(config, settings) as adapter:
        installation = _pick_installation(_resolve(adapter, config), config.cms, args.prefix)
        repo = UserRepository(adapter)
        user = repo.get_by_username(installation, args.username)

        console.print(_user_table([user], f"Current details ({installation.prefix})"))
        changes = _collect_changes(args, user)

        password = None
        if args.password:
            cleartext = Prompt.ask("New password", password=True, console=console)
            password = hash_password(cleartext, _resolve_version_or_none(root, config.cms))
            console.print(f"[dim]Password hash scheme: {password.algorithm.value}[/dim]")
            if (
                config.cms is CmsFamily.WORDPRESS
                and password.algorithm is HashAlgorithm.LEGACY_SALTED_DIGEST
            ):
                console.print(
                    "[yellow]Warning: WordPress cannot verify digest:salt hashes; "
                    "this user may be unable to log in until the password is reset "
                    "from WordPress itself.[/yellow]"
                )

        changed = repo.update(installation, user.id, changes, password)

    if changed:
        console.print(
            f"[bold green]v[/bold green] Updated [bold cyan]{user.username}[/bold cyan]: "
            f"{', '.join(changed)}"
        )
    else:
        console.print("[dim]No changes.[/dim]")
    return 0


# ============================================================================
# Main entry point
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cmsum",
        description="Inspect CMS databases and manage their users",
    )
    parser.add_argument(
        "--settings",
        type=Path,
        default=None,
        help="Path to cmsum.toml (default: ./cmsum.toml if present)",
    )
    parser.add_argument(
        "--cms",
        choices=[c.value for c in CmsFamily],
        default=None,
        help="Only use this CMS's config file",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    p_info = subparsers.add_parser("info", help="Show connection details, prefixes and version")
    p_info.add_argument("root", help="Installation root directory")
    p_info.set_defaults(func=cmd_info)

    p_prefixes = subparsers.add_parser("prefixes", help="List resolved installations")
    p_prefixes.add_argument("root", help="Installation root directory")
    p_prefixes.set_defaults(func=cmd_prefixes)

    p_users = subparsers.add_parser("users", help="List users across installations")
    p_users.add_argument("root", help="Installation root directory")
    p_users.add_argument("--prefix", help="Only this table prefix")
    p_users.set_defaults(func=cmd_users)

    p_version = subparsers.add_parser("version", help="Show the installed CMS version")
    p_version.add_argument("root", help="Installation root directory")
    p_version.set_defaults(func=cmd_version)

    p_edit = subparsers.add_parser("edit", help="Edit one user")
    p_edit.add_argument("root", help="Installation root directory")
    p_edit.add_argument("username", help="Login name of the user to edit")
    p_edit.add_argument("--prefix", help="Table prefix (required when ambiguous)")
    p_edit.add_argument("--new-username", help="New login name")
    p_edit.add_argument("--name", help="New display name")
    p_edit.add_argument("--email", help="New email address")
    p_edit.add_argument("--first-name", help="New first name (WordPress)")
    p_edit.add_argument("--last-name", help="New last name (WordPress)")
    p_edit.add_argument("--nickname", help="New nickname (WordPress)")
    p_edit.add_argument(
        "--role",
        action="append",
        help="Role / group title; repeat for several Joomla groups",
    )
    p_edit.add_argument(
        "--password",
        action="store_true",
        help="Prompt for a new password",
    )
    p_edit.add_argument(
        "--interactive",
        "-i",
        action="store_true",
        help="Prompt for every field not given as a flag",
    )
    p_edit.set_defaults(func=cmd_edit)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args.settings)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    _configure_logging("DEBUG" if args.verbose else settings.log_level)

    try:
        return args.func(args, settings)
    except PrefixResolutionEmptyError as e:
        console.print(f"[yellow]{e}[/yellow]")
        return 1
    except (CmsumError, ValueError) as e:
        console.print(f"[bold red]x[/bold red] {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
