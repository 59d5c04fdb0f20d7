"""Profile commands -- manage the sites presscache knows about.

Provides the ``presscache profile`` sub-command group. A profile names a
site, the user to authenticate as, where the application password comes
from, and where the replica is stored. The password itself is never
written to disk; only its source (``env:VAR``, ``file:/path`` or
``prompt``) is.

Typical workflow::

    presscache profile add blog --domain blog.example.com --user editor \\
        --credential env:BLOG_APP_PASSWORD --cache-path ~/wp/blog.json --default
    presscache profile list
    presscache -p blog build
"""

from __future__ import annotations

from typing import Optional

import typer

from presscache.exit_codes import EXIT_INVALID_USAGE
from presscache.output import error, format_response, get_output, info, print_table, success


profile_app = typer.Typer(no_args_is_help=True)


@profile_app.command("add")
def profile_add(
    name: str = typer.Argument(help="Profile name."),
    domain: str = typer.Option(..., "--domain", "-d", help="Site domain, e.g. blog.example.com."),
    user: str = typer.Option(..., "--user", "-u", help="WordPress user name."),
    credential: str = typer.Option(
        "prompt",
        "--credential",
        "-c",
        help="Application password source: env:VAR, file:/path or prompt.",
    ),
    cache_path: Optional[str] = typer.Option(
        None, "--cache-path", help="Replica file (defaults to the data directory)."
    ),
    make_default: bool = typer.Option(
        False, "--default", help="Make this the default profile."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Replace an existing profile."
    ),
) -> None:
    """Create or replace a site profile.

    Raises:
        typer.Exit: With code 2 if the profile exists and ``--force`` is
            not given, or the credential source is malformed.

    Example::

        presscache profile add blog --domain blog.example.com --user editor
    """
    from presscache.config import (
        get_data_dir,
        load_global_config,
        profile_exists,
        save_global_config,
        save_profile,
    )
    from presscache.models import SiteInfo, SiteProfile

    if profile_exists(name) and not force:
        error(f"Profile '{name}' already exists. Use --force to replace it.")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    if credential != "prompt" and not credential.startswith(("env:", "file:")):
        error(f"Unknown credential source: {credential}")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    bare_domain = SiteInfo(domain=domain, user=user, app_password="").domain
    if cache_path is None:
        cache_path = str(get_data_dir() / f"{name}-posts.json")

    profile = SiteProfile(
        name=name,
        domain=bare_domain,
        user=user,
        credential_source=credential,
        cache_path=cache_path,
    )
    save_profile(profile)
    success(f"Saved profile '{name}' for {bare_domain}")

    if make_default:
        config = load_global_config()
        config.default_profile = name
        save_global_config(config)
        info(f"Default profile set to '{name}'")


@profile_app.command("list")
def profile_list() -> None:
    """List configured profiles; the default one is marked with ``*``."""
    from presscache.config import list_profiles, load_global_config, load_profile

    names = list_profiles()
    if not names:
        info("No profiles configured. Create one with 'presscache profile add'.")
        return

    default = load_global_config().default_profile
    rows = []
    for name in names:
        profile = load_profile(name)
        marker = "*" if name == default else ""
        rows.append([marker, name, profile.domain, profile.user, profile.cache_path])
    print_table(["", "Name", "Domain", "User", "Cache path"], rows, title="Profiles")


@profile_app.command("show")
def profile_show(
    ctx: typer.Context,
    name: Optional[str] = typer.Argument(None, help="Profile name (defaults to the active one)."),
) -> None:
    """Show a profile as JSON."""
    from presscache.config import load_profile, resolve_config

    if name is not None:
        profile = load_profile(name)
    else:
        cli_profile = ctx.obj.get("profile") if ctx.obj else None
        _, profile = resolve_config(cli_profile=cli_profile)
        if profile is None:
            error("No active profile.")
            raise typer.Exit(code=EXIT_INVALID_USAGE)

    get_output().debug(f"Showing profile '{profile.name}'")
    format_response(profile.model_dump(mode="json", exclude_none=True))


@profile_app.command("remove")
def profile_remove(
    name: str = typer.Argument(help="Profile to remove."),
) -> None:
    """Delete a profile. The replica file is left in place."""
    from presscache.config import delete_profile, load_global_config, save_global_config

    delete_profile(name)
    config = load_global_config()
    if config.default_profile == name:
        config.default_profile = None
        save_global_config(config)
    success(f"Removed profile '{name}'")
