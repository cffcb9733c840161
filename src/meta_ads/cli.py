"""Meta Ads CLI - Main entry point."""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable

import httpx
import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .formatting import (
    account_status_markup,
    budget,
    format_date,
    format_datetime,
    format_decimal,
    format_money,
    format_number,
    status_markup,
    truncate,
)

app = typer.Typer(
    name="meta-ads",
    help="Meta Ads CLI - read-only access to the Meta (Facebook) Ads API",
    no_args_is_help=True,
)
console = Console()

# Sub-command groups
profiles_app = typer.Typer(help="Profile management commands", no_args_is_help=True)

app.add_typer(profiles_app, name="profiles")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Meta Ads CLI."""
    from .config import get_settings

    level = logging.DEBUG if verbose else get_settings().log_level.upper()
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _open_store():
    from .config import get_settings
    from .oauth import CredentialStore

    return CredentialStore.open(get_settings().store_dir)


def _fail(error: Exception, details: str | None = None) -> None:
    """Report an error and exit non-zero."""
    console.print(f"\n[red]✖ Error: {escape(str(error))}[/red]\n")
    if details:
        console.print(f"[dim]Details: {escape(details)}[/dim]")
    raise typer.Exit(1)


def _output_json(result: Any) -> None:
    console.print_json(json.dumps(result, default=str))


# ============================================================================
# Auth Commands
# ============================================================================


@app.command("setup")
def setup(
    name: str = typer.Option(None, "--name", "-n", help="Profile name"),
    client_id: str = typer.Option(None, "--client-id", "-c", help="Meta App ID"),
    client_secret: str = typer.Option(None, "--client-secret", "-s", help="Meta App Secret"),
    account_id: str = typer.Option(
        None, "--account-id", "-a", help="Default ad account ID (act_XXXXXXXXX)"
    ),
):
    """Configure a new profile with Meta Ads API credentials.

    If not provided via options, you'll be prompted for them.
    """
    from .oauth import Profile

    if not client_id:
        console.print(
            Panel(
                "[bold]Meta Ads CLI Setup[/bold]\n\n"
                "You'll need a Meta app with the Marketing API product.\n"
                "Go to: https://developers.facebook.com/apps/\n\n"
                "1. Add http://localhost:3000/oauth/callback as a valid OAuth redirect URI\n"
                "2. Copy the App ID and App Secret from Settings → Basic",
                title="Setup",
            )
        )

    name = name or typer.prompt("Profile name", default="default")
    client_id = client_id or typer.prompt("Meta App ID")
    client_secret = client_secret or typer.prompt("Meta App Secret", hide_input=True)
    if account_id is None:
        account_id = typer.prompt(
            "Ad Account ID (optional, format: act_XXXXXXXXX)",
            default="",
            show_default=False,
        )

    profile = Profile(
        name=name.strip(),
        client_id=client_id.strip(),
        client_secret=client_secret.strip(),
        default_account_id=account_id.strip() or None,
    )

    with _open_store() as store:
        store.save(profile)

    console.print(
        Panel(
            f'[green]Profile "{escape(profile.name)}" saved![/green]\n\n'
            f"App ID: {escape(profile.client_id)}\n"
            f"Ad Account ID: {escape(profile.default_account_id or 'Not set')}\n\n"
            f"[dim]Next step: meta-ads auth -p {escape(profile.name)}[/dim]",
            title="Setup Complete",
        )
    )


def _show_auth_url(url: str) -> None:
    console.print("\n[cyan]Opening browser for Meta authentication...[/cyan]")
    console.print(f"[dim]If browser doesn't open automatically, visit:[/dim]\n{escape(url)}\n")


def _browser_failed() -> None:
    console.print("[yellow]Could not open browser automatically. Please visit the URL above.[/yellow]")


@app.command("auth")
def auth(
    profile: str = typer.Option(None, "--profile", "-p", help="Profile to authenticate"),
    timeout: int = typer.Option(None, "--timeout", "-t", help="Max seconds to wait for authorization"),
    no_browser: bool = typer.Option(False, "--no-browser", help="Only print the authorization URL"),
):
    """Authenticate with Meta and obtain a long-lived access token.

    Opens a browser window where you'll authorize the app. After
    authorization, the token is stored in the profile.
    """
    from .config import get_settings
    from .oauth import ExchangeFailedError, OAuthError
    from .oauth.session import authenticate_profile, resolve_profile

    settings = get_settings()

    with _open_store() as store:
        try:
            target = resolve_profile(store, profile)
        except OAuthError as e:
            _fail(e)

        console.print(f"\n[bold cyan]Authenticating profile: {escape(target.name)}[/bold cyan]")

        try:
            with console.status("Waiting for authorization...") as status:
                result = asyncio.run(
                    authenticate_profile(
                        store,
                        target.name,
                        timeout=timeout or settings.auth_timeout_seconds,
                        open_browser=settings.open_browser and not no_browser,
                        http_timeout=settings.http_timeout_seconds,
                        on_url=_show_auth_url,
                        on_browser_failed=_browser_failed,
                        on_progress=status.update,
                    )
                )
        except ExchangeFailedError as e:
            console.print("[red]Authentication failed[/red]")
            _fail(e, details=f"HTTP {e.status_code}" if e.status_code else None)
        except OAuthError as e:
            console.print("[red]Authentication failed[/red]")
            _fail(e)
        except httpx.HTTPError as e:
            console.print("[red]Authentication failed[/red]")
            _fail(e)

    days = result.days_until_expiry()
    console.print("[green]✓ Authentication successful![/green]")
    if days is not None:
        console.print(f"[dim]Token expires in ~{days} days[/dim]")
    console.print("\n[cyan]You can now use Meta Ads CLI commands![/cyan]\n")


@app.command("logout")
def logout(
    profile: str = typer.Option(None, "--profile", "-p", help="Profile to log out from"),
):
    """Clear the stored access token of a profile."""
    from .oauth import OAuthError
    from .oauth.session import logout_profile

    with _open_store() as store:
        try:
            result = logout_profile(store, profile)
        except OAuthError as e:
            _fail(e)

    console.print(f'\n[green]✓ Logged out from profile "{escape(result.name)}"[/green]\n')


@app.command("config")
def show_config(
    profile: str = typer.Option(None, "--profile", "-p", help="Profile to display"),
):
    """Display the configuration of a profile."""
    with _open_store() as store:
        target = store.get(profile)

    if not target:
        console.print("\n[yellow]No profile found. Run 'meta-ads setup' first.[/yellow]\n")
        return

    table = Table(title=f"Configuration: {escape(target.name)}", show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("App ID", escape(target.client_id))
    table.add_row("App Secret", "*" * len(target.client_secret))
    table.add_row("Ad Account ID", escape(target.default_account_id or "Not set"))
    table.add_row(
        "Access Token",
        "[green]✓ Set[/green]" if target.is_authenticated else "[red]✗ Not set[/red]",
    )

    days = target.days_until_expiry()
    if days is not None:
        table.add_row("Token Expires", f"in {days} days" if days > 0 else "[red]Expired[/red]")

    console.print(table)


# ============================================================================
# Profile Commands
# ============================================================================


@profiles_app.command("list")
def profiles_list():
    """List all profiles."""
    with _open_store() as store:
        profiles = store.list()
        active = store.active_name

    if not profiles:
        console.print("\n[yellow]No profiles found. Run 'meta-ads setup' first.[/yellow]\n")
        return

    table = Table(title="Profiles")
    table.add_column("Name", style="cyan")
    table.add_column("App ID")
    table.add_column("Token")
    table.add_column("Active", style="green")

    for p in profiles:
        if not p.is_authenticated:
            token = "[dim]Not set[/dim]"
        elif p.is_expired():
            token = "[red]Expired[/red]"
        else:
            token = f"[green]{p.days_until_expiry()} days left[/green]"
        table.add_row(escape(p.name), escape(p.client_id), token, "✓" if p.name == active else "")

    console.print(table)


@profiles_app.command("switch")
def profiles_switch(
    name: str = typer.Argument(None, help="Profile to activate"),
):
    """Switch the active profile."""
    from .oauth import OAuthError

    with _open_store() as store:
        profiles = store.list()
        if not profiles:
            console.print("\n[yellow]No profiles found. Run 'meta-ads setup' first.[/yellow]\n")
            return

        if not name:
            for i, p in enumerate(profiles, 1):
                console.print(f"  {i}. {escape(p.name)}")
            choice = typer.prompt("Select profile to activate", type=int, default=1)
            if not 1 <= choice <= len(profiles):
                _fail(ValueError(f"Invalid choice: {choice}"))
            name = profiles[choice - 1].name

        try:
            store.set_active(name)
        except OAuthError as e:
            _fail(e)

    console.print(f'\n[green]✓ Switched to profile "{escape(name)}"[/green]\n')


@profiles_app.command("delete")
def profiles_delete(
    name: str = typer.Argument(..., help="Profile to delete"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
):
    """Delete a profile and its stored credentials."""
    from .oauth import OAuthError

    if not force:
        if not typer.confirm(f'Delete profile "{name}"?'):
            console.print("[yellow]Cancelled[/yellow]")
            raise typer.Exit(0)

    with _open_store() as store:
        try:
            store.delete(name)
        except OAuthError as e:
            _fail(e)
        active = store.active_name

    console.print(f'[green]Profile "{escape(name)}" deleted[/green]')
    if active:
        console.print(f"[dim]Active profile: {escape(active)}[/dim]")


# ============================================================================
# Query Commands
# ============================================================================


def _run_query(
    profile: str | None,
    message: str,
    query: Callable[[Any], Awaitable[Any]],
) -> Any:
    """Run ``query`` against the Graph API for a profile, reporting failures."""
    from .api import MetaAdsClient, MetaAPIError
    from .config import get_settings

    with _open_store() as store:
        target = store.get(profile)

    if not target:
        _fail(ValueError("No profile found. Run 'meta-ads setup' first."))

    async def _run():
        async with MetaAdsClient.from_profile(
            target, timeout=get_settings().http_timeout_seconds
        ) as api:
            return await query(api)

    try:
        with console.status(message):
            return asyncio.run(_run())
    except MetaAPIError as e:
        _fail(e)
    except httpx.HTTPError as e:
        _fail(e)


@app.command("accounts")
def accounts(
    profile: str = typer.Option(None, "--profile", "-p", help="Profile to use"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List accessible ad accounts."""
    result = _run_query(profile, "Fetching ad accounts...", lambda api: api.get_ad_accounts(100))

    if json_output:
        _output_json(result)
        return

    if not result:
        console.print("\n[yellow]No ad accounts found.[/yellow]\n")
        return

    table = Table(title="Ad Accounts")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("Currency")
    table.add_column("Balance", justify="right")

    for account in result:
        table.add_row(
            account.get("id", ""),
            escape(account.get("name", "")),
            account_status_markup(account.get("account_status")),
            account.get("currency", "-"),
            format_money(account.get("balance")),
        )

    console.print(table)
    console.print(f"[dim]Total: {len(result)} ad account(s)[/dim]")


@app.command("account")
def account(
    account_id: str = typer.Argument(..., help="Ad account ID (act_XXXXXXXXX)"),
    profile: str = typer.Option(None, "--profile", "-p", help="Profile to use"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Get details of a specific ad account."""
    result = _run_query(
        profile, f"Fetching account {account_id}...", lambda api: api.get_ad_account(account_id)
    )

    if json_output:
        _output_json(result)
        return

    console.print(
        Panel(
            f"ID:           {result.get('id')}\n"
            f"Status:       {account_status_markup(result.get('account_status'))}\n"
            f"Currency:     {result.get('currency', '-')}\n"
            f"Timezone:     {result.get('timezone_name', '-')}\n"
            f"Balance:      {format_money(result.get('balance'))}\n"
            f"Amount Spent: {format_money(result.get('amount_spent'))}\n"
            f"Spend Cap:    {format_money(result.get('spend_cap'), empty='Unlimited')}",
            title=f"Account: {escape(result.get('name', account_id))}",
        )
    )


@app.command("campaigns")
def campaigns(
    account_id: str = typer.Option(None, "--account-id", "-a", help="Ad account ID"),
    limit: int = typer.Option(50, "--limit", "-l", help="Maximum campaigns to return"),
    profile: str = typer.Option(None, "--profile", "-p", help="Profile to use"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List campaigns for an ad account."""
    if not account_id:
        with _open_store() as store:
            target = store.get(profile)
        account_id = target.default_account_id if target else None

    if not account_id:
        _fail(ValueError("Ad Account ID required. Provide --account-id or set it in your profile."))

    result = _run_query(
        profile, "Fetching campaigns...", lambda api: api.get_campaigns(account_id, limit)
    )

    if json_output:
        _output_json(result)
        return

    if not result:
        console.print("\n[yellow]No campaigns found.[/yellow]\n")
        return

    table = Table(title=f"Campaigns ({escape(account_id)})")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("Objective")
    table.add_column("Budget", justify="right")
    table.add_column("Start")

    for campaign in result:
        table.add_row(
            campaign.get("id", ""),
            escape(truncate(campaign.get("name"), 30)),
            status_markup(campaign.get("status")),
            campaign.get("objective") or "-",
            budget(campaign),
            format_date(campaign.get("start_time")),
        )

    console.print(table)
    console.print(f"[dim]Total: {len(result)} campaign(s)[/dim]")


@app.command("campaign")
def campaign(
    campaign_id: str = typer.Argument(..., help="Campaign ID"),
    insights: bool = typer.Option(False, "--insights", help="Include last 30 days of insights"),
    profile: str = typer.Option(None, "--profile", "-p", help="Profile to use"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Get details of a specific campaign."""

    async def _fetch(api):
        data = await api.get_campaign(campaign_id)
        if insights:
            data["insights"] = await api.get_campaign_insights(campaign_id)
        return data

    result = _run_query(profile, f"Fetching campaign {campaign_id}...", _fetch)

    if json_output:
        _output_json(result)
        return

    lines = [
        f"ID:              {result.get('id')}",
        f"Status:          {status_markup(result.get('status'))}",
        f"Objective:       {result.get('objective') or '-'}",
        f"Daily Budget:    {format_money(result.get('daily_budget'))}",
        f"Lifetime Budget: {format_money(result.get('lifetime_budget'))}",
        f"Start Time:      {format_datetime(result.get('start_time'))}",
        f"Stop Time:       {format_datetime(result.get('stop_time'), empty='Ongoing')}",
    ]

    stats = result.get("insights")
    if insights and stats is not None:
        lines += [
            "",
            "[bold cyan]Insights (Last 30 days)[/bold cyan]",
            f"Impressions:     {format_number(stats.get('impressions'))}",
            f"Clicks:          {format_number(stats.get('clicks'))}",
            f"Spend:           {format_decimal(stats.get('spend'), prefix='$')}",
            f"CTR:             {format_decimal(stats.get('ctr'), suffix='%')}",
            f"CPC:             {format_decimal(stats.get('cpc'), prefix='$')}",
            f"CPM:             {format_decimal(stats.get('cpm'), prefix='$')}",
        ]

    console.print(
        Panel("\n".join(lines), title=f"Campaign: {escape(result.get('name', campaign_id))}")
    )


@app.command("adsets")
def adsets(
    campaign_id: str = typer.Argument(..., help="Campaign ID"),
    limit: int = typer.Option(50, "--limit", "-l", help="Maximum ad sets to return"),
    profile: str = typer.Option(None, "--profile", "-p", help="Profile to use"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List ad sets for a campaign."""
    result = _run_query(
        profile, "Fetching ad sets...", lambda api: api.get_ad_sets(campaign_id, limit)
    )

    if json_output:
        _output_json(result)
        return

    if not result:
        console.print("\n[yellow]No ad sets found.[/yellow]\n")
        return

    table = Table(title=f"Ad Sets ({escape(campaign_id)})")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("Optimization Goal")
    table.add_column("Daily Budget", justify="right")

    for ad_set in result:
        table.add_row(
            ad_set.get("id", ""),
            escape(truncate(ad_set.get("name"), 35)),
            status_markup(ad_set.get("status")),
            ad_set.get("optimization_goal") or "-",
            format_money(ad_set.get("daily_budget")),
        )

    console.print(table)
    console.print(f"[dim]Total: {len(result)} ad set(s)[/dim]")


# ============================================================================
# Main
# ============================================================================


@app.command()
def version():
    """Show version information."""
    from . import __version__

    console.print(f"Meta Ads CLI v{__version__}")


if __name__ == "__main__":
    app()
