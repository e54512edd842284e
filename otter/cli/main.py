"""
CLI interface for Otter using Typer.

Command-line reporting over the Google Sheets registrant data of one
enterprise, with Rich tables, structured error display and exit codes.
"""

import asyncio
import signal
import sys
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table
from rich.traceback import install as install_rich_traceback

from ..config import EnterpriseConfig, Settings, get_settings, resolve_enterprise
from ..core import refresh
from ..core.dates import today_mmddyy
from ..core.filters import ENROLLMENT_MODES, REPORT_MODES
from ..storage import EnterpriseCache
from ..utils.exceptions import (
    ConfigurationError,
    ErrorCategory,
    ErrorSeverity,
    OtterError,
    ValidationError,
    create_user_friendly_error,
)
from ..utils.logging import (
    generate_correlation_id,
    get_logger,
    operation_logger,
    setup_logging,
)

install_rich_traceback(show_locals=False)

app = typer.Typer(
    name="otter",
    help="[bold blue]Otter[/bold blue] - Registration, enrollment and certificate reports",
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)

console = Console()

_logger = get_logger(__name__)


class ExitCodes:
    SUCCESS = 0
    GENERAL_ERROR = 1
    CONFIGURATION_ERROR = 2
    NETWORK_ERROR = 3
    API_ERROR = 4
    VALIDATION_ERROR = 5
    AUTHENTICATION_ERROR = 6
    SERVICE_UNAVAILABLE = 8
    DATA_ERROR = 10
    CACHE_ERROR = 11
    USER_INTERRUPTED = 130  # Standard SIGINT exit code


def get_exit_code_for_error(error: BaseException) -> int:
    """Determine appropriate exit code based on error type."""
    if isinstance(error, OtterError):
        category_to_exit_code = {
            ErrorCategory.CONFIGURATION_ERROR: ExitCodes.CONFIGURATION_ERROR,
            ErrorCategory.NETWORK_ERROR: ExitCodes.NETWORK_ERROR,
            ErrorCategory.API_ERROR: ExitCodes.API_ERROR,
            ErrorCategory.USER_ERROR: ExitCodes.VALIDATION_ERROR,
            ErrorCategory.SECURITY_ERROR: ExitCodes.AUTHENTICATION_ERROR,
            ErrorCategory.EXTERNAL_SERVICE_ERROR: ExitCodes.SERVICE_UNAVAILABLE,
            ErrorCategory.DATA_ERROR: ExitCodes.DATA_ERROR,
            ErrorCategory.CACHE_ERROR: ExitCodes.CACHE_ERROR,
        }
        return category_to_exit_code.get(error.category, ExitCodes.GENERAL_ERROR)

    if isinstance(error, KeyboardInterrupt):
        return ExitCodes.USER_INTERRUPTED

    return ExitCodes.GENERAL_ERROR


def setup_signal_handlers():
    """Exit with the SIGINT code on Ctrl+C or SIGTERM."""

    def signal_handler(signum, frame):
        signal_name = signal.Signals(signum).name
        _logger.info(f"Received {signal_name}, shutting down")
        console.print(f"\n[yellow]⚠️  Received {signal_name}, shutting down...[/yellow]")
        sys.exit(ExitCodes.USER_INTERRUPTED)

    signal.signal(signal.SIGINT, signal_handler)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, signal_handler)


def get_configured_settings(config_path: Path | None = None) -> Settings:
    """Load settings, optionally from a specific ``.env`` file."""
    try:
        if config_path is not None:
            settings = Settings(_env_file=str(config_path))
            _logger.info(f"Loaded configuration from {config_path}")
        else:
            settings = get_settings()
    except Exception as e:
        raise ConfigurationError(
            f"Failed to load configuration: {e!s}",
            config_key="configuration_file" if config_path else "default_settings",
            actual_value=str(config_path) if config_path else "default",
        ) from e

    return settings


def display_enhanced_error(
    message: str,
    exception: BaseException | None = None,
    show_hints: bool = True,
    show_correlation_id: bool = False,
) -> None:
    """Display an error with category, hints and retryability."""
    console.print(f"[red]✗ Error:[/red] {message}")

    if isinstance(exception, OtterError):
        console.print(f"[dim red]Details: {exception.user_message}[/dim red]")
        console.print(
            f"[dim]Category: {exception.category.value.replace('_', ' ').title()}[/dim]"
        )
        if exception.severity in [ErrorSeverity.HIGH, ErrorSeverity.CRITICAL]:
            console.print(
                f"[dim red]Severity: {exception.severity.value.upper()}[/dim red]"
            )

        if show_correlation_id and exception.correlation_id:
            console.print(f"[dim]Correlation ID: {exception.correlation_id}[/dim]")

        if show_hints and exception.troubleshooting_hints:
            console.print("\n[bold yellow]💡 Troubleshooting Tips:[/bold yellow]")
            for i, hint in enumerate(exception.troubleshooting_hints, 1):
                console.print(f"  {i}. {hint}")

        if exception.retryable:
            console.print("[dim green]i  This error is retryable[/dim green]")

    elif exception:
        console.print(f"[dim red]Details: {exception}[/dim red]")

        if show_hints:
            console.print("\n[bold yellow]💡 General Troubleshooting:[/bold yellow]")
            console.print("  1. Run again with --verbose for more details")
            console.print("  2. Verify your configuration with 'otter config-validate'")

    _logger.error(f"CLI Error: {message}", error=exception)


def display_success(message: str, details: dict[str, Any] | None = None) -> None:
    console.print(f"[green]✓[/green] {message}")

    if details:
        _logger.info("Operation completed successfully", **details)


def display_warning(message: str) -> None:
    console.print(f"[yellow]⚠[/yellow] {message}")


def handle_cli_exception(
    operation: str,
    exception: BaseException,
    verbose: bool = False,
    correlation_id: str | None = None,
    as_json: bool = False,
) -> int:
    """Centralized CLI exception handling with proper exit codes."""
    exit_code = get_exit_code_for_error(exception)

    if as_json and isinstance(exception, Exception):
        envelope = create_user_friendly_error(exception, {"operation": operation})
        envelope["exit_code"] = exit_code
        console.print_json(data=envelope, default=str)
        _logger.info("Reported failure as JSON", operation=operation, exit_code=exit_code)
    elif isinstance(exception, KeyboardInterrupt):
        display_warning("Operation cancelled by user")
        _logger.info("User interrupted operation", operation=operation)
    else:
        display_enhanced_error(
            f"{operation} failed",
            exception,
            show_hints=True,
            show_correlation_id=verbose and bool(correlation_id),
        )

    return exit_code


def _load_enterprise(ctx: typer.Context) -> EnterpriseConfig:
    return resolve_enterprise(ctx.obj["settings"], ctx.obj["enterprise"])


def _run(
    ctx: typer.Context, operation: str, func, *args, as_json: bool = False, **kwargs
) -> Any:
    """
    Resolve the enterprise, run ``func`` and map failures to exit codes.

    With ``as_json`` a failure is printed as the JSON error envelope instead
    of the Rich error panel, so scripted callers always get JSON on stdout.
    """
    verbose = ctx.obj["verbose"]
    correlation_id = ctx.obj["correlation_id"]

    try:
        enterprise = _load_enterprise(ctx)
        result = func(enterprise, *args, **kwargs)
        if asyncio.iscoroutine(result):
            with console.status(f"[bold blue]{operation}..."):
                result = asyncio.run(result)
        return enterprise, result
    except (OtterError, KeyboardInterrupt) as e:
        exit_code = handle_cli_exception(operation, e, verbose, correlation_id, as_json)
    except Exception as e:
        _logger.critical(f"Unexpected failure in {operation}", error=e)
        exit_code = handle_cli_exception(operation, e, verbose, correlation_id, as_json)

    raise typer.Exit(exit_code)


def _count_style(value: int) -> str:
    return f"[green]{value}[/green]" if value else f"[dim]{value}[/dim]"


def display_report(result: dict[str, Any], show_groups: bool = True) -> None:
    """Render the systemwide, organizations and groups tables."""
    report_range = result["range"]
    systemwide = result["systemwide"]

    summary = Table(
        title=f"[bold magenta]{result['enterprise']['display_name']} Systemwide Data[/bold magenta]",
        caption=(
            f"{report_range['start_date']} to {report_range['end_date']}"
            f" · {report_range['mode']} mode · enrollments by {systemwide['enrollment_mode']}"
        ),
        show_header=True,
        header_style="bold magenta",
        border_style="blue",
    )
    summary.add_column("Registrations", justify="right", style="green")
    summary.add_column("Enrollments", justify="right", style="green")
    summary.add_column("Certificates", justify="right", style="green")
    summary.add_column("Submissions", justify="right", style="cyan")
    summary.add_row(
        str(systemwide["registrations_count"]),
        str(systemwide["enrollments_count"]),
        str(systemwide["certificates_count"]),
        str(result["submissions"]["in_range"]),
    )
    console.print(summary)

    organizations = Table(
        title="[bold magenta]Organizations[/bold magenta]",
        show_header=True,
        header_style="bold magenta",
        border_style="blue",
    )
    organizations.add_column("Organization", style="cyan", min_width=20)
    organizations.add_column("Registrations", justify="right")
    organizations.add_column("Enrollments", justify="right")
    organizations.add_column("Certificates", justify="right")

    for row in result["organizations"]:
        organizations.add_row(
            row["organization_display"],
            _count_style(row["registrations"]),
            _count_style(row["enrollments"]),
            _count_style(row["certificates"]),
        )
    console.print(organizations)

    if show_groups and result["groups"]:
        groups = Table(
            title="[bold magenta]Groups[/bold magenta]",
            show_header=True,
            header_style="bold magenta",
            border_style="blue",
        )
        groups.add_column("Group", style="cyan", min_width=20)
        groups.add_column("Registrations", justify="right")
        groups.add_column("Enrollments", justify="right")
        groups.add_column("Certificates", justify="right")
        for row in result["groups"]:
            groups.add_row(
                row["group"],
                _count_style(row["registrations"]),
                _count_style(row["enrollments"]),
                _count_style(row["certificates"]),
            )
        console.print(groups)


def _people_table(title: str, rows: list[dict[str, str]], extra: list[tuple[str, str]]) -> Table:
    table = Table(title=f"[bold magenta]{title}[/bold magenta]", border_style="blue")
    for header, _ in extra:
        table.add_column(header, style="cyan")
    table.add_column("Cohort")
    table.add_column("Year")
    table.add_column("First")
    table.add_column("Last")
    table.add_column("Email", style="dim")
    for row in rows:
        table.add_row(
            *(row[key] for _, key in extra),
            row["cohort"],
            row["year"],
            row["first"],
            row["last"],
            row["email"],
        )
    return table


def display_dashboard(data: dict[str, Any]) -> None:
    summary = Table(
        title=f"[bold magenta]{data['organization_display']} Enrollment Summary[/bold magenta]",
        border_style="blue",
    )
    summary.add_column("Cohort")
    summary.add_column("Year")
    summary.add_column("Enrollments", justify="right")
    summary.add_column("Completed", justify="right")
    summary.add_column("Certificates", justify="right")
    for row in data["enrollment_summary"]:
        summary.add_row(
            row["cohort"],
            row["year"],
            str(row["enrollments"]),
            str(row["completed"]),
            str(row["certificates"]),
        )
    console.print(summary)

    console.print(
        _people_table(
            "Enrolled Participants",
            data["enrolled_participants"],
            [("Days Left", "daystoclose")],
        )
    )
    console.print(
        _people_table(
            "Invited Participants", data["invited_participants"], [("Invited", "invited")]
        )
    )
    console.print(_people_table("Certificates Earned", data["certificates_earned"], []))


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose logging and detailed output"
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Only show errors and critical messages"
    ),
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Settings file path (.env format)",
        exists=True,
        file_okay=True,
        dir_okay=False,
    ),
    enterprise: str | None = typer.Option(
        None, "--enterprise", "-e", help="Enterprise code (overrides OTTER_ENTERPRISE)"
    ),
    correlation_id: str | None = typer.Option(
        None, "--correlation-id", help="Set correlation ID for request tracking"
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Fetch data but never write the cache"
    ),
):
    """
    [bold blue]Otter[/bold blue] - Registration, enrollment and certificate reports

    Reads an enterprise's registrants and submissions sheets from Google
    Sheets, caches them locally and summarizes them by date range.

    [bold]Examples:[/bold]
        otter -e csu report 08-01-24 07-31-25
        otter -e ccc dashboard "Bakersfield College"
        otter -e csu refresh
        otter -e csu config-validate
    """
    setup_signal_handlers()

    correlation_id = correlation_id or generate_correlation_id()

    try:
        settings = get_configured_settings(config)
    except ConfigurationError as e:
        display_enhanced_error("Configuration error", e, show_hints=True)
        raise typer.Exit(get_exit_code_for_error(e)) from e

    if dry_run:
        settings = settings.model_copy(update={"dry_run": True})

    setup_logging(
        verbose=verbose,
        quiet=quiet,
        json_logs=settings.log_format == "json",
        log_level=settings.log_level,
        log_file=str(settings.log_file) if settings.log_file else None,
    )
    _logger.with_correlation_id(correlation_id)

    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings
    ctx.obj["enterprise"] = enterprise
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["correlation_id"] = correlation_id


@app.command("report")
def report_command(
    ctx: typer.Context,
    start_date: str = typer.Argument(
        None, help="Range start, MM-DD-YY (defaults to the enterprise start date)"
    ),
    end_date: str = typer.Argument(None, help="Range end, MM-DD-YY (defaults to today)"),
    mode: str = typer.Option(
        "date", "--mode", "-m", help=f"Report mode: {' or '.join(REPORT_MODES)}"
    ),
    enrollment_mode: str = typer.Option(
        "tou_completion",
        "--enrollment-mode",
        help=f"Enrollment dating: {' or '.join(ENROLLMENT_MODES)}",
    ),
    force_refresh: bool = typer.Option(
        False, "--refresh", "-r", help="Ignore the cache and fetch fresh data"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON"),
):
    """
    Summarize registrations, enrollments and certificates for a date range.

    [bold]Examples:[/bold]
        otter -e csu report 08-01-24 07-31-25
        otter -e csu report
        otter -e csu report 01-01-25 --enrollment-mode registration_date --json
    """
    settings = ctx.obj["settings"]

    def build(enterprise: EnterpriseConfig):
        start = start_date or enterprise.settings.start_date
        if not start:
            raise ValidationError(
                "No start date given and the enterprise has no start_date",
                field_name="start_date",
                troubleshooting_hints=[
                    "Pass START as MM-DD-YY, e.g. 08-01-24",
                    "Or set settings.start_date in the enterprise .config file",
                ],
            )
        end = end_date or today_mmddyy(enterprise.settings.timezone)
        return refresh.build_report(
            start,
            end,
            enterprise,
            settings,
            mode=mode,
            enrollment_mode=enrollment_mode,
            force_refresh=force_refresh,
            correlation_id=ctx.obj["correlation_id"],
        )

    _, result = _run(ctx, "Report", build, as_json=as_json)

    if as_json:
        console.print_json(data=result)
    else:
        display_report(result)


@app.command("dashboard")
def dashboard_command(
    ctx: typer.Context,
    organization: str = typer.Argument(..., help="Organization name, exactly as in the sheet"),
    force_refresh: bool = typer.Option(
        False, "--refresh", "-r", help="Ignore the cache and fetch fresh data"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the dashboard as JSON"),
):
    """
    Show the undated dashboard tables of one organization.

    [bold]Examples:[/bold]
        otter -e ccc dashboard "Bakersfield College"
    """
    _, data = _run(
        ctx,
        "Dashboard",
        lambda enterprise: refresh.build_dashboard(
            organization, enterprise, ctx.obj["settings"], force_refresh
        ),
        as_json=as_json,
    )

    if as_json:
        console.print_json(data=data)
    else:
        display_dashboard(data)


@app.command("organizations")
def organizations_command(
    ctx: typer.Context,
    force_refresh: bool = typer.Option(
        False, "--refresh", "-r", help="Ignore the cache and fetch fresh data"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the list as JSON"),
):
    """List every organization with its counts since the enterprise start date."""
    _, rows = _run(
        ctx,
        "Organizations",
        lambda enterprise: refresh.build_organizations_overview(
            enterprise, ctx.obj["settings"], force_refresh
        ),
        as_json=as_json,
    )

    if as_json:
        console.print_json(data=rows)
        return

    table = Table(
        title="[bold magenta]All Organizations[/bold magenta]",
        show_header=True,
        header_style="bold magenta",
        border_style="blue",
    )
    table.add_column("Organization", style="cyan", min_width=20)
    table.add_column("Registrations", justify="right")
    table.add_column("Enrollments", justify="right")
    table.add_column("Certificates", justify="right")
    for row in rows:
        table.add_row(
            row["organization"],
            _count_style(row["registrations"]),
            _count_style(row["enrollments"]),
            _count_style(row["certificates"]),
        )
    console.print(table)


@app.command("refresh")
def refresh_command(ctx: typer.Context):
    """
    Fetch both sheets from Google Sheets and rewrite the cache.

    [bold]Examples:[/bold]
        otter -e csu refresh
        otter -e csu --dry-run refresh
    """
    enterprise, result = _run(
        ctx,
        "Refresh",
        lambda enterprise: refresh.refresh_data(
            enterprise, ctx.obj["settings"], correlation_id=ctx.obj["correlation_id"]
        ),
    )

    rows = result["rows"]
    if result["dry_run"]:
        display_warning("Dry run: cache was not written")
    display_success(
        f"Refreshed {enterprise.display_name}: "
        f"{rows['registrants']} registrants, {rows['submissions']} submissions",
        details=result,
    )


@app.command("cache-status")
def cache_status_command(ctx: typer.Context):
    """Show timestamps, row counts and freshness of the cache files."""
    _, status = _run(
        ctx,
        "Cache status",
        lambda enterprise: refresh.cache_status(enterprise, ctx.obj["settings"]),
    )

    table = Table(
        title=f"[bold magenta]Cache: {status['directory']}[/bold magenta]",
        caption=f"TTL {status['ttl']}s · {status['timezone']}",
        show_header=True,
        border_style="blue",
    )
    table.add_column("Sheet", style="cyan")
    table.add_column("File")
    table.add_column("Updated")
    table.add_column("Rows", justify="right")
    table.add_column("Status")

    for kind, info in status["files"].items():
        if not info["exists"]:
            state = "⚙️ Missing"
        elif info["fresh"]:
            state = "🟢 Fresh"
        else:
            state = "🟡 Stale"
        table.add_row(
            kind.title(),
            info["name"],
            info["global_timestamp"] or "-",
            str(info["rows"]),
            state,
        )

    console.print(table)


@app.command("clear-cache")
def clear_cache_command(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Delete every cache file of the enterprise."""

    def clear(enterprise: EnterpriseConfig) -> int:
        if not yes and not typer.confirm(
            f"Delete cached data for {enterprise.display_name}?"
        ):
            raise KeyboardInterrupt
        cache = EnterpriseCache(ctx.obj["settings"].cache_dir, enterprise.code)
        return cache.clear()

    _, removed = _run(ctx, "Clear cache", clear)
    display_success(f"Removed {removed} cache file(s)")


@app.command("config-validate")
def config_validate_command(ctx: typer.Context):
    """
    Validate settings and the enterprise configuration file.

    Shows current values (without exposing the API key) and hints for
    anything missing.

    [bold]Examples:[/bold]
        otter -e csu config-validate
    """
    settings: Settings = ctx.obj["settings"]
    correlation_id = ctx.obj["correlation_id"]

    with operation_logger("config_validate", correlation_id):
        try:
            enterprise = _load_enterprise(ctx)
        except OtterError as e:
            exit_code = handle_cli_exception(
                "Configuration validation", e, ctx.obj["verbose"], correlation_id
            )
            raise typer.Exit(exit_code) from e

        api_key = enterprise.google_api_key(settings)
        sheets_ok = {
            kind: kind in enterprise.google_sheets for kind in refresh.SHEET_KINDS
        }

        config_items = [
            ("Enterprise", f"{enterprise.display_name} ({enterprise.code})", "✅", ""),
            ("Config Directory", str(settings.config_dir), "✅", ""),
            ("Cache Directory", str(settings.cache_dir), "✅", ""),
            (
                "Google API Key",
                "Configured" if api_key else "Not Set",
                "✅" if api_key else "❌",
                "Required for refreshing data",
            ),
            *(
                (
                    f"{kind.title()} Sheet",
                    enterprise.google_sheets[kind].sheet_name if ok else "Not Set",
                    "✅" if ok else "❌",
                    "Required",
                )
                for kind, ok in sheets_ok.items()
            ),
            (
                "Organizations",
                str(len(enterprise.organizations)),
                "✅" if enterprise.organizations else "⚠️",
                "Listed even with zero counts",
            ),
            (
                "Groups",
                str(len(enterprise.active_groups())) if enterprise.settings.has_groups else "Disabled",
                "✅",
                "",
            ),
            ("Cache TTL", f"{enterprise.cache_ttl(settings)}s", "✅", ""),
            ("Timezone", enterprise.settings.timezone, "✅", ""),
            ("HTTP Timeout", f"{settings.http_timeout}s", "✅", ""),
            ("HTTP Retries", str(settings.http_retries), "✅", ""),
            ("Dry Run Mode", "Yes" if settings.dry_run else "No", "✅", ""),
        ]

    table = Table(
        title="[bold magenta]Configuration Validation[/bold magenta]",
        show_header=True,
        border_style="blue",
    )
    table.add_column("Setting", style="cyan", min_width=20)
    table.add_column("Value", style="white", min_width=25)
    table.add_column("Status", style="green", min_width=8)
    table.add_column("Notes", style="dim", min_width=20)

    warnings_count = 0
    errors_count = 0

    for setting, value, status, notes in config_items:
        if status == "❌":
            value_display = f"[red]{value}[/red]"
            errors_count += 1
        elif status == "⚠️":
            value_display = f"[yellow]{value}[/yellow]"
            warnings_count += 1
        else:
            value_display = value

        table.add_row(setting, value_display, status, notes)

    console.print(table)

    console.print("\n[bold]Configuration Summary:[/bold]")
    if errors_count == 0 and warnings_count == 0:
        display_success("Configuration is complete and valid!")
    if errors_count > 0:
        console.print(f"[red]❌ {errors_count} required setting(s) missing[/red]")
    if warnings_count > 0:
        console.print(f"[yellow]⚠️ {warnings_count} optional setting(s) missing[/yellow]")

    _logger.audit(
        "configuration_validation",
        enterprise=enterprise.code,
        errors_count=errors_count,
        warnings_count=warnings_count,
    )

    if errors_count > 0:
        raise typer.Exit(ExitCodes.CONFIGURATION_ERROR)


if __name__ == "__main__":
    app()
