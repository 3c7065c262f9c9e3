"""Main CLI application for StargatePortal."""

import asyncio
import json
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from ..config import ConfigManager
from ..core.types import BusinessBrief, GenerationProgress, ServiceItem
from ..design import detect_industry, list_industries, score_industries
from ..observability import setup_logging
from ..pipeline import MerlinOrchestrator
from . import commands

# Initialize console for rich output
console = Console()

# Create main Typer app
app = typer.Typer(
    name="stargate",
    help="StargatePortal - AI website generation with quality feedback",
    add_completion=False,
)

# Global orchestrator instance
_orchestrator: Optional[MerlinOrchestrator] = None

STATUS_COLORS = {
    "completed": "green",
    "generated": "green",
    "failed": "red",
    "running": "yellow",
    "generating": "yellow",
    "pending": "blue",
    "draft": "blue",
    "cancelled": "magenta",
}


def get_orchestrator(config_file: Optional[str] = None) -> MerlinOrchestrator:
    """Get or create the global orchestrator instance."""
    global _orchestrator
    if _orchestrator is None:
        config = ConfigManager()
        if config_file:
            config.load_from_file(config_file)
        _orchestrator = MerlinOrchestrator(config)
    return _orchestrator


def _colored(status: str) -> str:
    color = STATUS_COLORS.get(status, "white")
    return f"[{color}]{status}[/{color}]"


def _fail(message: str, json_output: bool = False) -> None:
    if json_output:
        console.print_json(data={"error": message})
    else:
        console.print(f"[red]Error: {message}[/red]")
    raise typer.Exit(1)


def _parse_service(value: str) -> ServiceItem:
    name, _, description = value.partition(":")
    return ServiceItem(name=name.strip(), description=description.strip())


@app.callback()
def main_callback(
    ctx: typer.Context,
    config_file: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug mode",
    ),
):
    """StargatePortal CLI."""
    ctx.obj = {
        "config_file": config_file,
        "verbose": verbose,
        "debug": debug,
    }
    if verbose or debug:
        setup_logging(level="DEBUG" if debug else "INFO")


@app.command()
def status(
    ctx: typer.Context,
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output status in JSON format",
    ),
):
    """Show system status and health information."""
    async def _status():
        orchestrator = get_orchestrator(ctx.obj.get("config_file"))
        try:
            system_status = await orchestrator.get_system_status()

            if json_output:
                console.print_json(data=system_status, default=str)
                return

            status_table = Table(title="System Status")
            status_table.add_column("Component", style="cyan")
            status_table.add_column("Status", style="green")
            status_table.add_column("Details", style="yellow")

            components = system_status["components"]
            storage = components["storage"]
            status_table.add_row(
                "storage",
                "[green]✓ Available[/green]" if storage["available"] else "[red]✗ Unavailable[/red]",
                storage.get("type", "N/A"),
            )

            llm = components["llm_backend"]
            backends = ", ".join(
                name for name, info in llm.get("backends", {}).items() if info.get("is_available")
            )
            status_table.add_row(
                "llm_backend",
                "[green]✓ Available[/green]" if llm["available"] else "[yellow]! Template fallback[/yellow]",
                backends or llm.get("type", "N/A"),
            )

            images = components["images"]
            status_table.add_row(
                "images",
                "[green]✓ Available[/green]" if images["real_provider"] else "[yellow]! Placeholders only[/yellow]",
                ", ".join(images["providers"]),
            )

            pipeline = components["pipeline"]
            status_table.add_row(
                "pipeline",
                "[green]✓ Available[/green]",
                f"threshold {pipeline['quality_threshold']}, {pipeline['active_runs']} active runs",
            )
            console.print(status_table)

            run_stats = system_status.get("run_stats", {})
            if run_stats and "error" not in run_stats:
                stats_table = Table(title="Generation Runs")
                stats_table.add_column("Metric", style="cyan")
                stats_table.add_column("Value", style="magenta")
                for metric in ("total_runs", "recent_runs", "average_score", "total_projects"):
                    stats_table.add_row(metric.replace("_", " ").title(), str(run_stats.get(metric)))
                console.print(stats_table)

        except Exception as e:
            _fail(f"Error getting system status: {e}", json_output)
        finally:
            await orchestrator.shutdown()

    asyncio.run(_status())


@app.command()
def generate(
    ctx: typer.Context,
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Business name"),
    description: Optional[str] = typer.Option(None, "--description", "-d", help="Business description"),
    industry: Optional[str] = typer.Option(None, "--industry", "-i", help="Industry ID (detected when omitted)"),
    tagline: Optional[str] = typer.Option(None, "--tagline", help="Tagline for the hero section"),
    location: Optional[str] = typer.Option(None, "--location", help="Business location"),
    phone: Optional[str] = typer.Option(None, "--phone", help="Contact phone number"),
    email: Optional[str] = typer.Option(None, "--email", help="Contact email address"),
    services: List[str] = typer.Option([], "--service", "-s", help="Service as 'Name: description' (repeatable)"),
    brief_file: Optional[str] = typer.Option(None, "--brief", "-f", help="JSON file with the full business brief"),
    project_id: Optional[str] = typer.Option(None, "--project", "-p", help="Existing project ID"),
    no_images: bool = typer.Option(False, "--no-images", help="Use placeholders instead of generated images"),
    download_images: bool = typer.Option(False, "--download-images", help="Save images next to the site"),
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
):
    """Generate a website for a business."""
    brief_data = {}
    if brief_file:
        if not Path(brief_file).exists():
            _fail(f"Brief file not found: {brief_file}", json_output)
        with open(brief_file, "r", encoding="utf-8") as f:
            brief_data = json.load(f)

    overrides = {
        "business_name": name,
        "description": description,
        "industry_id": industry,
        "tagline": tagline,
        "location": location,
        "phone": phone,
        "email": email,
    }
    brief_data.update({key: value for key, value in overrides.items() if value})
    if services:
        brief_data["services"] = [_parse_service(service).model_dump() for service in services]
    if no_images:
        brief_data["generate_images"] = False
    if download_images:
        brief_data["download_images"] = True

    if not brief_data.get("business_name") or not brief_data.get("description"):
        _fail("--name and --description (or a --brief file) are required", json_output)

    try:
        brief = BusinessBrief(**brief_data)
    except ValueError as e:
        _fail(f"Invalid brief: {e}", json_output)

    async def _generate():
        orchestrator = get_orchestrator(ctx.obj.get("config_file"))
        try:
            if json_output:
                return await orchestrator.generate_website(brief, project_id=project_id)

            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TextColumn("{task.percentage:>3.0f}%"),
                console=console,
            ) as progress:
                task = progress.add_task("Starting...", total=100)

                def on_progress(event: GenerationProgress) -> None:
                    progress.update(
                        task,
                        completed=event.progress,
                        description=f"[{event.phase}/{event.total_phases}] {event.message}",
                    )

                return await orchestrator.generate_website(brief, project_id=project_id, on_progress=on_progress)
        finally:
            await orchestrator.shutdown()

    try:
        run = asyncio.run(_generate())
    except ValueError as e:
        _fail(str(e), json_output)
    except Exception as e:
        _fail(f"Generation failed: {e}", json_output)

    if json_output:
        console.print_json(data=run.summary())
        if run.status.value != "completed":
            raise typer.Exit(1)
        return

    summary = run.summary()
    lines = [
        f"[bold]{run.brief.business_name}[/bold]",
        f"[cyan]Status:[/cyan] {_colored(summary['status'])}",
        f"[cyan]Industry:[/cyan] {run.industry_name or run.industry_id or 'N/A'}",
    ]
    if summary["average_score"] is not None:
        lines.append(f"[cyan]Quality:[/cyan] {summary['average_score']:.1f}/10 ({summary['verdict']})")
    lines.append(f"[cyan]Iterations:[/cyan] {run.iterations} (best: {run.best_iteration or '-'})")
    if summary["stop_reason"]:
        lines.append(f"[cyan]Stopped:[/cyan] {summary['stop_reason']}")
    if run.output_path:
        lines.append(f"[cyan]Output:[/cyan] {run.output_path}")
    console.print(Panel.fit("\n".join(lines), title="Website Generation"))

    for error in run.errors:
        console.print(f"[yellow]• {error}[/yellow]")
    if run.status.value != "completed":
        raise typer.Exit(1)


@app.command()
def project(
    ctx: typer.Context,
    action: str = typer.Argument(
        ...,
        help="Action to perform: list, show",
    ),
    project_id: Optional[str] = typer.Option(None, "--id", help="Project ID for show action"),
    user_id: Optional[str] = typer.Option(None, "--user", help="Only projects of this user"),
    limit: int = typer.Option(50, "--limit", "-l", help="Maximum number of projects"),
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
):
    """Manage projects."""
    async def _project():
        orchestrator = get_orchestrator(ctx.obj.get("config_file"))
        try:
            if action == "list":
                projects = await orchestrator.list_projects(user_id=user_id, limit=limit)

                if json_output:
                    console.print_json(data={"projects": [p.model_dump(mode="json") for p in projects]})
                    return
                if not projects:
                    console.print("[yellow]No projects found[/yellow]")
                    return

                table = Table(title="Projects")
                table.add_column("ID", style="cyan", no_wrap=True)
                table.add_column("Name", style="white")
                table.add_column("Slug", style="blue")
                table.add_column("Industry", style="magenta")
                table.add_column("Status", style="green")
                table.add_column("Updated", style="yellow")
                for item in projects:
                    table.add_row(
                        item.id[:8] + "...",
                        item.name,
                        item.slug,
                        item.industry_id or "-",
                        _colored(item.status.value),
                        item.updated_at.strftime("%Y-%m-%d %H:%M"),
                    )
                console.print(table)

            elif action == "show":
                if not project_id:
                    _fail("--id is required for show action", json_output)

                item = await orchestrator.get_project(project_id)
                if not item:
                    _fail(f"Project not found: {project_id}", json_output)

                if json_output:
                    console.print_json(data=item.model_dump(mode="json"))
                    return

                console.print(Panel.fit(
                    f"[bold]Project: {item.id}[/bold]\n"
                    f"[cyan]Name:[/cyan] {item.name}\n"
                    f"[cyan]Slug:[/cyan] {item.slug}\n"
                    f"[cyan]Status:[/cyan] {_colored(item.status.value)}\n"
                    f"[cyan]Industry:[/cyan] {item.industry_id or '-'}\n"
                    f"[cyan]Latest run:[/cyan] {item.latest_run_id or '-'}\n"
                    f"[cyan]Output:[/cyan] {item.output_path or '-'}\n"
                    f"[cyan]Preview:[/cyan] {item.preview_url or '-'}",
                    title="Project"
                ))

            else:
                console.print(f"[red]Unknown action: {action}[/red]")
                console.print("[cyan]Available actions: list, show[/cyan]")
                raise typer.Exit(1)

        finally:
            await orchestrator.shutdown()

    _run_command(_project, json_output)


@app.command()
def run(
    ctx: typer.Context,
    action: str = typer.Argument(
        ...,
        help="Action to perform: list, show, cancel, report",
    ),
    run_id: Optional[str] = typer.Option(None, "--id", help="Run ID for show/cancel/report actions"),
    project_id: Optional[str] = typer.Option(None, "--project", "-p", help="Only runs of this project"),
    status_filter: Optional[str] = typer.Option(None, "--status", help="Status filter for list action"),
    limit: int = typer.Option(20, "--limit", "-l", help="Maximum number of runs"),
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
):
    """Inspect and cancel generation runs."""
    async def _run():
        orchestrator = get_orchestrator(ctx.obj.get("config_file"))
        try:
            if action == "list":
                runs = await orchestrator.list_runs(project_id=project_id, status=status_filter, limit=limit)

                if json_output:
                    console.print_json(data={"runs": [r.summary() for r in runs]})
                    return
                if not runs:
                    console.print("[yellow]No runs found[/yellow]")
                    return

                table = Table(title="Generation Runs")
                table.add_column("ID", style="cyan", no_wrap=True)
                table.add_column("Business", style="white")
                table.add_column("Status", style="green")
                table.add_column("Score", style="magenta", justify="right")
                table.add_column("Iterations", style="yellow", justify="right")
                table.add_column("Created", style="blue")
                for item in runs:
                    summary = item.summary()
                    score = summary["average_score"]
                    table.add_row(
                        item.id[:8] + "...",
                        summary["business_name"],
                        _colored(summary["status"]),
                        f"{score:.1f}" if score is not None else "-",
                        str(item.iterations),
                        item.created_at.strftime("%Y-%m-%d %H:%M"),
                    )
                console.print(table)

            elif action in ("show", "cancel", "report") and not run_id:
                _fail(f"--id is required for {action} action", json_output)

            elif action == "show":
                item = await orchestrator.get_run(run_id)
                if not item:
                    _fail(f"Run not found: {run_id}", json_output)

                summary = item.summary()
                if json_output:
                    console.print_json(data=summary)
                    return

                score = summary["average_score"]
                console.print(Panel.fit(
                    f"[bold]Run: {item.id}[/bold]\n"
                    f"[cyan]Business:[/cyan] {summary['business_name']}\n"
                    f"[cyan]Status:[/cyan] {_colored(summary['status'])}\n"
                    f"[cyan]Score:[/cyan] {f'{score:.1f}/10' if score is not None else '-'}\n"
                    f"[cyan]Iterations:[/cyan] {item.iterations}\n"
                    f"[cyan]Stop reason:[/cyan] {summary['stop_reason'] or '-'}\n"
                    f"[cyan]Output:[/cyan] {item.output_path or '-'}",
                    title="Run Status"
                ))
                for phase in item.phase_results:
                    marker = "[green]✓[/green]" if phase.status.value == "completed" else "[red]✗[/red]"
                    console.print(f"  {marker} {phase.phase.value} (iteration {phase.iteration})")

            elif action == "cancel":
                cancelled = await orchestrator.cancel_run(run_id)
                if cancelled:
                    console.print(f"[green]Cancelling run: {run_id}[/green]")
                else:
                    console.print(f"[yellow]Could not cancel run (not active): {run_id}[/yellow]")

            elif action == "report":
                report = await orchestrator.get_quality_report(run_id)
                if not report:
                    _fail(f"No quality report for run: {run_id}", json_output)
                if json_output:
                    console.print_json(data={"run_id": run_id, "report": report})
                else:
                    console.print(report, markup=False)

            else:
                console.print(f"[red]Unknown action: {action}[/red]")
                console.print("[cyan]Available actions: list, show, cancel, report[/cyan]")
                raise typer.Exit(1)

        finally:
            await orchestrator.shutdown()

    _run_command(_run, json_output)


def _run_command(func, json_output: bool) -> None:
    """Run an async command body; unexpected errors exit with status 1."""
    try:
        asyncio.run(func())
    except typer.Exit:
        raise
    except Exception as e:
        _fail(str(e), json_output)


@app.command()
def industries(
    detect: Optional[str] = typer.Option(
        None,
        "--detect",
        help="Business name to detect the industry for",
    ),
    description: str = typer.Option("", "--description", "-d", help="Business description for detection"),
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
):
    """List supported industries or detect one for a business."""
    if detect:
        profile = detect_industry(detect, description)
        scores = score_industries(detect, description)
        if json_output:
            console.print_json(data={"id": profile.id, "name": profile.name, "scores": scores})
            return
        console.print(f"[green]Detected industry:[/green] {profile.name} ({profile.id})")
        for industry_id, score in sorted(scores.items(), key=lambda item: item[1], reverse=True):
            if score:
                console.print(f"  • {industry_id}: {score}")
        return

    available = list_industries()
    if json_output:
        console.print_json(data={"industries": available})
        return

    table = Table(title="Industries")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="white")
    for item in available:
        table.add_row(item["id"], item["name"])
    console.print(table)


@app.command()
def compete(
    ctx: typer.Context,
    component: str = typer.Option("hero section", "--component", help="Component to design"),
    project_id: str = typer.Option("default", "--project", "-p", help="Project ID to file the competition under"),
    business_name: Optional[str] = typer.Option(None, "--business", "-b", help="Business name"),
    industry: Optional[str] = typer.Option(None, "--industry", "-i", help="Industry"),
    requirements: List[str] = typer.Option([], "--requirement", "-r", help="Design requirement (repeatable)"),
    philosophies: List[str] = typer.Option(
        [], "--philosophy", help="Only these philosophies: minimalist, bold, elegant (repeatable)"
    ),
    output_dir: Optional[str] = typer.Option(None, "--output", "-o", help="Directory to write each design to"),
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
):
    """Run a design competition between the agents."""
    async def _compete():
        orchestrator = get_orchestrator(ctx.obj.get("config_file"))
        try:
            await commands.run_competition(
                orchestrator,
                project_id=project_id,
                component_type=component,
                business_name=business_name,
                industry=industry,
                requirements=requirements,
                philosophies=philosophies,
                output_dir=output_dir,
                json_output=json_output,
            )
        finally:
            await orchestrator.shutdown()

    _run_command(_compete, json_output)


@app.command()
def integrations(
    action: str = typer.Argument(
        "list",
        help="Action to perform: list, script",
    ),
    integration_id: Optional[str] = typer.Option(None, "--id", help="Integration ID for script action"),
    category: Optional[str] = typer.Option(None, "--category", help="Category filter for list action"),
    config_values: List[str] = typer.Option([], "--set", help="Config value as key=value (repeatable)"),
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
):
    """List integrations or preview an integration snippet."""
    try:
        if action == "list":
            commands.show_integrations(category, json_output)
        elif action == "script":
            if not integration_id:
                _fail("--id is required for script action", json_output)
            commands.show_script(integration_id, commands.parse_config_pairs(config_values), json_output)
        else:
            console.print(f"[red]Unknown action: {action}[/red]")
            console.print("[cyan]Available actions: list, script[/cyan]")
            raise typer.Exit(1)
    except typer.Exit:
        raise
    except Exception as e:
        _fail(str(e), json_output)


@app.command()
def config(
    ctx: typer.Context,
    action: str = typer.Argument(
        ...,
        help="Action to perform: show, validate, create-default",
    ),
    file_path: Optional[str] = typer.Option(
        None,
        "--file",
        "-f",
        help="Path to configuration file",
    ),
):
    """Manage configuration."""
    try:
        config_manager = ConfigManager()

        if action == "show":
            config_path = file_path or ctx.obj.get("config_file")
            if config_path:
                config_manager.load_from_file(config_path)

            config_data = config_manager.get_all()
            for section in config_data.values():
                if isinstance(section, dict):
                    for key in section:
                        if key.endswith(("api_key", "access_key")) and section[key]:
                            section[key] = "********"

            console.print(Panel.fit(
                "[bold cyan]Current Configuration[/bold cyan]\n" +
                json.dumps(config_data, indent=2, default=str),
                title="Configuration"
            ))

        elif action == "validate":
            config_path = file_path or ctx.obj.get("config_file")
            if config_path:
                config_manager.load_from_file(config_path)

            errors = config_manager.validate_config()

            if errors:
                console.print("[red]Configuration validation failed:[/red]")
                for error in errors:
                    console.print(f"  • {error}")
                raise typer.Exit(1)
            else:
                console.print("[green]Configuration is valid[/green]")

        elif action == "create-default":
            if not file_path:
                console.print("[red]Error: --file is required for create-default action[/red]")
                raise typer.Exit(1)

            config_manager.create_default_config(file_path)
            console.print(f"[green]Created default configuration file: {file_path}[/green]")

        else:
            console.print(f"[red]Unknown action: {action}[/red]")
            console.print("[cyan]Available actions: show, validate, create-default[/cyan]")
            raise typer.Exit(1)

    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def cleanup(
    ctx: typer.Context,
    days: int = typer.Option(
        30,
        "--days",
        "-d",
        help="Number of days of data to keep",
    ),
    confirm: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Skip confirmation prompt",
    ),
):
    """Clean up old runs, events and metrics."""
    if not confirm:
        console.print(f"[yellow]This will delete data older than {days} days.[/yellow]")
        if not typer.confirm("Are you sure you want to continue?"):
            console.print("[cyan]Cleanup cancelled[/cyan]")
            return

    async def _cleanup():
        orchestrator = get_orchestrator(ctx.obj.get("config_file"))
        try:
            stats = await orchestrator.cleanup_old_data(days)
        finally:
            await orchestrator.shutdown()

        console.print("[green]Cleanup completed:[/green]")
        for key, value in stats.items():
            if key != "errors":
                console.print(f"  • {key.replace('_', ' ').title()}: {value}")

        if stats.get("errors"):
            console.print("[red]Errors during cleanup:[/red]")
            for error in stats["errors"]:
                console.print(f"  • {error}")

    try:
        asyncio.run(_cleanup())
    except Exception as e:
        console.print(f"[red]Error during cleanup: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind"),
    port: int = typer.Option(8000, "--port", help="Port to listen on"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
):
    """Serve the REST API."""
    import uvicorn

    console.print(f"[green]Serving StargatePortal API on http://{host}:{port}[/green]")
    uvicorn.run("stargate_portal.api.app:app", host=host, port=port, reload=reload)


@app.command()
def version():
    """Show version information."""
    from .. import __version__
    console.print(f"[bold cyan]StargatePortal[/bold cyan] v{__version__}")
    console.print("[dim]AI website generation with quality feedback[/dim]")


if __name__ == "__main__":
    app()
