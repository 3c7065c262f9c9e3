"""Design competition and integration commands for the StargatePortal CLI."""

from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from ..agents import DesignCompetition
from ..core.types import DesignPhilosophy, DesignRequest
from ..integrations import generate_script_for_integration, list_integrations

console = Console()


def parse_config_pairs(pairs: List[str]) -> Dict[str, str]:
    """Turn ``key=value`` options into a dict."""
    config = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Expected key=value, got: {pair}")
        config[key.strip()] = value.strip()
    return config


async def run_competition(
    orchestrator,
    project_id: str,
    component_type: str,
    business_name: Optional[str] = None,
    industry: Optional[str] = None,
    requirements: Optional[List[str]] = None,
    philosophies: Optional[List[str]] = None,
    output_dir: Optional[str] = None,
    json_output: bool = False,
) -> None:
    """Run a design competition and show each agent's design."""
    competition = DesignCompetition(orchestrator.llm_backend, storage=orchestrator.storage)
    request = DesignRequest(
        project_id=project_id,
        component_type=component_type,
        business_name=business_name,
        industry=industry,
        requirements=requirements or [],
        philosophies=[DesignPhilosophy(p) for p in philosophies] if philosophies else None,
    )

    if json_output:
        result = await competition.start_competition(request)
    else:
        with console.status(f"[cyan]Agents are designing a {component_type}...[/cyan]"):
            result = await competition.start_competition(request)

    if output_dir:
        directory = Path(output_dir)
        directory.mkdir(parents=True, exist_ok=True)
        for design in result.designs:
            (directory / f"{design.philosophy.value}.html").write_text(
                f"<style>\n{design.css}\n</style>\n{design.html}\n", encoding="utf-8"
            )

    if json_output:
        console.print_json(data=result.model_dump(mode="json"))
        return

    table = Table(title=f"Competition {result.id}")
    table.add_column("Agent", style="cyan")
    table.add_column("Philosophy", style="magenta")
    table.add_column("Backend", style="blue")
    table.add_column("Confidence", justify="right", style="green")
    table.add_column("Time", justify="right", style="yellow")
    for design in result.designs:
        table.add_row(
            design.agent_name,
            design.philosophy.value,
            design.backend or "N/A",
            f"{design.confidence:.2f}",
            f"{design.generation_time:.1f}s",
        )
    console.print(table)

    for design in result.designs:
        console.print(Panel(design.reasoning, title=design.agent_name, expand=False))
    for error in result.errors:
        console.print(f"[yellow]Agent failed: {error}[/yellow]")
    if output_dir:
        console.print(f"[green]Designs written to {output_dir}[/green]")


def show_integrations(category: Optional[str] = None, json_output: bool = False) -> None:
    """List the available integrations."""
    integrations = list_integrations(category)

    if json_output:
        console.print_json(data={"integrations": integrations})
        return

    if not integrations:
        console.print("[yellow]No integrations found[/yellow]")
        return

    table = Table(title="Integrations")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name", style="white")
    table.add_column("Category", style="magenta")
    table.add_column("Placement", style="blue")
    table.add_column("Required", style="yellow")
    for integration in integrations:
        required = ", ".join(" or ".join(keys) for keys in integration["required"])
        table.add_row(
            integration["id"],
            integration["name"],
            integration["category"],
            integration["placement"],
            required or "-",
        )
    console.print(table)


def show_script(integration_id: str, config: Dict[str, Any], json_output: bool = False) -> None:
    """Render one integration snippet.

    Raises:
        ValueError: If the integration is unknown or its required config is missing.
    """
    script = generate_script_for_integration({"id": integration_id, "config": config})
    if not script:
        raise ValueError(f"Unknown integration or missing configuration: {integration_id}")

    if json_output:
        console.print_json(data=script)
        return

    for placement, snippet in script.items():
        console.print(f"[cyan]Placement:[/cyan] {placement}")
        console.print(Syntax(snippet, "html", word_wrap=True))


__all__ = [
    "parse_config_pairs",
    "run_competition",
    "show_integrations",
    "show_script",
]
