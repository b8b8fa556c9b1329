"""
CLI entrypoints.

``netflow-tuning`` plans configurations and evaluates health from the shell.
The MCP server is available over both transports:
- STDIO (for mcphost, etc.)
- Streamable HTTP / SSE
"""

from __future__ import annotations

import dataclasses
import json
import logging
from datetime import date, datetime
from typing import List, Optional

import anyio
import typer
import uvicorn

from netflow_tuning.alerts import evaluate
from netflow_tuning.config import configure_settings, get_settings
from netflow_tuning.emitters import write_artifacts
from netflow_tuning.errors import InsufficientResourcesError
from netflow_tuning.facts import collect_facts
from netflow_tuning.formatters import format_alerts, format_facts, format_plan, format_thresholds
from netflow_tuning.metrics import sample_metrics
from netflow_tuning.models import (
    FACT_AVAILABLE_SPACE,
    FACT_CPU,
    FACT_DISK_TYPE,
    FACT_RAM,
    DiskType,
    HardwareFacts,
)
from netflow_tuning.planner import plan, retention_days_for
from netflow_tuning.retention import select_expired_indices
from netflow_tuning.thresholds import resolve
from netflow_tuning.tiers import classify

app = typer.Typer(help="Hardware-aware tuning and health alerts for the NetFlow ELK stack.")

OVERRIDDEN_FACTS = {
    "ram_gb": FACT_RAM,
    "cpu_cores": FACT_CPU,
    "disk_type": FACT_DISK_TYPE,
    "available_space_gb": FACT_AVAILABLE_SPACE,
}


def _echo_json(data: object) -> None:
    typer.echo(json.dumps(data, indent=2))


def _facts(
    ram_gb: Optional[float] = None,
    cpu_cores: Optional[int] = None,
    disk_type: Optional[DiskType] = None,
    available_space_gb: Optional[float] = None,
) -> HardwareFacts:
    """Detect local facts, replacing any the caller supplied explicitly."""
    facts = collect_facts()
    overrides = {}
    if ram_gb is not None:
        overrides.update(ram_gb=ram_gb, ram_mb=int(ram_gb * 1024))
    if cpu_cores is not None:
        overrides.update(cpu_cores=cpu_cores, cpu_threads=max(cpu_cores, facts.cpu_threads))
    if disk_type is not None:
        overrides["disk_type"] = disk_type
    if available_space_gb is not None:
        overrides["available_space_gb"] = available_space_gb
    if not overrides:
        return facts
    supplied = {OVERRIDDEN_FACTS[key] for key in overrides if key in OVERRIDDEN_FACTS}
    unknown = tuple(name for name in facts.unknown_facts if name not in supplied)
    return dataclasses.replace(facts, unknown_facts=unknown, **overrides)


@app.callback()
def main(
    project_root: str = typer.Option(None, help="Project root"),
    output_dir: str = typer.Option(None, help="Directory the env manifest and configs are written to"),
    log_level: str = typer.Option(None, help="Logging level"),
) -> None:
    settings = configure_settings(project_root=project_root, output_dir=output_dir, log_level=log_level)
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


@app.command()
def detect(as_json: bool = typer.Option(False, "--json", help="Print JSON")) -> None:
    """Detect system resources."""
    facts = collect_facts()
    if as_json:
        _echo_json({"tier": classify(facts).name, "facts": facts.to_dict()})
    else:
        typer.echo(format_facts(facts))


@app.command("plan")
def plan_command(
    ram_gb: Optional[float] = typer.Option(None, help="Plan for this much RAM instead of the detected amount"),
    cpu_cores: Optional[int] = typer.Option(None, help="Plan for this many CPU cores"),
    disk_type: Optional[DiskType] = typer.Option(None, help="Plan for this storage type"),
    available_space_gb: Optional[float] = typer.Option(None, help="Plan for this much free space"),
    write: bool = typer.Option(False, help="Write .env and service configs to the output directory"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON"),
) -> None:
    """Calculate optimal configurations for the detected (or given) hardware."""
    settings = get_settings()
    facts = _facts(ram_gb, cpu_cores, disk_type, available_space_gb)
    try:
        params = plan(facts, minimum_space_gb=settings.minimum_space_gb)
    except InsufficientResourcesError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)

    written = write_artifacts(facts, params, settings.output_dir) if write else None
    if as_json:
        data = {"facts": facts.to_dict(), "parameters": params.to_dict()}
        if written:
            data["artifacts"] = written.to_dict()
        _echo_json(data)
        return

    typer.echo(format_plan(facts, params))
    if written:
        typer.echo("")
        typer.echo("Generated files:")
        for path in written.files:
            typer.echo(f"  {path}")


@app.command()
def thresholds(
    ram_gb: Optional[float] = typer.Option(None, help="Resolve for this much RAM instead of the detected amount"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON"),
) -> None:
    """Show the alert thresholds for this machine."""
    resolved = resolve(_facts(ram_gb=ram_gb))
    if as_json:
        _echo_json(resolved.to_dict())
    else:
        typer.echo(format_thresholds(resolved))


@app.command()
def monitor(
    retention_days: Optional[int] = typer.Option(
        None, help="Retention in effect; defaults to the value planned from free space"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print JSON"),
) -> None:
    """Sample live metrics once and report alerts."""
    facts = collect_facts()
    snapshot = sample_metrics()
    if retention_days is None:
        retention_days = retention_days_for(facts.available_space_gb)
    alerts, count = evaluate(snapshot, resolve(facts), retention_days)
    if as_json:
        _echo_json({"alert_count": count, "alerts": [alert.to_dict() for alert in alerts], "metrics": snapshot.to_dict()})
    else:
        typer.echo(format_alerts(alerts, count))


@app.command("expired-indices")
def expired_indices(
    indices: List[str] = typer.Argument(..., help="Index names, e.g. netflow-2024.01.31"),
    retention_days: int = typer.Option(..., help="Days of data to keep"),
    today: Optional[str] = typer.Option(None, help="Reference day as YYYY-MM-DD (default: today)"),
) -> None:
    """List the indices that fall outside the retention window."""
    reference = datetime.strptime(today, "%Y-%m-%d").date() if today else date.today()
    for name in select_expired_indices(indices, retention_days, reference):
        typer.echo(name)


def run() -> None:
    """Entrypoint for the ``netflow-tuning`` command."""
    app()


def stdio_main() -> None:
    """Entrypoint for STDIO mode."""
    typer.run(_stdio_command)


def http_main() -> None:
    """Entrypoint for HTTP mode (streamable-http and SSE)."""
    typer.run(_http_command)


def _stdio_command(
    project_root: str = typer.Option(None, help="Project root"),
    output_dir: str = typer.Option(None, help="Directory the env manifest and configs are written to"),
) -> None:
    """Run the MCP server in STDIO mode."""
    from server import mcp

    configure_settings(project_root=project_root, output_dir=output_dir)
    anyio.run(mcp.run_stdio_async)


def _http_command(
    project_root: str = typer.Option(None, help="Project root"),
    output_dir: str = typer.Option(None, help="Directory the env manifest and configs are written to"),
    host: str = typer.Option("0.0.0.0", help="HTTP host"),
    port: int = typer.Option(8080, help="HTTP port"),
) -> None:
    """Run the MCP server in HTTP mode (streamable-http and SSE endpoints)."""
    from http_app import app as http_app

    configure_settings(project_root=project_root, output_dir=output_dir)
    uvicorn.run(http_app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    run()
