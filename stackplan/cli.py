"""
Command line entry point for stackplan.

Builds the workshop stack for one deployable unit, optionally suffixed by an
environment identifier, and writes the plan or hands it to an applier.
"""
from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .config import StackConfig, load_stack_config, load_stack_config_file
from .errors import StackPlanError
from .ir import Plan
from .stacks import build_plan, to_graph
from .util import dump_plan, load_applier, load_plan

app = typer.Typer(
    help="Build dependency-ordered deployment plans for the workshop stack",
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger(__name__)


class PlanFormat(str, Enum):
    JSON = "json"
    PICKLE = "pickle"


ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="YAML stack configuration", dir_okay=False),
]
IdentifierOption = Annotated[
    Optional[str],
    typer.Option("--identifier", "-i", help="Environment identifier appended to the stack name"),
]
ProfileOption = Annotated[
    Optional[str],
    typer.Option("--profile", "-p", help="Node-group profile: network, registry, cluster, service, full"),
]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log each step")] = False,
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _fail(err: StackPlanError) -> None:
    err_console.print(f"[bold red]{err.kind}[/bold red]: {escape(err.message)}")
    if err.ids:
        err_console.print(f"  ids: {escape(', '.join(err.ids))}")
    raise typer.Exit(1)


def _load_config(config: Optional[Path], identifier: Optional[str], profile: Optional[str]) -> StackConfig:
    if config is not None:
        return load_stack_config_file(config, identifier=identifier, profile=profile)
    return load_stack_config({}, identifier=identifier, profile=profile)


def _plan(config: Optional[Path], identifier: Optional[str], profile: Optional[str]) -> tuple[StackConfig, Plan]:
    try:
        cfg = _load_config(config, identifier, profile)
        return cfg, build_plan(cfg)
    except StackPlanError as e:
        _fail(e)


def _outputs_table(plan: Plan) -> Table:
    table = Table(title=f"Outputs: {escape(plan.name)}")
    table.add_column("Output", style="cyan")
    table.add_column("Source")
    table.add_column("Value", style="green")
    table.add_column("Description")
    for row in plan.output_table():
        table.add_row(*(escape(cell) for cell in row))
    return table


@app.command()
def synth(
    config: ConfigOption = None,
    identifier: IdentifierOption = None,
    profile: ProfileOption = None,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Write the plan here instead of stdout", dir_okay=False),
    ] = None,
    fmt: Annotated[PlanFormat, typer.Option("--format", "-f", help="Plan format")] = PlanFormat.JSON,
) -> None:
    """
    Emit the deployment plan.

    Example:
        stackplan synth --identifier dev -o cdk.out/plan.json
    """
    if fmt is PlanFormat.PICKLE and output is None:
        raise typer.BadParameter("pickle plans need --output", param_hint="--format")

    cfg, plan = _plan(config, identifier, profile)

    if output is None:
        typer.echo(plan.to_json(), nl=False)
        return

    if fmt is PlanFormat.PICKLE:
        dump_plan(plan, output, meta={"account": cfg.account, "region": cfg.region})
    else:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(plan.to_json())
    console.print(f"Wrote [cyan]{escape(plan.name)}[/cyan] ({len(plan.resources)} resources) to {escape(str(output))}")
    console.print(_outputs_table(plan))


@app.command()
def outputs(
    config: ConfigOption = None,
    identifier: IdentifierOption = None,
    profile: ProfileOption = None,
) -> None:
    """Show the named outputs of the plan."""
    _, plan = _plan(config, identifier, profile)
    console.print(_outputs_table(plan))


@app.command()
def graph(
    config: ConfigOption = None,
    identifier: IdentifierOption = None,
    profile: ProfileOption = None,
) -> None:
    """Show the resources in materialization order with their dependencies."""
    try:
        g = to_graph(_load_config(config, identifier, profile))
        ordered = g.order()
    except StackPlanError as e:
        _fail(e)

    console.print(f"[bold]{escape(g.name)}[/bold]")
    for i, node in enumerate(ordered, 1):
        deps = ", ".join(sorted(node.depends_on)) or "-"
        console.print(f"{i:>3}. {escape(node.id)} [dim]({node.kind.value})[/dim] <- {escape(deps)}")


@app.command()
def apply(
    applier: Annotated[
        str,
        typer.Option("--applier", "-a", help="Applier callable as 'module:function'; receives the Plan"),
    ],
    snapshot: Annotated[
        Optional[Path],
        typer.Option("--snapshot", "-s", help="Apply a plan written by 'synth --format pickle'", dir_okay=False),
    ] = None,
    config: ConfigOption = None,
    identifier: IdentifierOption = None,
    profile: ProfileOption = None,
) -> None:
    """
    Hand the plan to an external applier.

    Example:
        stackplan apply -a mytool.deploy:apply --snapshot cdk.out/plan.pkl
    """
    if snapshot is not None and (config or identifier or profile):
        raise typer.BadParameter(
            "a snapshot already fixes the configuration", param_hint="--snapshot"
        )
    try:
        fn = load_applier(applier)
    except (ImportError, AttributeError, TypeError, ValueError) as e:
        err_console.print(f"[bold red]Cannot load applier[/bold red] {escape(applier)}: {escape(str(e))}")
        raise typer.Exit(2)

    if snapshot is not None:
        try:
            plan, meta = load_plan(snapshot)
        except StackPlanError as e:
            _fail(e)
        logger.info("loaded %s from %s (region %s)", plan.name, snapshot, meta.get("region"))
    else:
        _, plan = _plan(config, identifier, profile)
    logger.info("applying %s with %s", plan.name, applier)
    result = fn(plan)
    if isinstance(result, int) and not isinstance(result, bool) and result != 0:
        raise typer.Exit(result)
    console.print(f"Applied [cyan]{escape(plan.name)}[/cyan]")


if __name__ == "__main__":
    app()
