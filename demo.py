"""
Demo Script - Quick demonstration of the Deck Director
演示脚本 - 使用本地 oracle 离线运行一次完整流程
"""
import asyncio
import logging

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from core import ProduceOptions
from director import Director
from oracles import build_local_suite
from utils import setup_project_logging


console = Console()


async def demo_produce(topic: str = "Edge AI adoption in manufacturing, 6 slides"):
    """Run the full pipeline offline and print a per-item summary."""
    console.print(Panel.fit(
        f"[bold blue]Deck Director Demo[/bold blue]\n"
        f"Topic: [yellow]{topic}[/yellow]",
        border_style="blue"
    ))

    director = Director(suite=build_local_suite())
    try:
        result = await director.produce(topic, ProduceOptions(mode="balanced"))
    finally:
        await director.aclose()

    table = Table(title=result.title)
    table.add_column("#", justify="right")
    table.add_column("Title")
    table.add_column("Layout")
    table.add_column("Path")
    table.add_column("Repair")
    table.add_column("Warnings")
    for item in result.items:
        repair = ""
        if item.repair is not None:
            repair = f"{item.repair.final_score or 0:.0f} ({item.repair.abort_reason or 'converged'})"
        table.add_row(
            str(item.order),
            item.title,
            item.layout_id,
            " > ".join(item.path),
            repair,
            str(len(item.warnings)),
        )
    console.print(table)

    metrics = result.metrics
    console.print(
        f"\n[bold]Metrics[/bold] enrichments={metrics.enrichments} prunes={metrics.prunes} "
        f"validations={metrics.visual_validations} failures={metrics.visual_failures} "
        f"reroutes={metrics.reroutes} assets={metrics.assets_used}/{metrics.assets_requested} "
        f"cost=${metrics.costs.total:.4f} total={metrics.timings.total:.0f}ms"
    )
    if result.consensus is not None:
        console.print(
            f"[bold]Consensus[/bold] avg={result.consensus.average_score:.1f} "
            f"consistency={result.consensus.consistency_score:.1f} "
            f"outliers={len(result.consensus.outliers)} mode={result.consensus.execution_mode}"
        )


if __name__ == "__main__":
    setup_project_logging(logging.WARNING)
    asyncio.run(demo_produce())
