"""CLI entrypoint for research-gantt."""

from __future__ import annotations

import asyncio
import json
import mimetypes
from datetime import date
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from research_gantt.config import settings
from research_gantt.logging import setup_logging

app = typer.Typer(name="research-gantt", help="Turn research documents into a Gantt chart and interrogate its tasks.")
console = Console()

_MIME_BY_SUFFIX = {
    ".md": "text/markdown",
    ".txt": "text/plain",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}


def _load_context(paths: list[Path]):
    from research_gantt.documents import UploadedFile, normalize_upload, validate_uploads

    uploads = [
        UploadedFile(
            filename=p.name,
            content_type=_MIME_BY_SUFFIX.get(p.suffix.lower()) or mimetypes.guess_type(p.name)[0] or "",
            data=p.read_bytes(),
        )
        for p in paths
    ]
    validate_uploads(uploads)
    return normalize_upload(uploads)


def _client():
    from research_gantt.main import build_client, validate_environment

    validate_environment(settings)
    return build_client(settings)


def _fail(exc: Exception) -> None:
    console.print(f"[bold red]Error:[/] {exc}")
    raise typer.Exit(code=1)


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Bind address"),
    port: int = typer.Option(3000, help="Port"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
) -> None:
    """Run the HTTP API."""
    import uvicorn

    uvicorn.run("research_gantt.main:app", host=host, port=port, reload=reload)


@app.command()
def chart(
    files: list[Path] = typer.Argument(..., exists=True, dir_okay=False, help="Research files (.md, .txt, .docx)"),
    prompt: str = typer.Option(..., "--prompt", "-p", help="Project instructions"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write chart JSON here instead of stdout"),
) -> None:
    """Synthesize a chart document from local research files."""
    setup_logging(settings.logging.level)
    from research_gantt.chart import synthesize_chart

    try:
        context = _load_context(files)
        doc = asyncio.run(synthesize_chart(prompt, context, _client()))
    except Exception as exc:
        _fail(exc)
        return
    payload = json.dumps(doc.to_wire(), indent=2, ensure_ascii=False)
    if out:
        out.write_text(payload, encoding="utf-8")
        console.print(f"[bold green]Chart written:[/] {out}")
    else:
        typer.echo(payload)


@app.command()
def analyze(
    files: list[Path] = typer.Argument(..., exists=True, dir_okay=False),
    task: str = typer.Option(..., "--task", help="Task title as shown on the chart"),
    entity: str = typer.Option(..., "--entity", help="Swimlane the task belongs to"),
) -> None:
    """Analyze one task against local research files."""
    setup_logging(settings.logging.level)
    from research_gantt.analysis import analyze_task
    from research_gantt.models import TaskIdentifier

    try:
        context = _load_context(files)
        result = asyncio.run(
            analyze_task(TaskIdentifier(task_name=task, entity=entity), context, _client(), settings.analysis.anchor())
        )
    except Exception as exc:
        _fail(exc)
        return
    typer.echo(json.dumps(result.to_wire(), indent=2, ensure_ascii=False))


@app.command()
def ask(
    files: list[Path] = typer.Argument(..., exists=True, dir_okay=False),
    task: str = typer.Option(..., "--task"),
    entity: str = typer.Option(..., "--entity"),
    question: str = typer.Option(..., "--question", "-q"),
) -> None:
    """Ask a grounded question about one task."""
    setup_logging(settings.logging.level)
    from research_gantt.models import QuestionRequest
    from research_gantt.qa import answer_question

    try:
        context = _load_context(files)
        answer = asyncio.run(
            answer_question(
                QuestionRequest(task_name=task, entity=entity, question=question),
                context,
                _client(),
                max_chars=settings.analysis.max_question_chars,
            )
        )
    except Exception as exc:
        _fail(exc)
        return
    typer.echo(answer)


@app.command()
def today(
    chart_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Chart JSON file"),
    on: Optional[str] = typer.Option(None, "--on", help="ISO date (defaults to the reference date)"),
) -> None:
    """Show where the today marker falls on a saved chart."""
    from research_gantt.layout import find_today_column_position
    from research_gantt.models import ChartDocument

    doc = ChartDocument.model_validate_json(chart_path.read_text(encoding="utf-8"))
    day = date.fromisoformat(on) if on else settings.analysis.anchor()
    position = find_today_column_position(day, doc.time_columns)
    if position is None:
        console.print(f"[yellow]{day.isoformat()} is outside the chart's time columns.[/]")
        return
    table = Table(title=f"Today marker for {day.isoformat()}")
    table.add_column("Column", style="cyan")
    table.add_column("Index", justify="right")
    table.add_column("Offset", justify="right")
    table.add_row(doc.time_columns[position.index], str(position.index), f"{position.percentage:.4f}")
    console.print(table)


if __name__ == "__main__":
    app()
