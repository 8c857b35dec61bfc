"""Typer CLI — ``kachisuji explore``, ``kachisuji rank``, ``kachisuji serve`` and friends."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import NoReturn, Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from sqlalchemy.orm import Session

from kachisuji.config import load_config
from kachisuji.db.database import get_session, init_db, init_engine
from kachisuji.errors import KachisujiError
from kachisuji.rag.retrieval import configure_index
from kachisuji.schemas.config import AppConfig
from kachisuji.schemas.strategy import RankingResult

# Load .env file from the working directory (if it exists)
load_dotenv()

app = typer.Typer(
    name="kachisuji",
    help="Kachisuji Finder — explore, score and evolve business strategies over your company documents.",
    no_args_is_help=True,
)
console = Console()

ConfigOption = typer.Option(None, "--config", "-c", help="Path to kachisuji.yml (defaults apply without one).")
VerboseOption = typer.Option(False, "--verbose", "-v")
DryRunOption = typer.Option(False, "--dry-run", help="Use canned LLM responses (no API calls).")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%H:%M:%S",
    )
    # httpx logs every HTTP request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _load(config: Optional[Path], verbose: bool) -> AppConfig:
    _setup_logging(verbose)
    try:
        return load_config(config)
    except Exception as exc:
        console.print(f"[red]Config validation failed:[/] {exc}")
        raise typer.Exit(code=1)


def _open_session(cfg: AppConfig) -> Session:
    init_engine(cfg.database_url)
    init_db()
    configure_index(cfg.rag)
    return get_session()


def _make_client(dry_run: bool):
    if dry_run:
        from kachisuji.shared.llm_client import DryRunClient

        console.print("[yellow]DRY-RUN mode — no API calls will be made.[/]\n")
        return DryRunClient()

    from openai import OpenAIError

    from kachisuji.shared.llm_client import LLMClient

    try:
        return LLMClient()
    except OpenAIError as exc:
        console.print(f"[red]LLM client could not be created:[/] {exc}")
        console.print("Set OPENAI_API_KEY (or the AZURE_OPENAI_* variables), or pass --dry-run.")
        raise typer.Exit(code=1)


def _fail(exc: Exception) -> NoReturn:
    console.print(f"[red]Error:[/] {exc}")
    raise typer.Exit(code=1)


def _print_ranking(ranking: RankingResult, result_label: str) -> None:
    table = Table(title=f"{result_label}ランキング")
    table.add_column("#", justify="right")
    table.add_column("判定")
    table.add_column("総合", justify="right")
    table.add_column(result_label)
    table.add_column("探索ID", justify="right")
    styles = {"優先投資": "green", "条件付き": "yellow", "見送り": "red"}
    for s in ranking.strategies:
        style = styles.get(s.judgment, "white")
        table.add_row(
            str(s.rank), f"[{style}]{s.judgment}[/]", f"{s.total_score:.2f}", s.name, str(s.exploration_id),
        )
    console.print(table)
    stats = ranking.stats
    console.print(
        f"  total={stats.total_strategies} priority={stats.priority_count} "
        f"conditional={stats.conditional_count} decline={stats.decline_count} "
        f"avg={stats.avg_score:.2f} top={stats.top_score:.2f}"
    )


def _weights(session: Session, cfg: AppConfig, finder_id: str) -> dict[str, float]:
    """The user's saved weights for the finder, else its defaults."""
    from kachisuji.schemas.finder import get_default_weights
    from kachisuji.services.score_config import user_weights

    return user_weights(session, user_id=cfg.user_id, finder_id=finder_id) or get_default_weights(finder_id)


def _rank(session: Session, cfg: AppConfig, *, finder_id: Optional[str], limit: int = 50,
          min_score: float = 0.0, judgment: Optional[str] = None) -> RankingResult:
    from kachisuji.scoring import completed_explorations, rank_strategies

    finder_id = finder_id or cfg.finder_id
    weights = _weights(session, cfg, finder_id)
    return rank_strategies(
        completed_explorations(session, user_id=cfg.user_id, finder_id=finder_id),
        weights=weights, min_score=min_score, judgment=judgment, limit=limit,
    )


@app.command()
def validate(
    config: Optional[Path] = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Validate a configuration file."""
    from kachisuji.schemas.finder import get_finder_settings

    cfg = _load(config, verbose)
    finder = get_finder_settings(cfg.finder_id)

    console.print("[green]Config is valid![/]\n")
    console.print(f"  Database:    {cfg.database_url}")
    console.print(f"  Finder:      {finder.id} ({finder.name})")
    console.print(f"  User:        {cfg.user_id}")
    console.print(f"  Company:     {cfg.company_name or '(none)'}")
    console.print(f"  Industry:    {cfg.industry or '(none)'}")
    console.print(f"  Web sources: {len(cfg.web_sources)}")
    for src in cfg.web_sources:
        console.print(f"    - {src.name}: {src.url}")
    console.print(
        f"  RAG:         chunks {cfg.rag.min_chunk_chars}-{cfg.rag.max_chunk_chars} chars, "
        f"overlap {cfg.rag.overlap_chars}, top_k {cfg.rag.top_k}"
    )
    console.print(f"  Output dir:  {cfg.output_directory}")


@app.command("init-db")
def init_database(
    config: Optional[Path] = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Create the database tables."""
    cfg = _load(config, verbose)
    _open_session(cfg).close()
    console.print(f"[green]Database ready:[/] {cfg.database_url}")


@app.command()
def ingest(
    path: Path = typer.Argument(..., help="Folder of documents (pdf, docx, pptx, csv, json, txt, md)."),
    scope: str = typer.Option("shared", "--scope", help="Document scope stored with every chunk."),
    concurrency: int = typer.Option(3, "--concurrency", help="Documents embedded at once."),
    force: bool = typer.Option(False, "--force", help="Re-embed files whose text has not changed."),
    config: Optional[Path] = ConfigOption,
    verbose: bool = VerboseOption,
    dry_run: bool = DryRunOption,
) -> None:
    """Parse, chunk and embed every document under PATH.

    .gitignore and .ragignore patterns in PATH are honoured. Unchanged files
    are skipped and documents whose file was deleted are removed.
    """
    cfg = _load(config, verbose)
    if not path.is_dir():
        console.print(f"[red]Not a directory:[/] {path}")
        raise typer.Exit(code=1)
    client = _make_client(dry_run)
    asyncio.run(_run_ingest(cfg, client, path, scope=scope, concurrency=concurrency, force=force))


async def _run_ingest(
    cfg: AppConfig, client, path: Path, *, scope: str, concurrency: int, force: bool = False,
) -> None:
    from kachisuji.rag.ingest import ingest_folder
    from kachisuji.shared.progress import StepProgress

    session = _open_session(cfg)
    try:
        with StepProgress() as progress:
            progress.start("ingest")
            summary = await ingest_folder(
                session, client, path, cfg.rag,
                scope=scope, concurrency=concurrency, force=force,
                on_progress=lambda msg: progress.update("ingest", msg),
            )
            progress.finish("ingest", f"{summary.success}/{summary.total}")
    finally:
        session.close()

    table = Table(title="Ingest results")
    table.add_column("File")
    table.add_column("Chunks", justify="right")
    table.add_column("Embeddings", justify="right")
    table.add_column("Error")
    for r in summary.results:
        table.add_row(r.filename, str(r.chunks_created), str(r.embeddings_generated), r.error or "")
    console.print(table)
    for name, error in summary.skipped.items():
        console.print(f"  [yellow]skipped[/] {name}: {error}")
    if summary.unchanged:
        console.print(f"  [dim]unchanged:[/] {len(summary.unchanged)} files")
    for name in summary.removed:
        console.print(f"  [yellow]removed[/] {name}")
    if summary.failed:
        raise typer.Exit(code=1)


@app.command()
def reprocess(
    config: Optional[Path] = ConfigOption,
    verbose: bool = VerboseOption,
    dry_run: bool = DryRunOption,
) -> None:
    """Re-chunk and re-embed every stored document."""
    cfg = _load(config, verbose)
    client = _make_client(dry_run)
    asyncio.run(_run_reprocess(cfg, client))


async def _run_reprocess(cfg: AppConfig, client) -> None:
    from kachisuji.rag.ingest import process_all_documents

    session = _open_session(cfg)
    try:
        summary = await process_all_documents(session, client, cfg.rag)
    finally:
        session.close()
    console.print(f"[green]Reprocessed:[/] {summary.success} ok, {summary.failed} failed of {summary.total}")
    for r in summary.results:
        if r.error:
            console.print(f"  [red]{r.filename}:[/] {r.error}")


@app.command()
def explore(
    question: str = typer.Argument(..., help="The question to explore."),
    context: str = typer.Option("", "--context", help="Extra background for the question."),
    constraint: list[int] = typer.Option([], "--constraint", help="Constraint id to add (repeatable)."),
    finder: Optional[str] = typer.Option(None, "--finder", help="Finder id (defaults to config)."),
    web: bool = typer.Option(False, "--web", help="Fetch the configured web sources into the context."),
    config: Optional[Path] = ConfigOption,
    verbose: bool = VerboseOption,
    dry_run: bool = DryRunOption,
) -> None:
    """Explore winning strategies for QUESTION."""
    from kachisuji.schemas.strategy import ExploreRequest

    cfg = _load(config, verbose)
    client = _make_client(dry_run)
    request = ExploreRequest(
        question=question, context=context, constraint_ids=constraint, finder_id=finder or cfg.finder_id,
    )
    asyncio.run(_run_explore(cfg, client, request, web=web))


async def _run_explore(cfg: AppConfig, client, request, *, web: bool) -> None:
    from kachisuji.schemas.finder import get_finder_settings, get_score_labels
    from kachisuji.schemas.strategy import ExplorationOutput
    from kachisuji.scoring import calculate_total_score, get_judgment
    from kachisuji.services.exploration import explore as run_exploration
    from kachisuji.shared.progress import StepProgress
    from kachisuji.shared.web_fetcher import fetch_web_texts

    finder = get_finder_settings(request.finder_id)
    session = _open_session(cfg)
    try:
        with StepProgress() as progress:
            web_texts = None
            if web and cfg.web_sources:
                progress.start("web")
                web_texts = await fetch_web_texts(cfg.web_sources)
                progress.finish("web", f"{len(web_texts)} sources")
                for source in cfg.web_sources:
                    if source.name not in web_texts:
                        progress.log_event("web", f"no text from {source.url}", style="yellow")
            progress.print_phase(request.question)
            progress.start(finder.explore_label)
            try:
                exploration = await run_exploration(
                    session, client, request, user_id=cfg.user_id, settings=cfg.rag, web_texts=web_texts,
                )
            except Exception as exc:
                progress.fail(finder.explore_label, str(exc))
                _fail(exc)
            progress.finish(finder.explore_label)
        weights = _weights(session, cfg, finder.id)
    finally:
        session.close()

    output = ExplorationOutput.model_validate(exploration.result)
    labels = get_score_labels(finder.id)
    console.print(Panel(output.thinking_process or "(no thinking process)", title=f"探索 #{exploration.id}"))
    for i, s in enumerate(output.strategies, 1):
        total = calculate_total_score(s.scores, weights) if s.scores else None
        header = f"[bold]{i}. {s.name}[/]"
        if total is not None:
            header += f"  総合 {total:.2f} / {get_judgment(s.scores, weights)}"
        console.print(header)
        if s.reason:
            console.print(f"   {s.reason}")
        if s.how_to_obtain:
            console.print(f"   [dim]実現方法:[/] {s.how_to_obtain}")
        if s.scores:
            console.print("   " + "  ".join(f"{labels.get(k, k)}={v:g}" for k, v in s.scores.items()))
    if output.follow_up_questions:
        console.print("\n[bold]次の問い:[/]")
        for q in output.follow_up_questions:
            console.print(f"  - {q}")


@app.command()
def swot(
    industry: Optional[str] = typer.Option(None, "--industry", help="Industry (defaults to config)."),
    company_context: str = typer.Option("", "--company-context", help="Free-text company background."),
    no_documents: bool = typer.Option(False, "--no-documents", help="Do not include registered documents."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Also write the result as JSON here."),
    config: Optional[Path] = ConfigOption,
    verbose: bool = VerboseOption,
    dry_run: bool = DryRunOption,
) -> None:
    """Run a SWOT analysis of the company."""
    from kachisuji.schemas.swot import SwotRequest

    cfg = _load(config, verbose)
    client = _make_client(dry_run)
    request = SwotRequest(industry=industry or cfg.industry, company_context=company_context)
    asyncio.run(_run_swot(cfg, client, request, use_documents=not no_documents, output=output))


async def _run_swot(cfg: AppConfig, client, request, *, use_documents: bool, output: Optional[Path]) -> None:
    from kachisuji.services.swot import analyze

    session = _open_session(cfg)
    try:
        result = await analyze(session, client, request, settings=cfg.rag, use_documents=use_documents)
    except KachisujiError as exc:
        _fail(exc)
    finally:
        session.close()

    for field, label, style in (
        ("strengths", "強み", "green"),
        ("weaknesses", "弱み", "red"),
        ("opportunities", "機会", "blue"),
        ("threats", "脅威", "yellow"),
    ):
        items = getattr(result.swot, field)
        body = "\n".join(f"- {i.text}" + (f" [dim]({i.source})[/]" if i.source else "") for i in items)
        console.print(Panel(body or "(none)", title=label, style=style))
    if result.summary:
        console.print(Panel(result.summary, title="総括"))
    if output:
        output.write_text(result.model_dump_json(indent=2), encoding="utf-8")
        console.print(f"[green]SWOT written to:[/] {output}")


@app.command()
def rank(
    limit: int = typer.Option(20, "--limit", "-n"),
    min_score: float = typer.Option(0.0, "--min-score"),
    judgment: Optional[str] = typer.Option(None, "--judgment", help="優先投資 / 条件付き / 見送り"),
    finder: Optional[str] = typer.Option(None, "--finder", help="Finder id (defaults to config)."),
    config: Optional[Path] = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Show the strategy ranking."""
    from kachisuji.schemas.finder import get_finder_settings

    cfg = _load(config, verbose)
    session = _open_session(cfg)
    try:
        ranking = _rank(session, cfg, finder_id=finder, limit=limit, min_score=min_score, judgment=judgment)
    finally:
        session.close()
    _print_ranking(ranking, get_finder_settings(finder or cfg.finder_id).result_label)


@app.command()
def decide(
    exploration_id: str = typer.Argument(..., help="Exploration id (or ranking-<id>)."),
    strategy_name: str = typer.Argument(...),
    decision: str = typer.Argument(..., help="adopt / reject / pending"),
    reason: Optional[str] = typer.Option(None, "--reason"),
    note: Optional[str] = typer.Option(None, "--note", help="Feasibility note."),
    config: Optional[Path] = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Record an adopt / reject / pending decision on a strategy."""
    from kachisuji.schemas.decision import DecisionRequest
    from kachisuji.services.decisions import decision_stats, record_decision

    cfg = _load(config, verbose)
    session = _open_session(cfg)
    try:
        row = record_decision(
            session,
            DecisionRequest(
                exploration_id=exploration_id, strategy_name=strategy_name,
                decision=decision, reason=reason, feasibility_note=note,
            ),
            user_id=cfg.user_id,
        )
        stats = decision_stats(session, user_id=cfg.user_id)
    except KachisujiError as exc:
        _fail(exc)
    finally:
        session.close()
    console.print(f"[green]Recorded:[/] {row.strategy_name} → {row.decision}")
    console.print(
        f"  adopted={stats.adopted} rejected={stats.rejected} pending={stats.pending} "
        f"adoption rate={stats.adoption_rate}%"
    )


@app.command()
def archive(
    min_score: float = typer.Option(4.0, "--min-score"),
    finder: Optional[str] = typer.Option(None, "--finder", help="Finder id (defaults to config)."),
    config: Optional[Path] = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Archive high-scoring strategies and record a score baseline."""
    from kachisuji.scoring import archive_top_strategies, record_baseline

    cfg = _load(config, verbose)
    session = _open_session(cfg)
    try:
        result = archive_top_strategies(
            session, min_score=min_score, user_id=cfg.user_id, finder_id=finder or cfg.finder_id,
        )
        baseline = record_baseline(session, run_id="cli-archive")
        session.commit()
    finally:
        session.close()
    console.print(f"[green]Archived[/] {result['archived']} new strategies ({result['total']} qualifying)")
    if baseline is not None and baseline.improvement is not None:
        console.print(f"  top score {baseline.top_score:.2f} ({baseline.improvement:+.1f}% vs previous)")


@app.command()
def evolve(
    mode: str = typer.Option("all", "--mode", "-m", help="mutation / crossover / refutation / all"),
    no_save: bool = typer.Option(False, "--no-save", help="Show the result without storing it."),
    finder: Optional[str] = typer.Option(None, "--finder", help="Finder id (defaults to config)."),
    config: Optional[Path] = ConfigOption,
    verbose: bool = VerboseOption,
    dry_run: bool = DryRunOption,
) -> None:
    """Evolve adopted and top strategies into new ones."""
    from kachisuji.schemas.evolution import EvolveMode

    cfg = _load(config, verbose)
    try:
        evolve_mode = EvolveMode(mode)
    except ValueError:
        console.print(f"[red]Unknown mode:[/] {mode}")
        raise typer.Exit(code=1)
    client = _make_client(dry_run)
    asyncio.run(_run_evolve(cfg, client, evolve_mode, save=not no_save, finder_id=finder or cfg.finder_id))


async def _run_evolve(cfg: AppConfig, client, mode, *, save: bool, finder_id: str) -> None:
    from kachisuji.services.evolution import evolve as run_evolution
    from kachisuji.shared.progress import StepProgress

    session = _open_session(cfg)
    try:
        with StepProgress() as progress:
            progress.start("戦略進化")
            try:
                result = await run_evolution(
                    session, client, mode, save=save, finder_id=finder_id, user_id=cfg.user_id, settings=cfg.rag,
                )
            except Exception as exc:
                progress.fail("戦略進化", str(exc))
                _fail(exc)
            progress.finish("戦略進化", f"{len(result.strategies)} strategies")
    finally:
        session.close()

    table = Table(title=f"進化した戦略 (sources: {result.source_count})")
    table.add_column("タイプ")
    table.add_column("戦略")
    table.add_column("元の戦略")
    table.add_column("総合", justify="right")
    for s in result.strategies:
        total = f"{s.total_score:.2f}" if s.total_score is not None else "—"
        table.add_row(s.evolve_type, s.name, ", ".join(s.source_strategies), total)
    console.print(table)
    if result.exploration_id is not None:
        console.print(f"[green]Saved as exploration #{result.exploration_id}[/], archived {result.archived_count}")


@app.command()
def export(
    export_type: str = typer.Argument(..., help="services / assets / history"),
    fmt: str = typer.Option("csv", "--format", "-f", help="csv / json"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="File to write (defaults to stdout)."),
    config: Optional[Path] = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Export core data or exploration history."""
    from kachisuji.services.export import export_text

    cfg = _load(config, verbose)
    session = _open_session(cfg)
    try:
        text = export_text(session, export_type, fmt, user_id=cfg.user_id)
    except KachisujiError as exc:
        _fail(exc)
    finally:
        session.close()
    if output is None:
        typer.echo(text)
        return
    output.write_text(text, encoding="utf-8")
    console.print(f"[green]Exported to:[/] {output}")


@app.command("import")
def import_data(
    import_type: str = typer.Argument(..., help="services / assets"),
    file: Path = typer.Argument(..., exists=True, dir_okay=False),
    config: Optional[Path] = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Import services or assets from a CSV or JSON file."""
    from kachisuji.services.export import import_rows, parse_import_rows

    cfg = _load(config, verbose)
    fmt = "json" if file.suffix.lower() == ".json" else "csv"
    session = _open_session(cfg)
    try:
        rows = parse_import_rows(file.read_text(encoding="utf-8"), fmt)
        result = import_rows(session, import_type, rows)
    except (KachisujiError, ValueError) as exc:
        _fail(exc)
    finally:
        session.close()
    console.print(f"[green]Imported[/] {result['imported']} ({result['skipped']} skipped)")


@app.command()
def report(
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output directory (defaults to config)."),
    finder: Optional[str] = typer.Option(None, "--finder", help="Finder id (defaults to config)."),
    swot_file: Optional[Path] = typer.Option(None, "--swot", help="SWOT JSON written by `kachisuji swot -o`."),
    limit: int = typer.Option(50, "--limit", "-n"),
    config: Optional[Path] = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Write the ranking as a Markdown report and an HTML dashboard."""
    from kachisuji.output.dashboard import render_dashboard
    from kachisuji.output.markdown import render_markdown_report
    from kachisuji.schemas.finder import get_finder_settings
    from kachisuji.schemas.swot import SwotResult
    from kachisuji.scoring import get_baseline_history
    from kachisuji.services.decisions import decision_stats
    from kachisuji.services.exploration import list_history

    cfg = _load(config, verbose)
    finder_settings = get_finder_settings(finder or cfg.finder_id)
    swot_result = None
    if swot_file is not None:
        try:
            swot_result = SwotResult.model_validate_json(swot_file.read_text(encoding="utf-8"))
        except Exception as exc:
            console.print(f"[red]Could not read SWOT file:[/] {exc}")
            raise typer.Exit(code=1)

    session = _open_session(cfg)
    try:
        ranking = _rank(session, cfg, finder_id=finder_settings.id, limit=limit)
        latest = next(iter(list_history(session, user_id=cfg.user_id, limit=1, kind="explore")), None)
        if latest is not None and latest.status != "completed":
            latest = None
        baselines = get_baseline_history(session)
        stats = decision_stats(session, user_id=cfg.user_id)

        out_dir = output or Path(cfg.output_directory)
        out_dir.mkdir(parents=True, exist_ok=True)

        md_path = out_dir / "kachisuji-report.md"
        md_path.write_text(
            render_markdown_report(
                ranking, finder=finder_settings, exploration=latest, swot=swot_result,
                company_name=cfg.company_name,
            ),
            encoding="utf-8",
        )
        console.print(f"[green]Markdown report written to:[/] {md_path}")

        html_path = out_dir / "kachisuji-dashboard.html"
        html_path.write_text(
            render_dashboard(
                ranking, finder=finder_settings, baselines=baselines, decision_stats=stats,
                swot=swot_result, company_name=cfg.company_name,
            ),
            encoding="utf-8",
        )
        console.print(f"[green]HTML dashboard written to:[/] {html_path}")

        json_path = out_dir / "ranking.json"
        json_path.write_text(
            json.dumps(ranking.model_dump(mode="json"), ensure_ascii=False, indent=2), encoding="utf-8",
        )
    finally:
        session.close()


@app.command("clear-history")
def clear_history(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
    config: Optional[Path] = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Delete all of the configured user's explorations."""
    from kachisuji.services.exploration import clear_history as run_clear
    from kachisuji.shared.progress import confirm

    cfg = _load(config, verbose)
    if not yes and not confirm(f"Delete every exploration of user '{cfg.user_id}'?"):
        console.print("Aborted.")
        raise typer.Exit(code=1)
    session = _open_session(cfg)
    try:
        deleted = run_clear(session, user_id=cfg.user_id)
    finally:
        session.close()
    console.print(f"[green]Deleted[/] {deleted} explorations")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port", "-p"),
    config: Optional[Path] = ConfigOption,
    verbose: bool = VerboseOption,
    dry_run: bool = DryRunOption,
) -> None:
    """Serve the HTTP API with uvicorn."""
    import uvicorn

    from kachisuji.api.app import create_app

    cfg = _load(config, verbose)
    client = _make_client(dry_run)
    uvicorn.run(create_app(cfg, client), host=host, port=port, log_level="debug" if verbose else "info")


if __name__ == "__main__":
    app()
