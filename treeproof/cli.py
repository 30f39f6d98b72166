"""Typer admin CLI: verify a photo, classify labels offline, fingerprint files, inspect submissions."""

import asyncio
import json
from datetime import date
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from treeproof.ai.factory import get_labeler
from treeproof.core.config import get_config
from treeproof.core.image_probe import probe_image_format
from treeproof.core.logging import get_flight_logger, setup_logging
from treeproof.repository.submission_repo import SubmissionRepository
from treeproof.verification.classifier import ClassificationOutcome, classify
from treeproof.verification.errors import ValidationError
from treeproof.verification.fingerprint import fingerprint_file, is_fingerprint
from treeproof.verification.pipeline import VerificationPipeline
from treeproof.verification.schema import Submission, Verdict, VerdictStatus

app = typer.Typer(no_args_is_help=True)
submissions_app = typer.Typer(help="Inspect accepted submissions.")
app.add_typer(submissions_app, name="submissions")


def _get_session_factory():
    from sqlalchemy import create_engine
    from sqlalchemy.orm import sessionmaker

    cfg = get_config()
    engine = create_engine(cfg.database_url, pool_pre_ping=True)
    return sessionmaker(engine, autocommit=False, autoflush=False, expire_on_commit=False)


def _print_verdict(verdict: Verdict, as_json: bool) -> None:
    if as_json:
        typer.echo(json.dumps(verdict.to_response()))
        return
    color = typer.colors.GREEN if verdict.success else typer.colors.RED
    typer.secho(f"{verdict.status.value}: {verdict.message}", fg=color)
    if verdict.fingerprint:
        typer.echo(f"Fingerprint: {verdict.fingerprint}")
    if verdict.labels:
        typer.echo("Labels: " + ", ".join(verdict.labels))
    if verdict.matched_keywords:
        typer.echo("Matched: " + ", ".join(verdict.matched_keywords))
    if verdict.cause:
        typer.echo(f"Cause: {verdict.cause}")
    if verdict.submission_id is not None:
        typer.echo(f"Submission id: {verdict.submission_id}")


async def _run_pipeline(submission: Submission) -> Verdict:
    cfg = get_config()
    labeler = get_labeler(cfg.labeler, cfg)
    try:
        pipeline = VerificationPipeline(
            labeler,
            SubmissionRepository(_get_session_factory()),
            cfg.keyword_policy(),
            label_timeout_seconds=cfg.label_timeout_seconds,
        )
        return await pipeline.verify(submission)
    finally:
        await labeler.aclose()


@app.command("verify")
def verify(
    image: Path = typer.Argument(..., exists=True, dir_okay=False, help="Photo to verify"),
    user_id: str = typer.Option(..., "--user-id", help="Submitting user id"),
    species: str | None = typer.Option(None, "--species", help="Tree species"),
    planted_on: str | None = typer.Option(None, "--planted-on", help="Planting date (YYYY-MM-DD)"),
    lat: float | None = typer.Option(None, "--lat", help="Latitude"),
    lng: float | None = typer.Option(None, "--lng", help="Longitude"),
    as_json: bool = typer.Option(False, "--json", help="Print the JSON response body"),
    forensics: bool = typer.Option(False, "--forensics", help="Dump the flight log on upstream errors"),
) -> None:
    """Run the full pipeline on a photo: fingerprint, duplicate check, labels, classification."""
    setup_logging()
    data = image.read_bytes()
    try:
        probe_image_format(data)
        planted = date.fromisoformat(planted_on) if planted_on else None
    except (ValidationError, ValueError) as e:
        typer.secho(str(e), fg=typer.colors.RED)
        raise typer.Exit(2)

    submission = Submission(
        image=data,
        user_id=user_id,
        species=species,
        planted_on=planted,
        latitude=lat,
        longitude=lng,
    )
    verdict = asyncio.run(_run_pipeline(submission))
    _print_verdict(verdict, as_json)

    if verdict.status == VerdictStatus.rejected_upstream_error:
        if forensics:
            flight = get_flight_logger()
            if flight is not None:
                path = flight.dump("verify", verdict.fingerprint)
                typer.echo(f"Flight log written to {path}")
        raise typer.Exit(1)
    if not verdict.success:
        raise typer.Exit(3)


@app.command("classify")
def classify_labels(
    labels: list[str] = typer.Argument(..., help="Labels to classify (e.g. 'tree' 'oak leaf')"),
    as_json: bool = typer.Option(False, "--json", help="Print the JSON response body"),
) -> None:
    """Apply the configured keyword policy to labels, without calling any service."""
    policy = get_config().keyword_policy()
    classification = classify(labels, policy)
    _print_verdict(Verdict.from_classification(classification), as_json)
    if not as_json and classification.negative_matches:
        typer.echo("Negative: " + ", ".join(classification.negative_matches))
    if classification.outcome != ClassificationOutcome.accept:
        raise typer.Exit(3)


@app.command("fingerprint")
def fingerprint_cmd(
    files: list[Path] = typer.Argument(..., exists=True, dir_okay=False, help="Files to fingerprint"),
) -> None:
    """Print the SHA-256 fingerprint of each file (same value the pipeline stores)."""
    for path in files:
        typer.echo(f"{fingerprint_file(path)}  {path}")


@app.command("keywords")
def keywords() -> None:
    """Show the effective keyword policy."""
    policy = get_config().keyword_policy()
    table = Table(title=None)
    table.add_column("Positive")
    table.add_column("Strong negative")
    pos, neg = policy.positive_keywords, policy.strong_negative_keywords
    for i in range(max(len(pos), len(neg))):
        table.add_row(pos[i] if i < len(pos) else "", neg[i] if i < len(neg) else "")
    Console().print(table)


@submissions_app.command("list")
def submissions_list(
    limit: int = typer.Option(20, "--limit", min=1, help="Max rows"),
    user_id: str | None = typer.Option(None, "--user-id", help="Also show this user's total"),
) -> None:
    """List recently accepted submissions (Id | Fingerprint | User | Species | Created)."""
    repo = SubmissionRepository(_get_session_factory())
    rows = repo.list_recent(limit)
    if not rows:
        typer.echo("No accepted submissions.")
    else:
        table = Table(title=None)
        table.add_column("Id")
        table.add_column("Fingerprint")
        table.add_column("User")
        table.add_column("Species")
        table.add_column("Created")
        for row in rows:
            table.add_row(
                str(row.id),
                row.fingerprint[:16],
                row.user_id,
                row.species or "",
                str(row.created_at),
            )
        Console().print(table)
    if user_id is not None:
        typer.echo(f"User {user_id}: {repo.count_by_user(user_id)} accepted submission(s).")


@submissions_app.command("show")
def submissions_show(
    fp: str = typer.Argument(..., metavar="FINGERPRINT", help="SHA-256 fingerprint of the photo"),
) -> None:
    """Show the accepted submission stored under a fingerprint."""
    fp = fp.strip().lower()
    if not is_fingerprint(fp):
        typer.secho(f"Not a fingerprint: {fp}", fg=typer.colors.RED)
        raise typer.Exit(2)
    row = SubmissionRepository(_get_session_factory()).get_by_fingerprint(fp)
    if row is None:
        typer.echo(f"No accepted submission for {fp}")
        raise typer.Exit(1)
    typer.echo(f"Id: {row.id}")
    typer.echo(f"User: {row.user_id}")
    if row.species:
        typer.echo(f"Species: {row.species}")
    typer.echo("Labels: " + ", ".join(row.labels))
    typer.echo("Matched: " + ", ".join(row.matched_keywords))
    typer.echo(f"Created: {row.created_at}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
