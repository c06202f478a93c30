# cli.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Optional

import typer
import click

from .core import get_s3_client, list_object_summaries
from .errors import InvalidMoveRequest, S3MoverError, setup_logging
from .executor import BATCH_TIMEOUT
from .filters import apply_filter
from .models import FilterSpec, Location, MoveRequest, StorageClass
from .move import move_with_filter
from .utils import human_bytes, parse_csv, parse_s3_uri, read_json, read_yaml

app = typer.Typer(add_completion=False, help="Filtered parallel S3 move")

# ---------------- Settings kept in Typer context ----------------
@dataclass
class Settings:
    verbose: bool = False
    aws_profile: Optional[str] = None
    aws_region: Optional[str] = None

DEFAULT_CONFIG = "config/config.yaml"

# ---------------- Helpers ----------------
def _load_cfg(config_path: Optional[str]) -> dict:
    """
    Load YAML config if present, otherwise return {}.
    Never crash on missing/empty config.
    """
    path = config_path or DEFAULT_CONFIG
    try:
        cfg = read_yaml(path)
    except FileNotFoundError:
        return {}
    if not cfg:
        return {}
    return cfg

def _client_from_cfg(cfg: dict, settings: Settings, max_workers: Optional[int] = None):
    """
    Resolve AWS auth/region with priority:
    CLI flags -> ENV (handled inside boto3) -> YAML.
    """
    aws = (cfg.get("aws") or {}) if cfg else {}
    return get_s3_client(
        aws_profile=settings.aws_profile or aws.get("profile"),
        aws_access_key_id=aws.get("access_key_id"),
        aws_secret_access_key=aws.get("secret_access_key"),
        region_name=settings.aws_region or aws.get("region"),
        retries_max_attempts=aws.get("retries_max_attempts", 8),
        retries_mode=aws.get("retries_mode", "standard"),
        connect_timeout=aws.get("connect_timeout", 10),
        read_timeout=aws.get("read_timeout", 60),
        max_pool_connections=max(aws.get("max_pool_connections", 50), (max_workers or 0) + 1),
    )

def _opt(flag, mcfg: dict, key: str, default):
    """CLI flag -> `move:` section -> default."""
    if flag is not None:
        return flag
    value = mcfg.get(key)
    return default if value is None else value

def _build_request(
    mcfg: dict,
    request_file: Optional[str],
    source: Optional[str],
    target: Optional[str],
    exclude: Optional[str],
    min_size: Optional[int],
    max_size: Optional[int],
    storage_class: Optional[str],
    replace: Optional[str],
    replacement: Optional[str],
    delete_source: Optional[bool],
) -> MoveRequest:
    """
    A JSON request body (--request) wins outright; otherwise CLI flags
    override the `move:` section of the YAML config.
    """
    if request_file:
        return MoveRequest.from_dict(read_json(request_file))

    src_uri = source or mcfg.get("src")
    dst_uri = target or mcfg.get("dst")
    if not src_uri or not dst_uri:
        raise typer.BadParameter("Provide --src and --dst or set move.src and move.dst in config.yaml")
    try:
        sb, sp = parse_s3_uri(src_uri)
        tb, tp = parse_s3_uri(dst_uri)
    except ValueError as e:
        raise typer.BadParameter(str(e))

    excluded = parse_csv(exclude) if exclude is not None else (mcfg.get("exclude") or [])
    sc = storage_class or mcfg.get("storage_class")
    return MoveRequest(
        source=Location(sb, sp),
        destination=Location(tb, tp),
        filter=FilterSpec.build(
            excluded,
            min_size if min_size is not None else mcfg.get("min_size"),
            max_size if max_size is not None else mcfg.get("max_size"),
        ),
        storage_class_override=StorageClass(sc.upper()) if sc else None,
        replace_token=replace or mcfg.get("replace"),
        replacement_token=replacement or mcfg.get("replacement"),
        delete_source=delete_source if delete_source is not None else bool(mcfg.get("delete_source", False)),
    )

# ---------------- Root options (global) ----------------
@app.callback()
def _root(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
    profile: Optional[str] = typer.Option(None, "--profile", help="AWS profile name"),
    region: Optional[str] = typer.Option(None, "--region", help="AWS region (e.g. us-east-1)"),
    logfile: Optional[str] = typer.Option(None, "--logfile", help="Also write logs to this file"),
):
    """
    Set up global Settings and logging once.
    """
    level = logging.DEBUG if verbose else logging.INFO
    setup_logging(level=level, logfile=logfile)

    ctx.obj = Settings(
        verbose=verbose,
        aws_profile=profile,
        aws_region=region,
    )

# ---------------- MOVE ----------------
@app.command("move")
def cmd_move(
    ctx: typer.Context,
    source: Optional[str] = typer.Option(None, "--src", help="Source S3 URI (e.g. s3://bucket/prefix/)"),
    target: Optional[str] = typer.Option(None, "--dst", help="Destination S3 URI"),
    exclude: Optional[str] = typer.Option(None, help="Comma-separated name fragments to skip (case-sensitive)"),
    min_size: Optional[int] = typer.Option(None, "--min-size", help="Minimum object size in bytes (inclusive)"),
    max_size: Optional[int] = typer.Option(None, "--max-size", help="Maximum object size in bytes (inclusive)"),
    storage_class: Optional[str] = typer.Option(
        None,
        "--storage-class",
        help="Target storage class (default: keep the source object's class)",
        click_type=click.Choice([c.value for c in StorageClass], case_sensitive=False),
    ),
    replace: Optional[str] = typer.Option(None, "--replace", help="Text to replace in destination keys"),
    replacement: Optional[str] = typer.Option(None, "--replacement", help="Replacement text for --replace"),
    delete_source: Optional[bool] = typer.Option(
        None, "--delete-source/--keep-source", help="Delete source objects that were copied"
    ),
    skip_archived: Optional[bool] = typer.Option(None, "--skip-archived/--include-archived", help="Ignore GLACIER/DEEP_ARCHIVE objects"),
    dry_run: Optional[bool] = typer.Option(None, "--dry-run/--no-dry-run", help="Plan only; do not modify anything"),
    max_workers: Optional[int] = typer.Option(None, help="Parallel workers (default: CPU count + 1)"),
    timeout: Optional[float] = typer.Option(None, help="Seconds to wait for the whole batch (default: 3600)"),
    progress: Optional[bool] = typer.Option(None, "--progress/--no-progress", help="Show progress bar"),
    show_errors: bool = typer.Option(False, "--show-errors/--no-show-errors", help="Print failed keys"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
    request_file: Optional[str] = typer.Option(None, "--request", help="JSON move request body"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
):
    log = logging.getLogger("s3_mover.cli.move")
    cfg = _load_cfg(config)
    mcfg = (cfg.get("move") or {}) if cfg else {}

    try:
        request = _build_request(
            mcfg, request_file, source, target, exclude, min_size, max_size,
            storage_class, replace, replacement, delete_source,
        )
    except InvalidMoveRequest as e:
        raise typer.BadParameter(str(e))
    workers = max_workers or mcfg.get("max_workers")
    timeout = _opt(timeout, mcfg, "timeout", BATCH_TIMEOUT)
    dry_run = bool(_opt(dry_run, mcfg, "dry_run", False))
    s3 = _client_from_cfg(cfg, ctx.obj, workers)

    try:
        res = move_with_filter(
            s3,
            request,
            max_workers=workers,
            timeout=float(timeout),
            progress=bool(_opt(progress, mcfg, "progress", False)),
            dry_run=dry_run,
            include_archived=not _opt(skip_archived, mcfg, "skip_archived", False),
            delete_batch_size=mcfg.get("delete_batch_size", 1000),
        )
    except S3MoverError as e:
        log.error("%s", e)
        raise typer.Exit(code=2)

    if dry_run:
        for c in res.candidates:
            typer.echo(f"[PLAN] {c.key} ({human_bytes(c.size)}, {c.storage_class.value})")
        typer.echo(f"Planned: {len(res.candidates)} objects (dry-run)")
        return

    if as_json:
        typer.echo(json.dumps(res.to_response(), indent=2))
    else:
        typer.echo(
            f"Moved: {len(res.moved_keys)}, Skipped(existing): {len(res.skipped_keys)}, "
            f"Failed: {len(res.errors)}, Candidates: {len(res.candidates)}, "
            f"Timed out: {res.timed_out}, Elapsed: {res.elapsed}"
        )
        if request.delete_source:
            typer.echo(f"Deleted source: {len(res.deleted_keys)}, Delete errors: {len(res.delete_errors)}")

    if show_errors:
        for k, reason in res.errors.items():
            typer.echo(f"[COPY ERROR] {k}: {reason}")
        for k, reason in res.delete_errors.items():
            typer.echo(f"[DELETE ERROR] {k}: {reason}")

    if not res.success or res.delete_errors:
        raise typer.Exit(code=1)

# ---------------- LS ----------------
@app.command("ls")
def cmd_ls(
    ctx: typer.Context,
    source: str = typer.Argument(..., help="S3 URI to list (e.g. s3://bucket/prefix/)"),
    exclude: Optional[str] = typer.Option(None, help="Comma-separated name fragments to skip"),
    min_size: Optional[int] = typer.Option(None, "--min-size", help="Minimum size in bytes (inclusive)"),
    max_size: Optional[int] = typer.Option(None, "--max-size", help="Maximum size in bytes (inclusive)"),
    folders: bool = typer.Option(False, "--folders/--no-folders", help="Include directory markers"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
):
    """List what a move from SOURCE would pick up with the given filters."""
    cfg = _load_cfg(config)
    s3 = _client_from_cfg(cfg, ctx.obj)
    try:
        bucket, prefix = parse_s3_uri(source)
    except ValueError as e:
        raise typer.BadParameter(str(e))

    try:
        summaries = list_object_summaries(s3, bucket, prefix, include_folders=folders)
    except S3MoverError as e:
        logging.getLogger("s3_mover.cli.ls").error("%s", e)
        raise typer.Exit(code=2)

    accepted, rejected = apply_filter(summaries, FilterSpec.build(parse_csv(exclude), min_size, max_size), prefix)
    total = 0
    for s in accepted:
        total += s.size
        typer.echo(f"{s.size:>14}  {s.storage_class.value:<20} {s.key}")
    typer.echo(f"{len(accepted)} objects, {human_bytes(total)} ({len(rejected)} filtered out)")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
