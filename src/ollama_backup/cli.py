"""CLI entry point for ollama-backup."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import NoReturn

import click
from pydantic import ValidationError

from .config import BackupSettings
from .core import ModelBackupWriter, ModelRestorer
from .errors import OllamaBackupError, VersionAmbiguousError
from .inventory import ModelInventory
from .models import ModelList

_DIGEST_WIDTH = 40


def _truncate(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def _fail(exc: OllamaBackupError) -> NoReturn:
    click.echo(f"Error: {exc}", err=True)
    if isinstance(exc, VersionAmbiguousError):
        click.echo("Available versions:", err=True)
        for name in exc.versions:
            click.echo(f"- {name}", err=True)
    sys.exit(1)


def render_text(model_list: ModelList, details: bool = False) -> str:
    """Render the inventory as the table printed by ``list``."""
    lines = [
        f"Found {model_list.registry_count} registries, "
        f"{model_list.model_count} models, {model_list.version_count} versions",
        "",
    ]
    if not model_list.registries:
        lines.append("No models found in the manifests directory")
        return "\n".join(lines) + "\n"

    row = "  {:<30}  {:<15}  {:<40}"
    for registry in model_list.registries:
        lines.append(f"Registry: {registry.name}")
        lines.append(row.format("MODEL", "VERSIONS", "DIGEST").rstrip())
        lines.append(row.format("-----", "--------", "------").rstrip())
        for model in registry.models:
            for index, version in enumerate(model.versions):
                lines.append(
                    row.format(
                        model.name if index == 0 else "",
                        version.name,
                        _truncate(version.digest, _DIGEST_WIDTH),
                    ).rstrip()
                )
            if details:
                for version in model.versions:
                    lines.append(f"    Version: {version.name}")
                    lines.append(f"    Path: {version.path}")
                    lines.append(f"    Size: {version.size} bytes")
                    lines.append(f"    Total size: {version.total_size} bytes")
                    lines.append(f"    Blobs: {version.blobs_count}")
                    lines.append(f"    Digest: {version.digest}")
                    for key in ("family", "license"):
                        value = version.details.get(key)
                        if isinstance(value, str):
                            lines.append(f"    {key.capitalize()}: {value}")
                    lines.append("")
            lines.append("")
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"


@click.group()
@click.version_option(package_name="ollama-backup")
@click.option(
    "--ollama-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Ollama data directory [default: $OLLAMA_BACKUP_OLLAMA_DIR or ~/.ollama].",
)
@click.option("-v", "--verbose", is_flag=True, help="Log progress to stderr.")
@click.pass_context
def main(ctx: click.Context, ollama_dir: Path | None, verbose: bool) -> None:
    """Back up and restore Ollama models."""
    try:
        settings = BackupSettings()
    except ValidationError as exc:
        click.echo(f"Error: invalid settings: {exc}", err=True)
        sys.exit(1)
    if ollama_dir is not None:
        settings = settings.model_copy(update={"ollama_dir": ollama_dir})
    logging.basicConfig(
        level=logging.INFO if verbose else settings.log_level,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = settings


@main.command("list")
@click.option(
    "--output",
    "-o",
    "output_format",
    type=click.Choice(["text", "json"], case_sensitive=False),
    default="text",
    show_default=True,
    help="Output format.",
)
@click.option(
    "--details", "-d", is_flag=True, help="Show detailed information per version."
)
@click.pass_obj
def list_command(settings: BackupSettings, output_format: str, details: bool) -> None:
    """List all models in the Ollama directory."""
    try:
        model_list = ModelInventory(settings.ollama_dir).enumerate()
    except OllamaBackupError as exc:
        _fail(exc)

    if output_format.lower() == "json":
        click.echo(model_list.model_dump_json(indent=2))
    else:
        click.echo(render_text(model_list, details), nl=False)


@main.command("backup")
@click.argument("model_spec", metavar="MODEL[:VERSION]")
@click.option(
    "--dir",
    "-d",
    "backup_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory to save the backup [default: ./backup].",
)
@click.option(
    "--zip",
    "-z",
    "compress",
    is_flag=True,
    help="Zip the backup and delete the original directory.",
)
@click.pass_obj
def backup_command(
    settings: BackupSettings,
    model_spec: str,
    backup_dir: Path | None,
    compress: bool,
) -> None:
    """Back up a model version to a backup directory."""
    writer = ModelBackupWriter(settings.ollama_dir)
    try:
        record = writer.backup(
            model_spec, backup_dir or settings.backup_dir, compress=compress
        )
    except OllamaBackupError as exc:
        _fail(exc)

    click.echo(f"Model '{record.model}:{record.version}' backed up successfully")
    click.echo(f"  Registry : {record.registry}")
    click.echo(f"  Blobs    : {len(record.blobs)}")
    click.echo(f"  Backup   : {record.path}")


@main.command("restore")
@click.argument("name")
@click.option(
    "--backup-dir",
    "-d",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory to restore from [default: ./backup].",
)
@click.option(
    "--overwrite", "-o", is_flag=True, help="Overwrite existing files during restore."
)
@click.pass_obj
def restore_command(
    settings: BackupSettings,
    name: str,
    backup_dir: Path | None,
    overwrite: bool,
) -> None:
    """Restore a model from a backup directory, zip, or MODEL[:VERSION]."""
    restorer = ModelRestorer(settings.ollama_dir)
    source_dir = backup_dir or settings.backup_dir
    try:
        record = restorer.restore(name, source_dir, overwrite=overwrite)
    except OllamaBackupError as exc:
        _fail(exc)

    click.echo(f"Model '{name}' restored successfully from '{record.source}'.")
    click.echo(f"  Blobs     : {record.blobs_restored}")
    click.echo(f"  Manifests : {record.manifests_restored}")


if __name__ == "__main__":
    main()
