"""Core logic for ollama-backup."""

from __future__ import annotations

import logging
import os
import shutil
import time
import zipfile
from pathlib import Path

from .errors import (
    BackupNotFoundError,
    ConflictError,
    InvalidBackupStructureError,
    ModelNotFoundError,
    StorageIOError,
    VersionAmbiguousError,
    VersionNotFoundError,
)
from .inventory import ModelInventory, iter_layers
from .models import BackupRecord, Model, ModelVersion, RestoreRecord

__all__ = [
    "ModelBackupWriter",
    "ModelRestorer",
    "parse_model_spec",
    "select_version",
    "unzip_backup",
    "zip_directory",
]

logger = logging.getLogger(__name__)

_BLOBS_DIRNAME = "blobs"
_LIBRARY_DIRNAME = "library"
_MANIFESTS_DIRNAME = "manifests"
_ZIP_SUFFIX = ".zip"
_BACKUP_MARKER = "--backup-"


def parse_model_spec(model_spec: str) -> tuple[str, str | None]:
    """Split ``name`` or ``name:version``; an empty version counts as none."""
    name, _, version = model_spec.partition(":")
    return name, version or None


def select_version(model: Model, version: str | None) -> ModelVersion:
    """
    Pick the version of *model* to operate on.

    Without an explicit *version* the single available version is used;
    several candidates raise ``VersionAmbiguousError``.
    """
    if version is None:
        if not model.versions:
            raise VersionNotFoundError(model.name)
        if len(model.versions) > 1:
            raise VersionAmbiguousError(model.name, [v.name for v in model.versions])
        selected = model.versions[0]
        logger.info("Using version '%s' for model '%s'", selected.name, model.name)
        return selected

    selected = model.get_version(version)
    if selected is None:
        raise VersionNotFoundError(model.name, version)
    return selected


def _split_unit_name(unit: str, model: str) -> tuple[str, int] | None:
    """Return (version, token) when *unit* is named ``{model}--{version}--backup-{token}``."""
    prefix = f"{model}--"
    if not unit.startswith(prefix):
        return None
    version, marker, token = unit[len(prefix) :].rpartition(_BACKUP_MARKER)
    if not marker or not version or not token.isdigit():
        return None
    return version, int(token)


def _copy_file(src: Path, dst: Path, operation: str = "copy") -> None:
    try:
        shutil.copyfile(src, dst)
    except OSError as exc:
        raise StorageIOError(operation, src, exc) from exc


def zip_directory(source_dir: Path | str, target_file: Path | str) -> Path:
    """
    Write every entry under *source_dir* into the zip *target_file*.

    Entry names are relative, POSIX-style; directories are stored as
    zero-length entries with a trailing ``/`` and files are deflated.
    A partially written archive is removed when packaging fails.
    """
    source = Path(source_dir)
    target = Path(target_file)
    try:
        with zipfile.ZipFile(target, "w", strict_timestamps=False) as zf:
            for root, dirs, files in os.walk(source):
                dirs.sort()
                root_path = Path(root)
                for dirname in dirs:
                    path = root_path / dirname
                    info = zipfile.ZipInfo.from_file(
                        path,
                        path.relative_to(source).as_posix(),
                        strict_timestamps=False,
                    )
                    info.compress_type = zipfile.ZIP_STORED
                    zf.writestr(info, b"")
                for filename in sorted(files):
                    path = root_path / filename
                    zf.write(
                        path,
                        path.relative_to(source).as_posix(),
                        compress_type=zipfile.ZIP_DEFLATED,
                    )
    except OSError as exc:
        target.unlink(missing_ok=True)
        raise StorageIOError("create zip file", target, exc) from exc

    logger.info("Created zip file: %s", target)
    return target


def unzip_backup(zip_file: Path | str, dest_dir: Path | str) -> Path:
    """
    Extract *zip_file* into ``dest_dir/<zip name without .zip>``.

    Any existing directory of that name is removed first.
    """
    zip_path = Path(zip_file)
    name = zip_path.name
    if name.endswith(_ZIP_SUFFIX):
        name = name[: -len(_ZIP_SUFFIX)]
    extract_dir = Path(dest_dir) / name

    try:
        with zipfile.ZipFile(zip_path, "r") as zf:
            if extract_dir.is_dir():
                shutil.rmtree(extract_dir)
            elif extract_dir.exists():
                extract_dir.unlink()
            extract_dir.mkdir(parents=True)
            zf.extractall(extract_dir)
    except (OSError, zipfile.BadZipFile) as exc:
        raise StorageIOError("unzip backup", zip_path, exc) from exc

    logger.info("Unzipped backup to: %s", extract_dir)
    return extract_dir


class ModelBackupWriter:
    """
    Copies one model version out of an Ollama store into a backup unit.

    Backup layout::

        {model}--{version}--backup-{unix seconds}/
            blobs/{algorithm}-{hex}
            library/manifests/{registry}/library/{model}/{version}
    """

    def __init__(self, ollama_dir: Path | str) -> None:
        self.inventory = ModelInventory(ollama_dir)

    def backup(
        self, model_spec: str, backup_dir: Path | str, compress: bool = False
    ) -> BackupRecord:
        """
        Back up ``model`` or ``model:version`` into *backup_dir*.

        With *compress* the unit is zipped to ``<unit>.zip`` and the
        directory is deleted only after the archive was written.
        """
        name, requested = parse_model_spec(model_spec)
        model_list = self.inventory.enumerate()
        model = model_list.find_model(name)
        if model is None:
            raise ModelNotFoundError(name)
        version = select_version(model, requested)

        logger.info(
            "Found model: %s, version: %s, registry: %s, manifest path: %s",
            model.name,
            version.name,
            model.registry,
            version.path,
        )

        backup_id, backup_path = self._allocate(Path(backup_dir), model.name, version.name)
        blobs_dir = backup_path / _BLOBS_DIRNAME
        try:
            blobs_dir.mkdir(parents=True)
        except OSError as exc:
            raise StorageIOError("create backup directory", blobs_dir, exc) from exc

        copied: list[str] = []
        for layer in iter_layers(version.details):
            blob = self.inventory.resolve(layer)
            if blob is None:
                logger.warning("Skipping layer: no 'from' or 'digest' field found")
                continue
            _copy_file(blob.source_path, blobs_dir / blob.file_name, "copy blob file")
            copied.append(blob.file_name)
            logger.info("Copied blob: %s", blob.file_name)

        manifest_dir = (
            backup_path
            / _LIBRARY_DIRNAME
            / _MANIFESTS_DIRNAME
            / model.registry
            / _LIBRARY_DIRNAME
            / model.name
        )
        try:
            manifest_dir.mkdir(parents=True)
        except OSError as exc:
            raise StorageIOError("create manifest directory", manifest_dir, exc) from exc
        # Copied verbatim, not re-serialized.
        _copy_file(Path(version.path), manifest_dir / version.name, "write manifest file")
        logger.info(
            "Saved manifest for %s:%s from registry %s in backup %s",
            model.name,
            version.name,
            model.registry,
            backup_id,
        )

        record = BackupRecord(
            model=model.name,
            version=version.name,
            registry=model.registry,
            backup_id=backup_id,
            path=backup_path,
            blobs=copied,
        )
        if not compress:
            return record

        zip_path = zip_directory(backup_path, backup_path.with_name(backup_path.name + _ZIP_SUFFIX))
        try:
            shutil.rmtree(backup_path)
        except OSError as exc:
            raise StorageIOError("delete original backup directory", backup_path, exc) from exc
        logger.info("Original backup directory deleted after successful zip creation")
        return record.model_copy(update={"path": zip_path, "compressed": True})

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _allocate(backup_dir: Path, model: str, version: str) -> tuple[str, Path]:
        """Return a backup id and unit path not yet used as a directory or zip."""
        token = int(time.time())
        while True:
            backup_id = f"backup-{token}"
            path = backup_dir / f"{model}--{version}--{backup_id}"
            zipped = path.with_name(path.name + _ZIP_SUFFIX)
            if not path.exists() and not zipped.exists():
                return backup_id, path
            token += 1


class ModelRestorer:
    """
    Replays a backup unit into an Ollama store.

    Blobs are copied before manifests so the store never holds a manifest
    whose blobs are still missing.
    """

    def __init__(self, ollama_dir: Path | str) -> None:
        self.ollama_dir = Path(ollama_dir)
        self.blobs_dir = self.ollama_dir / "models" / _BLOBS_DIRNAME
        self.manifests_dir = self.ollama_dir / "models" / _MANIFESTS_DIRNAME

    def restore(
        self, name: str, backup_dir: Path | str, overwrite: bool = False
    ) -> RestoreRecord:
        """
        Restore the backup unit *name* from *backup_dir*.

        *name* is a unit directory, a ``.zip`` archive, or a
        ``model[:version]`` spec matched against unit names.  Without
        *overwrite* nothing is copied if any destination file exists.
        """
        source = self.locate(name, Path(backup_dir))
        if source.name.endswith(_ZIP_SUFFIX):
            source = unzip_backup(source, source.parent)

        if not source.is_dir():
            raise InvalidBackupStructureError(f"backup source is not a directory: {source}")
        source_blobs = source / _BLOBS_DIRNAME
        source_library = source / _LIBRARY_DIRNAME
        source_manifests = source_library / _MANIFESTS_DIRNAME
        if not source_blobs.is_dir():
            raise InvalidBackupStructureError(f"blobs directory missing in backup: {source_blobs}")
        if not source_library.is_dir():
            raise InvalidBackupStructureError(
                f"library directory missing in backup: {source_library}"
            )
        if not source_manifests.is_dir():
            raise InvalidBackupStructureError(
                f"manifests directory missing in backup: {source_manifests}"
            )

        if not overwrite:
            conflicts = self.find_conflicts(source_blobs, self.blobs_dir)
            conflicts += self.find_conflicts(source_manifests, self.manifests_dir)
            if conflicts:
                raise ConflictError(conflicts)

        blobs = self._copy_tree(source_blobs, self.blobs_dir, overwrite)
        logger.info("Copied %d blob files", blobs)
        manifests = self._copy_tree(source_manifests, self.manifests_dir, overwrite)
        logger.info("Copied %d manifest files", manifests)

        return RestoreRecord(
            source=source,
            blobs_restored=blobs,
            manifests_restored=manifests,
            overwrite=overwrite,
        )

    def locate(self, name: str, backup_dir: Path) -> Path:
        """
        Find the backup unit for *name* in *backup_dir*.

        Exact directory or zip names win; otherwise *name* is read as
        ``model[:version]`` and the newest matching unit is returned.
        """
        exact = backup_dir / name
        if exact.exists():
            return exact

        model, version = parse_model_spec(name)
        candidates: list[tuple[int, str, Path]] = []
        if backup_dir.is_dir():
            for entry in sorted(backup_dir.iterdir()):
                unit = entry.name
                if unit.endswith(_ZIP_SUFFIX):
                    unit = unit[: -len(_ZIP_SUFFIX)]
                parsed = _split_unit_name(unit, model)
                if parsed is None:
                    continue
                unit_version, token = parsed
                if version is not None and unit_version != version:
                    continue
                candidates.append((token, unit_version, entry))

        if not candidates:
            raise BackupNotFoundError(name, backup_dir)
        versions = sorted({v for _, v, _ in candidates})
        if len(versions) > 1:
            raise VersionAmbiguousError(model, versions)
        # Newest token; an extracted directory beats its zip on ties.
        candidates.sort(key=lambda c: (c[0], c[2].is_dir()))
        return candidates[-1][2]

    @staticmethod
    def find_conflicts(source_dir: Path, dest_dir: Path) -> list[Path]:
        """Return destination paths that already exist for files under *source_dir*."""
        conflicts: list[Path] = []
        for path in sorted(source_dir.rglob("*")):
            if path.is_dir():
                continue
            dest = dest_dir / path.relative_to(source_dir)
            if dest.exists():
                logger.warning("File already exists: %s", dest)
                conflicts.append(dest)
        return conflicts

    @staticmethod
    def _copy_tree(source_dir: Path, dest_dir: Path, overwrite: bool) -> int:
        count = 0
        for path in sorted(source_dir.rglob("*")):
            if path.is_dir():
                continue
            dest = dest_dir / path.relative_to(source_dir)
            try:
                dest.parent.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise StorageIOError("create directory", dest.parent, exc) from exc
            if not overwrite and dest.exists():
                raise ConflictError([dest])
            _copy_file(path, dest)
            count += 1
        return count
