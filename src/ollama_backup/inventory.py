"""Enumeration of the Ollama manifest tree.

Store layout::

    {ollama_dir}/models/manifests/{registry}/library/{model}/{version}
    {ollama_dir}/models/blobs/{algorithm}-{hex}
"""

from __future__ import annotations

import json
import logging
from pathlib import Path, PurePosixPath
from typing import Any

from .errors import StorageIOError, StoreNotFoundError
from .models import (
    DigestRef,
    LayerRef,
    Model,
    ModelList,
    ModelVersion,
    PathRef,
    Registry,
    ResolvedBlob,
    Unresolvable,
)

__all__ = [
    "ModelInventory",
    "classify_layer",
    "extract_digest",
    "iter_layers",
    "resolve_layer",
]

logger = logging.getLogger(__name__)

_LIBRARY_DIRNAME = "library"


def classify_layer(layer: dict[str, Any]) -> LayerRef:
    """Return how *layer* addresses its blob. ``from`` wins over ``digest``."""
    source = layer.get("from")
    if isinstance(source, str):
        return PathRef(path=source)
    digest = layer.get("digest")
    if isinstance(digest, str):
        return DigestRef(digest=digest)
    return Unresolvable()


def resolve_layer(
    layer: dict[str, Any], ollama_dir: Path, blobs_dir: Path
) -> ResolvedBlob | None:
    """
    Compute the physical blob path for a manifest layer.

    Returns ``None`` for layers without ``from`` or ``digest``.  Existence
    of the resolved path is not checked.
    """
    ref = classify_layer(layer)
    if isinstance(ref, PathRef):
        relative = PurePosixPath(ref.path)
        # Absolute paths still resolve inside the store.
        if relative.is_absolute():
            relative = relative.relative_to(relative.anchor)
        source = Path(ollama_dir).joinpath(*relative.parts)
        return ResolvedBlob(source_path=source, file_name=source.name)
    if isinstance(ref, DigestRef):
        return ResolvedBlob(
            source_path=Path(blobs_dir) / ref.file_name, file_name=ref.file_name
        )
    return None


def iter_layers(manifest: dict[str, Any]) -> list[dict[str, Any]]:
    """Return the mapping entries of ``manifest["layers"]``."""
    layers = manifest.get("layers")
    if not isinstance(layers, list):
        return []
    return [layer for layer in layers if isinstance(layer, dict)]


def extract_digest(manifest: dict[str, Any]) -> str:
    """Top-level ``digest``, then ``config.digest``, then the first layer's."""
    digest = manifest.get("digest")
    if isinstance(digest, str):
        return digest

    config = manifest.get("config")
    if isinstance(config, dict):
        config_digest = config.get("digest")
        if isinstance(config_digest, str) and config_digest:
            return config_digest

    layers = manifest.get("layers")
    if isinstance(layers, list) and layers and isinstance(layers[0], dict):
        first = layers[0].get("digest")
        if isinstance(first, str):
            return first
    return ""


def _read_manifest(path: Path) -> dict[str, Any] | None:
    try:
        data = json.loads(path.read_bytes())
    except (OSError, ValueError) as exc:
        logger.debug("Skipping unreadable manifest %s: %s", path, exc)
        return None
    if not isinstance(data, dict):
        logger.debug("Skipping manifest %s: top level is not an object", path)
        return None
    return data


def _list_dir(path: Path) -> list[Path]:
    try:
        return sorted(path.iterdir())
    except OSError as exc:
        raise StorageIOError("read directory", path, exc) from exc


class ModelInventory:
    """
    Walks an Ollama store and reports registries, models and versions.

    Registries without models and models without parseable versions are
    left out of the result.
    """

    def __init__(self, ollama_dir: Path | str) -> None:
        self.ollama_dir = Path(ollama_dir)
        self.models_dir = self.ollama_dir / "models"
        self.manifests_dir = self.models_dir / "manifests"
        self.blobs_dir = self.models_dir / "blobs"

    def resolve(self, layer: dict[str, Any]) -> ResolvedBlob | None:
        return resolve_layer(layer, self.ollama_dir, self.blobs_dir)

    def enumerate(self) -> ModelList:
        """Scan the manifests tree and return the pruned inventory."""
        if not self.manifests_dir.is_dir():
            raise StoreNotFoundError(self.manifests_dir)

        registries: list[Registry] = []
        for registry_path in _list_dir(self.manifests_dir):
            if not registry_path.is_dir():
                continue
            library_path = registry_path / _LIBRARY_DIRNAME
            if not library_path.is_dir():
                continue

            models: list[Model] = []
            for model_path in _list_dir(library_path):
                if not model_path.is_dir():
                    continue
                model = self._load_model(registry_path.name, model_path)
                if model.versions:
                    models.append(model)

            if models:
                registries.append(
                    Registry(
                        name=registry_path.name,
                        path=str(registry_path),
                        models=models,
                    )
                )

        return ModelList(registries=registries)

    def load_version(self, path: Path) -> ModelVersion | None:
        """Parse one manifest file; ``None`` when it cannot be read or parsed."""
        manifest = _read_manifest(path)
        if manifest is None:
            return None
        try:
            size = path.stat().st_size
        except OSError:
            return None

        blobs_size, blobs_count = self._aggregate_blobs(manifest)
        return ModelVersion(
            name=path.name,
            path=str(path),
            digest=extract_digest(manifest),
            size=size,
            blobs_size=blobs_size,
            blobs_count=blobs_count,
            details=manifest,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _load_model(self, registry: str, model_path: Path) -> Model:
        versions: list[ModelVersion] = []
        for entry in _list_dir(model_path):
            if entry.is_dir():
                continue
            version = self.load_version(entry)
            if version is not None:
                versions.append(version)
        return Model(
            name=model_path.name,
            registry=registry,
            path=str(model_path),
            versions=versions,
        )

    def _aggregate_blobs(self, manifest: dict[str, Any]) -> tuple[int, int]:
        """Return (total bytes, count) of the layer blobs present on disk."""
        sizes: list[int] = []
        for layer in iter_layers(manifest):
            size = self._blob_size(self.resolve(layer))
            if size is not None:
                sizes.append(size)
        return sum(sizes), len(sizes)

    @staticmethod
    def _blob_size(blob: ResolvedBlob | None) -> int | None:
        if blob is None:
            return None
        try:
            return blob.source_path.stat().st_size
        except OSError:
            return None
