"""Pydantic models for ollama-backup."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field

__all__ = [
    "BackupRecord",
    "DigestRef",
    "LayerRef",
    "Model",
    "ModelList",
    "ModelVersion",
    "PathRef",
    "Registry",
    "ResolvedBlob",
    "RestoreRecord",
    "Unresolvable",
]


# ---------------------------------------------------------------------------
# Layer addressing
# ---------------------------------------------------------------------------


class PathRef(BaseModel):
    """Layer addressed by an explicit path relative to the Ollama directory."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["path"] = "path"
    path: str


class DigestRef(BaseModel):
    """Layer addressed by its content digest (``<algorithm>:<hex>``)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["digest"] = "digest"
    digest: str

    @property
    def file_name(self) -> str:
        # sha256:abc -> sha256-abc
        return self.digest.replace(":", "-", 1)


class Unresolvable(BaseModel):
    """Layer carrying neither ``from`` nor ``digest``."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["unresolvable"] = "unresolvable"


LayerRef = Annotated[
    Union[PathRef, DigestRef, Unresolvable], Field(discriminator="kind")
]


class ResolvedBlob(BaseModel):
    """Physical location of a layer's blob in the store."""

    model_config = ConfigDict(frozen=True)

    source_path: Path
    file_name: str


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------


class ModelVersion(BaseModel):
    """One manifest file under ``manifests/{registry}/library/{model}/``."""

    model_config = ConfigDict(frozen=True)

    name: str
    path: str
    digest: str = ""
    size: int                  # manifest file only
    blobs_size: int = 0
    blobs_count: int = 0
    details: dict[str, Any] = Field(default_factory=dict)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_size(self) -> int:
        return self.size + self.blobs_size


class Model(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    registry: str
    path: str
    versions: list[ModelVersion] = Field(default_factory=list)

    def get_version(self, name: str) -> ModelVersion | None:
        for version in self.versions:
            if version.name == name:
                return version
        return None


class Registry(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    path: str
    models: list[Model] = Field(default_factory=list)


class ModelList(BaseModel):
    """All registries, models and versions found in an Ollama store."""

    model_config = ConfigDict(frozen=True)

    registries: list[Registry] = Field(default_factory=list)

    @property
    def registry_count(self) -> int:
        return len(self.registries)

    @property
    def model_count(self) -> int:
        return sum(len(r.models) for r in self.registries)

    @property
    def version_count(self) -> int:
        return sum(len(m.versions) for r in self.registries for m in r.models)

    def find_model(self, name: str) -> Model | None:
        """Return the first model called *name*, scanning registries in order."""
        for registry in self.registries:
            for model in registry.models:
                if model.name == name:
                    return model
        return None


# ---------------------------------------------------------------------------
# Operation results
# ---------------------------------------------------------------------------


class BackupRecord(BaseModel):
    """Outcome of a single backup invocation."""

    model: str
    version: str
    registry: str
    backup_id: str             # backup-<unix seconds>
    path: Path                 # backup directory, or the .zip when compressed
    blobs: list[str] = Field(default_factory=list)
    compressed: bool = False


class RestoreRecord(BaseModel):
    """Outcome of a single restore invocation."""

    source: Path
    blobs_restored: int = 0
    manifests_restored: int = 0
    overwrite: bool = False
