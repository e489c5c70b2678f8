"""Shared test fixtures for ollama-backup."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from ollama_backup.core import ModelBackupWriter, ModelRestorer
from ollama_backup.inventory import ModelInventory

REGISTRY = "registry.ollama.ai"

LLAMA3_MANIFEST: dict[str, Any] = {
    "schemaVersion": 2,
    "config": {"digest": "sha256:cfg001", "size": 12},
    "layers": [{"digest": "sha256:abc123", "size": 100}],
}

MISTRAL_LATEST_MANIFEST: dict[str, Any] = {
    "layers": [
        {"digest": "sha256:m1", "size": 10},
        {"digest": "sha256:gone", "size": 99},
        {"mediaType": "application/vnd.ollama.image.license"},
    ],
    "family": "mistral",
    "license": "apache-2.0",
}

MISTRAL_7B_MANIFEST: dict[str, Any] = {
    "digest": "sha256:top7b",
    "config": {"digest": "sha256:cfg7b"},
    "layers": [{"from": "models/blobs/extra.bin", "digest": "sha256:ignored"}],
}


# ---------------------------------------------------------------------------
# Store builders
# ---------------------------------------------------------------------------


def write_manifest(
    ollama_dir: Path,
    model: str,
    version: str,
    manifest: dict[str, Any] | str,
    registry: str = REGISTRY,
) -> Path:
    path = ollama_dir / "models" / "manifests" / registry / "library" / model / version
    path.parent.mkdir(parents=True, exist_ok=True)
    text = manifest if isinstance(manifest, str) else json.dumps(manifest)
    path.write_text(text, encoding="utf-8")
    return path


def write_blob(ollama_dir: Path, name: str, data: bytes) -> Path:
    path = ollama_dir / "models" / "blobs" / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path


# ---------------------------------------------------------------------------
# Store fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def ollama_dir(tmp_path: Path) -> Path:
    """
    A fake Ollama store.

    ``llama3`` has one version, ``mistral`` has two, ``broken`` only has an
    unparseable manifest, and two registries carry no usable models.
    """
    root = tmp_path / "ollama"
    write_manifest(root, "llama3", "8b", LLAMA3_MANIFEST)
    write_blob(root, "sha256-abc123", b"\x01" * 100)

    write_manifest(root, "mistral", "latest", MISTRAL_LATEST_MANIFEST)
    write_manifest(root, "mistral", "7b", MISTRAL_7B_MANIFEST)
    write_blob(root, "sha256-m1", b"m" * 10)
    write_blob(root, "extra.bin", b"e" * 7)

    write_manifest(root, "broken", "latest", "{not json")
    (root / "models" / "manifests" / "empty.example" / "library" / "ghost").mkdir(
        parents=True
    )
    (root / "models" / "manifests" / "nolib" / "other").mkdir(parents=True)
    return root


@pytest.fixture()
def empty_store(tmp_path: Path) -> Path:
    root = tmp_path / "restored"
    (root / "models" / "manifests").mkdir(parents=True)
    return root


@pytest.fixture()
def backup_dir(tmp_path: Path) -> Path:
    return tmp_path / "backup"


# ---------------------------------------------------------------------------
# Core objects
# ---------------------------------------------------------------------------


@pytest.fixture()
def inventory(ollama_dir: Path) -> ModelInventory:
    return ModelInventory(ollama_dir)


@pytest.fixture()
def writer(ollama_dir: Path) -> ModelBackupWriter:
    return ModelBackupWriter(ollama_dir)


@pytest.fixture()
def restorer(empty_store: Path) -> ModelRestorer:
    return ModelRestorer(empty_store)
