"""
ollama-backup quickstart: working demo of list, backup, zip and restore.

Run directly:

    python examples/quickstart.py

All demos use a temporary directory and clean up after themselves.
"""

from __future__ import annotations

import json
import pathlib
import tempfile


# ---------------------------------------------------------------------------
# Demo 0: Build a toy Ollama store
# ---------------------------------------------------------------------------

def build_store(root: pathlib.Path) -> pathlib.Path:
    """Write one manifest and its blobs in the Ollama directory layout."""
    print("\n=== Demo 0: Build a toy Ollama store ===")

    ollama_dir = root / "ollama"
    blobs = ollama_dir / "models" / "blobs"
    blobs.mkdir(parents=True)
    (blobs / "sha256-0a1b2c").write_bytes(b"\x00" * 4096)
    (blobs / "sha256-cfg999").write_text(json.dumps({"family": "llama"}), encoding="utf-8")

    manifest = {
        "schemaVersion": 2,
        "config": {"digest": "sha256:cfg999", "size": 19},
        "layers": [
            {"mediaType": "application/vnd.ollama.image.model", "digest": "sha256:0a1b2c"},
            {"mediaType": "application/vnd.ollama.image.params"},
        ],
        "family": "llama",
        "license": "llama3",
    }
    manifest_dir = ollama_dir / "models" / "manifests" / "registry.ollama.ai" / "library" / "llama3"
    manifest_dir.mkdir(parents=True)
    (manifest_dir / "8b").write_text(json.dumps(manifest), encoding="utf-8")

    print(f"  Ollama directory : {ollama_dir}")
    return ollama_dir


# ---------------------------------------------------------------------------
# Demo 1: Enumerate the store
# ---------------------------------------------------------------------------

def demo_list(ollama_dir: pathlib.Path) -> None:
    """Print registries, models and per-version sizes."""
    print("\n=== Demo 1: List models ===")

    from ollama_backup.cli import render_text
    from ollama_backup.inventory import ModelInventory

    model_list = ModelInventory(ollama_dir).enumerate()
    for line in render_text(model_list, details=True).splitlines():
        print(f"  {line}")


# ---------------------------------------------------------------------------
# Demo 2: Back up a model into a zip
# ---------------------------------------------------------------------------

def demo_backup(ollama_dir: pathlib.Path, backup_dir: pathlib.Path) -> str:
    """Back up llama3:8b and compress the unit."""
    print("\n=== Demo 2: Backup llama3:8b ===")

    from ollama_backup.core import ModelBackupWriter

    record = ModelBackupWriter(ollama_dir).backup("llama3:8b", backup_dir, compress=True)
    print(f"  Registry : {record.registry}")
    print(f"  Blobs    : {record.blobs}")
    print(f"  Archive  : {record.path.name}")
    return record.path.name


# ---------------------------------------------------------------------------
# Demo 3: Restore into an empty store
# ---------------------------------------------------------------------------

def demo_restore(root: pathlib.Path, backup_dir: pathlib.Path, name: str) -> None:
    """Restore the zip into a fresh Ollama directory, then try again."""
    print("\n=== Demo 3: Restore into a fresh store ===")

    from ollama_backup.core import ModelRestorer
    from ollama_backup.errors import ConflictError

    restorer = ModelRestorer(root / "fresh-ollama")
    result = restorer.restore(name, backup_dir)
    print(f"  Source    : {result.source}")
    print(f"  Blobs     : {result.blobs_restored}")
    print(f"  Manifests : {result.manifests_restored}")

    try:
        restorer.restore(name, backup_dir)
    except ConflictError as exc:
        print(f"  Second restore refused: {len(exc.paths)} existing file(s)")


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main() -> None:
    print("ollama-backup quickstart demo")
    print("=" * 40)

    with tempfile.TemporaryDirectory() as tmp:
        root = pathlib.Path(tmp)
        backup_dir = root / "backup"

        ollama_dir = build_store(root)
        demo_list(ollama_dir)
        archive_name = demo_backup(ollama_dir, backup_dir)
        demo_restore(root, backup_dir, archive_name)

    print("\n" + "=" * 40)
    print("All demos completed successfully.")


if __name__ == "__main__":
    main()
