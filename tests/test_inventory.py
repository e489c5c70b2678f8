"""Tests for ollama_backup.inventory."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from ollama_backup.errors import StoreNotFoundError
from ollama_backup.inventory import (
    ModelInventory,
    classify_layer,
    extract_digest,
    iter_layers,
    resolve_layer,
)
from ollama_backup.models import DigestRef, ModelVersion, PathRef, Unresolvable

from .conftest import LLAMA3_MANIFEST, REGISTRY, write_blob, write_manifest


# ---------------------------------------------------------------------------
# Layer resolution
# ---------------------------------------------------------------------------


class TestResolveLayer:
    def test_digest_layer_maps_to_blobs_dir(self, tmp_path: Path) -> None:
        blobs = tmp_path / "models" / "blobs"
        blob = resolve_layer({"digest": "sha256:abc123"}, tmp_path, blobs)
        assert blob is not None
        assert blob.file_name == "sha256-abc123"
        assert blob.source_path == blobs / "sha256-abc123"

    def test_only_first_colon_is_replaced(self, tmp_path: Path) -> None:
        blob = resolve_layer({"digest": "sha256:a:b"}, tmp_path, tmp_path)
        assert blob is not None
        assert blob.file_name == "sha256-a:b"

    def test_from_layer_is_relative_to_ollama_dir(self, tmp_path: Path) -> None:
        blob = resolve_layer(
            {"from": "models/blobs/extra.bin"}, tmp_path, tmp_path / "blobs"
        )
        assert blob is not None
        assert blob.source_path == tmp_path / "models" / "blobs" / "extra.bin"
        assert blob.file_name == "extra.bin"

    def test_absolute_from_stays_inside_ollama_dir(self, tmp_path: Path) -> None:
        store = tmp_path / "store"
        blob = resolve_layer({"from": "/etc/hostname"}, store, store / "models" / "blobs")
        assert blob is not None
        assert blob.source_path == store / "etc" / "hostname"
        assert blob.file_name == "hostname"

    def test_from_takes_precedence_over_digest(self, tmp_path: Path) -> None:
        blob = resolve_layer(
            {"from": "models/blobs/extra.bin", "digest": "sha256:zzz"},
            tmp_path,
            tmp_path / "blobs",
        )
        assert blob is not None
        assert blob.source_path == tmp_path / "models" / "blobs" / "extra.bin"
        assert blob.file_name == "extra.bin"

    def test_layer_without_address_is_skipped(self, tmp_path: Path) -> None:
        assert resolve_layer({"mediaType": "x"}, tmp_path, tmp_path) is None

    def test_non_string_fields_are_ignored(self, tmp_path: Path) -> None:
        assert resolve_layer({"from": 3, "digest": None}, tmp_path, tmp_path) is None


class TestClassifyLayer:
    def test_variants(self) -> None:
        assert isinstance(classify_layer({"from": "a/b"}), PathRef)
        assert isinstance(classify_layer({"digest": "sha256:x"}), DigestRef)
        assert isinstance(classify_layer({}), Unresolvable)

    def test_digest_ref_file_name(self) -> None:
        assert DigestRef(digest="sha256:beef").file_name == "sha256-beef"


class TestIterLayers:
    def test_missing_layers(self) -> None:
        assert iter_layers({}) == []

    def test_non_list_layers(self) -> None:
        assert iter_layers({"layers": {"digest": "x"}}) == []

    def test_non_mapping_entries_dropped(self) -> None:
        assert iter_layers({"layers": ["x", {"digest": "y"}]}) == [{"digest": "y"}]


# ---------------------------------------------------------------------------
# Digest extraction
# ---------------------------------------------------------------------------


class TestExtractDigest:
    def test_top_level_wins(self) -> None:
        manifest = {
            "digest": "sha256:top",
            "config": {"digest": "sha256:cfg"},
            "layers": [{"digest": "sha256:layer"}],
        }
        assert extract_digest(manifest) == "sha256:top"

    def test_config_digest_second(self) -> None:
        manifest = {
            "config": {"digest": "sha256:cfg"},
            "layers": [{"digest": "sha256:layer"}],
        }
        assert extract_digest(manifest) == "sha256:cfg"

    def test_first_layer_last(self) -> None:
        manifest = {"config": {}, "layers": [{"digest": "sha256:l1"}, {"digest": "sha256:l2"}]}
        assert extract_digest(manifest) == "sha256:l1"

    def test_empty_config_digest_falls_through(self) -> None:
        manifest = {"config": {"digest": ""}, "layers": [{"digest": "sha256:l1"}]}
        assert extract_digest(manifest) == "sha256:l1"

    def test_absent_digest_is_empty(self) -> None:
        assert extract_digest({"layers": [{"from": "x"}]}) == ""
        assert extract_digest({}) == ""


# ---------------------------------------------------------------------------
# ModelVersion
# ---------------------------------------------------------------------------


class TestModelVersion:
    def test_total_size_is_manifest_plus_blobs(self) -> None:
        version = ModelVersion(name="v", path="/x", size=40, blobs_size=60, blobs_count=2)
        assert version.total_size == 100

    def test_total_size_in_json(self) -> None:
        version = ModelVersion(name="v", path="/x", size=1, blobs_size=2)
        assert json.loads(version.model_dump_json())["total_size"] == 3

    def test_version_is_frozen(self) -> None:
        version = ModelVersion(name="v", path="/x", size=1)
        with pytest.raises(Exception):
            version.size = 5  # type: ignore[misc]


# ---------------------------------------------------------------------------
# ModelInventory.enumerate
# ---------------------------------------------------------------------------


class TestEnumerate:
    def test_missing_manifests_dir_raises(self, tmp_path: Path) -> None:
        with pytest.raises(StoreNotFoundError):
            ModelInventory(tmp_path / "nowhere").enumerate()

    def test_empty_store_has_no_registries(self, empty_store: Path) -> None:
        result = ModelInventory(empty_store).enumerate()
        assert result.registries == []

    def test_empty_branches_are_pruned(self, inventory: ModelInventory) -> None:
        result = inventory.enumerate()
        assert [r.name for r in result.registries] == [REGISTRY]
        assert [m.name for m in result.registries[0].models] == ["llama3", "mistral"]
        for registry in result.registries:
            assert registry.models
            for model in registry.models:
                assert model.versions

    def test_counts(self, inventory: ModelInventory) -> None:
        result = inventory.enumerate()
        assert result.registry_count == 1
        assert result.model_count == 2
        assert result.version_count == 3

    def test_version_statistics(self, inventory: ModelInventory, ollama_dir: Path) -> None:
        model = inventory.enumerate().find_model("llama3")
        assert model is not None
        assert model.registry == REGISTRY
        version = model.versions[0]
        assert version.name == "8b"
        assert version.size == len(json.dumps(LLAMA3_MANIFEST))
        assert version.blobs_size == 100
        assert version.blobs_count == 1
        assert version.total_size == version.size + version.blobs_size
        assert version.digest == "sha256:cfg001"
        assert version.details == LLAMA3_MANIFEST

    def test_missing_blobs_excluded_from_totals(self, inventory: ModelInventory) -> None:
        model = inventory.enumerate().find_model("mistral")
        assert model is not None
        latest = model.get_version("latest")
        assert latest is not None
        assert latest.blobs_count == 1
        assert latest.blobs_size == 10
        assert latest.digest == "sha256:m1"

    def test_from_layer_counted(self, inventory: ModelInventory) -> None:
        model = inventory.enumerate().find_model("mistral")
        assert model is not None
        v7b = model.get_version("7b")
        assert v7b is not None
        assert v7b.blobs_size == 7
        assert v7b.blobs_count == 1
        assert v7b.digest == "sha256:top7b"

    def test_versions_are_sorted(self, inventory: ModelInventory) -> None:
        model = inventory.enumerate().find_model("mistral")
        assert model is not None
        assert [v.name for v in model.versions] == ["7b", "latest"]

    def test_corrupt_manifest_does_not_hide_siblings(self, ollama_dir: Path) -> None:
        write_manifest(ollama_dir, "llama3", "70b", "[1, 2, 3]")
        write_manifest(ollama_dir, "llama3", "bad", "")
        model = ModelInventory(ollama_dir).enumerate().find_model("llama3")
        assert model is not None
        assert [v.name for v in model.versions] == ["8b"]

    def test_subdirectories_in_model_dir_ignored(self, ollama_dir: Path) -> None:
        nested = ollama_dir / "models" / "manifests" / REGISTRY / "library" / "llama3" / "sub"
        nested.mkdir()
        model = ModelInventory(ollama_dir).enumerate().find_model("llama3")
        assert model is not None
        assert [v.name for v in model.versions] == ["8b"]

    def test_library_file_does_not_qualify(self, ollama_dir: Path) -> None:
        odd = ollama_dir / "models" / "manifests" / "odd"
        odd.mkdir()
        (odd / "library").write_text("not a directory", encoding="utf-8")
        result = ModelInventory(ollama_dir).enumerate()
        assert "odd" not in [r.name for r in result.registries]

    def test_second_registry_listed(self, ollama_dir: Path) -> None:
        write_manifest(ollama_dir, "phi", "latest", {"layers": []}, registry="hub.example")
        result = ModelInventory(ollama_dir).enumerate()
        assert [r.name for r in result.registries] == ["hub.example", REGISTRY]
        phi = result.find_model("phi")
        assert phi is not None
        assert phi.versions[0].blobs_count == 0
        assert phi.versions[0].total_size == phi.versions[0].size

    def test_blobs_count_matches_existing_files(self, ollama_dir: Path) -> None:
        write_blob(ollama_dir, "sha256-gone", b"g" * 99)
        model = ModelInventory(ollama_dir).enumerate().find_model("mistral")
        assert model is not None
        latest = model.get_version("latest")
        assert latest is not None
        assert latest.blobs_count == 2
        assert latest.blobs_size == 109


class TestFindModel:
    def test_unknown_model(self, inventory: ModelInventory) -> None:
        assert inventory.enumerate().find_model("nope") is None

    def test_first_registry_wins(self, ollama_dir: Path) -> None:
        write_manifest(ollama_dir, "llama3", "tiny", {"layers": []}, registry="aaa.example")
        model = ModelInventory(ollama_dir).enumerate().find_model("llama3")
        assert model is not None
        assert model.registry == "aaa.example"
