"""Tests for MetadataStore."""

import json
import os
import stat
import threading
from unittest.mock import patch

import pytest

from apps.registry.storage import (
    LookupStatus,
    MalformedInputError,
    MetadataStore,
    StorageFailureError,
)


@pytest.fixture
def descriptor() -> dict:
    """Descriptor with one version and a latest tag."""
    return {
        "name": "left-pad",
        "versions": {"1.0.0": {"dist": {"tarball": "http://localhost/left-pad/-/left-pad-1.0.0.tgz"}}},
        "dist-tags": {"latest": "1.0.0"},
    }


class TestRead:
    """Tests for MetadataStore.read."""

    def test_never_published_is_not_found(self, metadata_store) -> None:
        """Reading an unknown package returns the not_found outcome, not an error."""
        lookup = metadata_store.read("never-published")
        assert lookup.status == LookupStatus.NOT_FOUND
        assert lookup.descriptor is None
        assert metadata_store.get("never-published") is None

    def test_corrupt_document_is_distinguished(self, metadata_store, layout) -> None:
        """Unparseable JSON is reported as corrupt with the parser error."""
        layout.ensure("broken")
        layout.descriptor_path("broken").write_text("{not json", encoding="utf-8")

        lookup = metadata_store.read("broken")
        assert lookup.corrupt
        assert "invalid JSON" in lookup.error
        assert metadata_store.get("broken") is None

    @pytest.mark.parametrize("raw", ["", "..", "....", "a/tarballs"])
    def test_rejected_name_is_not_found(self, metadata_store, raw: str) -> None:
        """Names the layout refuses read as not_found instead of raising."""
        assert metadata_store.read(raw).status == LookupStatus.NOT_FOUND
        assert metadata_store.get(raw) is None

    def test_non_object_document_is_corrupt(self, metadata_store, layout) -> None:
        """A JSON array is not a descriptor."""
        layout.ensure("array")
        layout.descriptor_path("array").write_text("[1, 2]", encoding="utf-8")
        assert metadata_store.read("array").status == LookupStatus.CORRUPT


class TestWrite:
    """Tests for MetadataStore.write."""

    def test_round_trip(self, metadata_store, descriptor) -> None:
        """write followed by read returns a deeply equal document."""
        metadata_store.write("left-pad", descriptor)
        lookup = metadata_store.read("left-pad")
        assert lookup.found
        assert lookup.descriptor == descriptor

    def test_on_disk_format(self, metadata_store, layout) -> None:
        """Descriptors are stored as 2-space indented UTF-8 JSON."""
        doc = {"name": "ünï", "versions": {}}
        path = metadata_store.write("uni", doc)
        assert path == layout.descriptor_path("uni")
        assert path.read_text(encoding="utf-8") == json.dumps(doc, indent=2, ensure_ascii=False)

    def test_file_mode_follows_umask(self, metadata_store) -> None:
        """Descriptors get the mode a plain open() would create, not mkstemp's 0600."""
        mask = os.umask(0o022)
        os.umask(mask)
        path = metadata_store.write("left-pad", {"name": "left-pad"})
        assert stat.S_IMODE(path.stat().st_mode) == 0o666 & ~mask

    def test_nested_name_cannot_reach_artifacts(self, metadata_store, artifact_store) -> None:
        """A name nested under another package never lands in its tarballs dir."""
        metadata_store.write("a", {"name": "a"})
        with pytest.raises(MalformedInputError):
            metadata_store.write("a/tarballs", {"name": "a/tarballs"})
        assert artifact_store.get("a", "meta.json") is None

    def test_creates_namespace(self, metadata_store, layout) -> None:
        """Writing creates the package and tarballs directories."""
        metadata_store.write("@scope/b", {"name": "@scope/b"})
        assert layout.artifacts_dir("@scope/b").is_dir()

    def test_no_temp_files_left(self, metadata_store, layout, descriptor) -> None:
        """Successful writes leave only meta.json and tarballs/."""
        metadata_store.write("left-pad", descriptor)
        metadata_store.write("left-pad", descriptor)
        assert sorted(p.name for p in layout.package_dir("left-pad").iterdir()) == ["meta.json", "tarballs"]

    @pytest.mark.parametrize("payload", [None, "text", [1, 2], 42])
    def test_non_mapping_rejected_before_mutation(self, metadata_store, layout, payload) -> None:
        """Non-mapping payloads raise MalformedInputError and create nothing."""
        with pytest.raises(MalformedInputError):
            metadata_store.write("left-pad", payload)
        assert not layout.package_dir("left-pad").exists()

    def test_unserializable_rejected_before_mutation(self, metadata_store, layout) -> None:
        """Values JSON cannot encode are rejected before touching disk."""
        with pytest.raises(MalformedInputError):
            metadata_store.write("left-pad", {"name": object()})
        assert not layout.package_dir("left-pad").exists()

    def test_filesystem_failure_propagates(self, metadata_store, descriptor) -> None:
        """OSError during the rename surfaces as StorageFailureError."""
        with patch("apps.registry.storage.atomic.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(StorageFailureError, match="disk full") as exc_info:
                metadata_store.write("left-pad", descriptor)
        assert isinstance(exc_info.value.__cause__, OSError)

    def test_failed_write_keeps_previous_document(self, metadata_store, layout, descriptor) -> None:
        """A failed replace leaves the previous document and no temp file."""
        metadata_store.write("left-pad", descriptor)
        with patch("apps.registry.storage.atomic.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(StorageFailureError):
                metadata_store.write("left-pad", {"name": "other"})

        assert metadata_store.read("left-pad").descriptor == descriptor
        assert sorted(os.listdir(layout.package_dir("left-pad"))) == ["meta.json", "tarballs"]


class TestWriteAtomicity:
    """Concurrent readers never observe a partial descriptor."""

    def test_reader_sees_old_or_new(self, metadata_store) -> None:
        old = {"name": "big", "versions": {str(i): {"n": "a" * 200} for i in range(200)}}
        new = {"name": "big", "versions": {str(i): {"n": "b" * 200} for i in range(300)}}
        metadata_store.write("big", old)

        observed: list[str] = []
        stop = threading.Event()

        def poll() -> None:
            while not stop.is_set():
                lookup = metadata_store.read("big")
                if not lookup.found:
                    observed.append("bad")
                elif lookup.descriptor == old:
                    observed.append("old")
                elif lookup.descriptor == new:
                    observed.append("new")
                else:
                    observed.append("bad")

        reader = threading.Thread(target=poll)
        reader.start()
        try:
            for _ in range(20):
                metadata_store.write("big", new)
                metadata_store.write("big", old)
        finally:
            stop.set()
            reader.join()

        assert observed
        assert "bad" not in observed


class TestListAll:
    """Tests for MetadataStore.list_all."""

    def test_lists_scoped_and_unscoped(self, metadata_store, descriptor) -> None:
        """Both plain and scoped packages are listed with their descriptors."""
        scoped = {"name": "@scope/b", "versions": {}}
        metadata_store.write("a", descriptor)
        metadata_store.write("@scope/b", scoped)

        packages = metadata_store.list_all()
        assert packages == {"a": descriptor, "@scope/b": scoped}

    def test_synthesizes_empty_descriptor(self, metadata_store, layout) -> None:
        """Namespaces without metadata are reported with an empty descriptor."""
        layout.ensure("a")
        layout.ensure("@scope/b")
        assert metadata_store.list_all() == {
            "a": {"name": "a", "versions": {}},
            "@scope/b": {"name": "@scope/b", "versions": {}},
        }

    def test_corrupt_descriptor_listed_as_empty(self, metadata_store, layout) -> None:
        layout.ensure("broken")
        layout.descriptor_path("broken").write_text("{", encoding="utf-8")
        assert metadata_store.list_all() == {"broken": {"name": "broken", "versions": {}}}

    def test_missing_root_yields_empty(self, tmp_path) -> None:
        """A storage root that does not exist lists as empty."""
        store = MetadataStore.from_root(tmp_path / "missing")
        assert store.list_all() == {}

    def test_ignores_stray_files(self, metadata_store, layout) -> None:
        layout.packages_dir.mkdir(parents=True, exist_ok=True)
        (layout.packages_dir / "README").write_text("not a package", encoding="utf-8")
        assert metadata_store.list_all() == {}


class TestEnsure:
    """Tests for MetadataStore.ensure."""

    def test_ensure_twice(self, metadata_store) -> None:
        first = metadata_store.ensure("left-pad")
        second = metadata_store.ensure("left-pad")
        assert first == second
        assert (first / "tarballs").is_dir()
