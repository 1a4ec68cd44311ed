"""Tests for PackageLayout path resolution."""

import threading

import pytest

from apps.registry.storage import MalformedInputError, PackageLayout


class TestPackagePaths:
    """Tests for package and artifact path resolution."""

    def test_unscoped_package_dir(self, layout, storage_root) -> None:
        """Unscoped names map to packages/<name>."""
        assert layout.package_dir("left-pad") == storage_root / "packages" / "left-pad"

    def test_scoped_package_dir_is_nested(self, layout, storage_root) -> None:
        """Scoped names map to packages/@scope/<name>."""
        assert layout.package_dir("@scope/b") == storage_root / "packages" / "@scope" / "b"

    def test_descriptor_and_artifact_paths(self, layout, storage_root) -> None:
        """Descriptor and tarballs live inside the package directory."""
        pkg_dir = storage_root / "packages" / "left-pad"
        assert layout.descriptor_path("left-pad") == pkg_dir / "meta.json"
        assert layout.artifact_path("left-pad", "a.tgz") == pkg_dir / "tarballs" / "a.tgz"

    @pytest.mark.parametrize(
        "raw",
        ["..%2f..%2fetc", "@x/../../y", "....//x", "/../left-pad"],
    )
    def test_traversal_stays_inside_root(self, layout, storage_root, raw: str) -> None:
        """Resolved package directories are strictly inside the storage root."""
        resolved = layout.package_dir(raw).resolve()
        packages_dir = (storage_root / "packages").resolve()
        assert packages_dir in resolved.parents

    @pytest.mark.parametrize(
        "raw",
        ["../../etc/passwd", "/etc/passwd", "a/../../../b", "a/tarballs", "@scope/b/c", "@scope"],
    )
    def test_nested_names_rejected(self, layout, raw: str) -> None:
        """Only name and @scope/name are accepted; deeper nesting is refused."""
        with pytest.raises(MalformedInputError):
            layout.package_dir(raw)

    def test_artifact_traversal_stays_inside_package(self, layout) -> None:
        """Filenames cannot escape the tarballs directory."""
        path = layout.artifact_path("pkg", "../../../../etc/passwd")
        assert path.parent == layout.artifacts_dir("pkg")

    @pytest.mark.parametrize("raw", ["", ".", "/", "..", "./.", "//"])
    def test_names_without_directory_rejected(self, layout, raw: str) -> None:
        """Names that would resolve to the packages root itself are rejected."""
        with pytest.raises(MalformedInputError):
            layout.package_dir(raw)

    @pytest.mark.parametrize("raw", ["", "..", "."])
    def test_empty_filename_rejected(self, layout, raw: str) -> None:
        """Filenames that sanitize to nothing are rejected."""
        with pytest.raises(MalformedInputError):
            layout.artifact_path("pkg", raw)

    def test_package_key_normalizes_separators(self, layout) -> None:
        """Empty and '.' segments are dropped from the key."""
        assert layout.package_key("@scope//./b") == "@scope/b"


class TestStrictNames:
    """Tests for strict name mode."""

    def test_strict_rejects_coerced_names(self, storage_root) -> None:
        """Names that sanitizing would change are refused."""
        layout = PackageLayout(storage_root, strict_names=True)
        with pytest.raises(MalformedInputError):
            layout.package_dir("my pkg")

    def test_strict_accepts_canonical_names(self, storage_root) -> None:
        layout = PackageLayout(storage_root, strict_names=True)
        assert layout.package_dir("@scope/pkg").name == "pkg"


class TestEnsure:
    """Tests for namespace creation."""

    def test_creates_package_and_tarballs_dirs(self, layout) -> None:
        pkg_dir = layout.ensure("@scope/b")
        assert pkg_dir.is_dir()
        assert (pkg_dir / "tarballs").is_dir()

    def test_idempotent(self, layout) -> None:
        """Calling ensure twice returns the same directory without error."""
        assert layout.ensure("left-pad") == layout.ensure("left-pad")

    def test_concurrent_ensure(self, layout, storage_root) -> None:
        """Concurrent ensure calls do not error and create one namespace."""
        errors: list[Exception] = []

        def worker() -> None:
            try:
                layout.ensure("left-pad")
            except Exception as e:  # noqa: BLE001
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert [p.name for p in (storage_root / "packages").iterdir()] == ["left-pad"]


class TestListPackageNames:
    """Tests for package enumeration."""

    def test_lists_unscoped_and_scoped(self, layout) -> None:
        layout.ensure("a")
        layout.ensure("@scope/b")
        layout.ensure("@scope/c")
        assert layout.list_package_names() == ["@scope/b", "@scope/c", "a"]

    def test_missing_root_raises(self, tmp_path) -> None:
        """Enumeration of a missing root raises OSError for the caller to handle."""
        layout = PackageLayout(tmp_path / "nowhere")
        with pytest.raises(OSError):
            layout.list_package_names()
