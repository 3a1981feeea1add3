"""Tests for the package identifier and package record models."""

import gc

import pytest

from registry.package import DependencyGroup, Package, PackageIdentifier
from versioning import parse_version


class _Owner:
    name = "owner"


class TestPackageIdentifier:
    """Test identifier range handling and ordering."""

    def test_exact_version_has_no_range(self):
        """Test an exact version is not a range."""
        identifier = PackageIdentifier("Foo", "1.0.0")
        assert not identifier.has_version_range
        assert identifier.package_version == parse_version("1.0.0")

    def test_range_version(self):
        """Test interval notation parses as a range."""
        identifier = PackageIdentifier("Foo", "[1.0,2.0)")
        assert identifier.has_version_range
        assert identifier.package_version is None
        assert identifier.version_range.maximum == parse_version("2.0")

    def test_in_range_boundaries(self):
        """Test inclusive and exclusive bounds."""
        identifier = PackageIdentifier("Baz", "(1.0.0,2.0.0]")
        assert not identifier.in_range(PackageIdentifier("Baz", "1.0.0"))
        assert identifier.in_range(PackageIdentifier("Baz", "1.5.0"))
        assert identifier.in_range(PackageIdentifier("Baz", "2.0.0"))
        assert not identifier.in_range("2.0.1")

    def test_exact_version_acts_as_minimum(self):
        """Test a bare version accepts itself and newer versions."""
        identifier = PackageIdentifier("Foo", "1.0.0")
        assert identifier.in_range("1.0.0")
        assert identifier.in_range("1.2.0")
        assert not identifier.in_range("0.9.0")

    def test_unversioned_identifier_accepts_everything(self):
        """Test an identifier without version accepts any version."""
        assert PackageIdentifier("Foo").in_range("0.0.1")

    def test_ids_compare_case_insensitively(self):
        """Test equality and hashing ignore id case."""
        assert PackageIdentifier("Foo", "1.0") == PackageIdentifier("foo", "1.0.0")
        assert hash(PackageIdentifier("Foo", "1.0")) == hash(PackageIdentifier("FOO", "1.0.0"))
        assert PackageIdentifier("Foo", "1.0") != PackageIdentifier("Foo", "1.1")

    def test_sorts_by_id_then_newest_version(self):
        """Test sorting by id, then newest version."""
        packages = [
            PackageIdentifier("beta", "1.0.0"),
            PackageIdentifier("Alpha", "1.0.0"),
            PackageIdentifier("alpha", "2.0.0"),
            PackageIdentifier("Beta", "3.0.0-rc"),
        ]
        ordered = sorted(packages)
        assert [(p.id, p.version) for p in ordered] == [
            ("alpha", "2.0.0"),
            ("Alpha", "1.0.0"),
            ("Beta", "3.0.0-rc"),
            ("beta", "1.0.0"),
        ]

    def test_invalid_version_raises(self):
        """Test invalid versions raise ValueError."""
        with pytest.raises(ValueError):
            PackageIdentifier("Foo", "one")

    def test_str(self):
        """Test the Id.Version text form."""
        assert str(PackageIdentifier("Foo", "1.0.0")) == "Foo.1.0.0"
        assert str(PackageIdentifier("Foo")) == "Foo"


class TestPackage:
    """Test package record behavior."""

    def test_requires_exact_version(self):
        """Test packages reject version ranges."""
        with pytest.raises(ValueError):
            Package("Foo", "[1.0,2.0)")

    def test_versions_start_with_own_version(self):
        """Test versions start with the package's own version."""
        package = Package("Foo", "1.0.0")
        assert package.versions == [parse_version("1.0.0")]

    def test_add_version_skips_duplicates(self):
        """Test equal versions are added once."""
        package = Package("Foo", "2.0.0")
        package.add_version("1.0.0")
        package.add_version("1.0")
        package.add_versions(["2.0.0.0", "1.5.0"])
        assert [str(v) for v in package.versions] == ["2.0.0", "1.0.0", "1.5.0"]

    def test_versions_property_is_a_copy(self):
        """Test versions cannot be changed through the property."""
        package = Package("Foo", "1.0.0")
        package.versions.append(parse_version("9.9.9"))
        assert len(package.versions) == 1

    def test_prerelease_flag(self):
        """Test the prerelease flag."""
        assert Package("Foo", "1.0.0-beta").is_prerelease
        assert not Package("Foo", "1.0.0").is_prerelease

    def test_source_is_weak_reference(self):
        """Test the package does not keep its source alive."""
        owner = _Owner()
        package = Package("Foo", "1.0.0", source=owner)
        assert package.source is owner
        del owner
        gc.collect()
        assert package.source is None

    def test_defaults(self):
        """Test default metadata values."""
        package = Package("Foo", "1.0.0")
        assert package.title == "Foo"
        assert package.dependencies == []
        assert package.source is None

    def test_to_dict(self):
        """Test the JSON representation."""
        owner = _Owner()
        package = Package(
            "Foo",
            "1.0.0",
            source=owner,
            download_url="https://example.test/Foo.1.0.0.nupkg",
            dependencies=[DependencyGroup("net45", [PackageIdentifier("Bar", "[1.0,)")])],
        )
        data = package.to_dict()
        assert data["id"] == "Foo"
        assert data["versions"] == ["1.0.0"]
        assert data["source"] == "owner"
        assert data["dependencies"] == [
            {"target_framework": "net45", "dependencies": [{"id": "Bar", "version": "[1.0,)"}]}
        ]
