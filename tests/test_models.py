from pathlib import Path

import pytest
from pydantic import ValidationError

from repogen.constants import DEFAULT_ORIGIN
from repogen.errors import ConflictError, ParseError
from repogen.models import DistroVariant, Package, RepositoryConfig


class TestRepositoryConfig:
    def test_defaults(self):
        config = RepositoryConfig()

        assert config.codename == config.suite == "stable"
        assert config.origin == config.label
        assert config.components == ["main"]
        assert config.architectures == ["amd64"]
        assert config.distro_variant == DistroVariant.FEDORA
        assert not config.gpg_signing_enabled
        assert not config.incremental

    def test_derived_values_follow_overrides(self):
        config = RepositoryConfig(codename="bookworm", origin="Example")

        assert config.suite == "bookworm"
        assert config.label == "Example"

    def test_explicit_values_are_kept(self):
        config = RepositoryConfig(codename="bookworm", suite="stable", origin="Example", label="Mirror")
        assert (config.suite, config.label) == ("stable", "Mirror")

    def test_comma_separated_lists(self):
        config = RepositoryConfig(components="main, contrib,non-free", architectures="amd64,arm64")

        assert config.components == ["main", "contrib", "non-free"]
        assert config.architectures == ["amd64", "arm64"]
        assert config.default_component == "main"

    def test_none_and_empty_fall_back_to_defaults(self):
        config = RepositoryConfig(origin=None, version="", repo_name=None)

        assert config.origin == DEFAULT_ORIGIN
        assert config.version is None

    def test_empty_architecture_list_is_rejected(self):
        with pytest.raises(ValidationError):
            RepositoryConfig(architectures=",")

    def test_frozen(self):
        config = RepositoryConfig()
        with pytest.raises(ValidationError):
            config.codename = "testing"

    def test_signing_flags(self, tmp_path):
        config = RepositoryConfig(gpg_key_path=tmp_path / "key.asc", rsa_key_path=tmp_path / "key.rsa")
        assert config.gpg_signing_enabled
        assert config.rsa_signing_enabled


class TestPackage:
    def test_basename(self):
        assert Package(name="a", source_path=Path("/in/a_1_all.deb")).basename == "a_1_all.deb"
        assert Package(name="a", published_path="pool/main/a/a/a_1_all.deb").basename == "a_1_all.deb"
        assert Package(name="a").basename == ""

    def test_list_fields_are_independent(self):
        first, second = Package(name="a"), Package(name="b")
        first.dependencies.append("libc")
        assert second.dependencies == []


class TestErrors:
    def test_message_with_package(self):
        error = ParseError("truncated header", Path("/in/x.rpm"))
        assert str(error) == "[PackageParse] /in/x.rpm: truncated header"

    def test_message_without_package(self):
        error = ConflictError(["a:1:amd64", "b:2:amd64"])
        assert str(error).startswith("[Conflict] package identity already exists")
        assert "a:1:amd64, b:2:amd64" in str(error)
        assert error.package is None
