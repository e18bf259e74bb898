import pytest

from repogen.codecs.homebrew import HomebrewCodec, parse_bottle_filename, to_class_name
from repogen.errors import MetadataGenError, MetadataNotFoundError, ParseError
from repogen.models import RepositoryConfig


class TestBottleFilename:
    @pytest.mark.parametrize(
        ("filename", "expected"),
        [
            ("jq--1.7.1.arm64_sonoma.bottle.tar.gz", ("jq", "1.7.1", "arm64_sonoma")),
            ("node@20--20.11.0.ventura.bottle.1.tar.gz", ("node@20", "20.11.0", "ventura")),
            ("ripgrep--14.1.0.x86_64_linux.bottle.tar.gz", ("ripgrep", "14.1.0", "x86_64_linux")),
        ],
    )
    def test_parse(self, filename, expected):
        parts = parse_bottle_filename(filename)
        assert (parts["name"], parts["version"], parts["platform"]) == expected

    def test_rejects_other_files(self):
        with pytest.raises(ValueError):
            parse_bottle_filename("jq-1.7.1.tar.gz")

    @pytest.mark.parametrize(
        ("name", "expected"),
        [("jq", "Jq"), ("gnu-sed", "GnuSed"), ("my_tool", "MyTool")],
    )
    def test_class_name(self, name, expected):
        assert to_class_name(name) == expected


class TestHomebrewParsePackage:
    def test_metadata_from_filename(self, make_bottle):
        pkg = HomebrewCodec().parse_package(make_bottle())

        assert (pkg.name, pkg.version, pkg.architecture) == ("jq", "1.7.1", "arm64_sonoma")
        assert len(pkg.sha256) == 64

    def test_bad_filename(self, tmp_path):
        path = tmp_path / "random.bottle.tar.gz"
        path.write_bytes(b"")

        with pytest.raises(ParseError):
            HomebrewCodec().parse_package(path)


class TestFormula:
    def test_macos_and_linux_blocks(self, make_bottle):
        codec = HomebrewCodec("https://example.com/tap/")
        bottles = [
            codec.parse_package(make_bottle(platform=platform))
            for platform in ("arm64_sonoma", "sonoma", "x86_64_linux")
        ]
        arm, intel, linux = bottles

        formula = codec.write_index(bottles).decode()

        assert formula.startswith('class Jq < Formula\n  desc "jq package"\n')
        assert '  version "1.7.1"\n' in formula
        assert "  on_macos do\n    if Hardware::CPU.arm?\n" in formula
        arm_block = f'      url "https://example.com/tap/bottles/{arm.basename}"\n      sha256 "{arm.sha256}"'
        assert arm_block in formula
        assert "    if Hardware::CPU.intel?\n" in formula
        assert f'sha256 "{intel.sha256}"' in formula
        assert f'  on_linux do\n    url "https://example.com/tap/bottles/{linux.basename}"' in formula
        assert formula.endswith("end\n")

    def test_relative_urls_without_base_url(self, make_bottle):
        codec = HomebrewCodec()
        bottle = codec.parse_package(make_bottle())

        assert f'url "bottles/{bottle.basename}"' in codec.write_index([bottle]).decode()

    def test_needs_at_least_one_bottle(self):
        with pytest.raises(MetadataGenError):
            HomebrewCodec().write_index([])

    def test_existing_formulas(self, make_bottle, tmp_path):
        codec = HomebrewCodec()
        bottles = [codec.parse_package(make_bottle(platform=p)) for p in ("arm64_sonoma", "x86_64_linux")]
        formula_dir = tmp_path / "repo" / "Formula"
        formula_dir.mkdir(parents=True)
        (formula_dir / "jq.rb").write_bytes(codec.write_index(bottles))

        parsed = codec.parse_existing_index(tmp_path / "repo", RepositoryConfig())

        assert sorted(pkg.architecture for pkg in parsed) == ["arm64_sonoma", "x86_64_linux"]
        assert {pkg.sha256 for pkg in parsed} == {bottle.sha256 for bottle in bottles}
        assert all(pkg.version == "1.7.1" for pkg in parsed)
        assert parsed[0].published_path.startswith("bottles/jq--1.7.1.")

    def test_no_formulas(self, tmp_path):
        with pytest.raises(MetadataNotFoundError):
            HomebrewCodec().parse_existing_index(tmp_path, RepositoryConfig())
