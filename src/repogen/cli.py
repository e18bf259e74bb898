import logging
from pathlib import Path

import typer
from pydantic import ValidationError

from repogen.errors import RepoGenError
from repogen.models import DistroVariant, RepositoryConfig
from repogen.pipeline import generate_repository
from repogen.scanner import scan_directory

logger = logging.getLogger(__name__)

cli = typer.Typer(help="Generate package repositories from a directory of packages.")


def _set_verbose(verbose: bool) -> None:
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


@cli.command()
def generate(
    input_dir: Path = typer.Option(Path("."), "--input-dir", "-i", help="Directory to scan for packages"),
    output_dir: Path = typer.Option(Path("./repo"), "--output-dir", "-o", help="Repository output directory"),
    gpg_key: Path | None = typer.Option(None, "--gpg-key", "-k", help="OpenPGP private key for signing"),
    gpg_passphrase: str | None = typer.Option(
        None, "--gpg-passphrase", "-p", envvar="REPOGEN_GPG_PASSPHRASE", help="Passphrase for the GPG key"
    ),
    rsa_key: Path | None = typer.Option(None, "--rsa-key", help="RSA private key (PEM) for Alpine signing"),
    rsa_passphrase: str | None = typer.Option(
        None, "--rsa-passphrase", envvar="REPOGEN_RSA_PASSPHRASE", help="Passphrase for the RSA key"
    ),
    key_name: str = typer.Option("repogen", "--key-name", help="Key name used in Alpine signature files"),
    origin: str | None = typer.Option(
        None, "--origin", help="Repository origin (default: Repogen Repository)"
    ),
    label: str | None = typer.Option(None, "--label", help="Repository label (default: origin)"),
    codename: str = typer.Option("stable", "--codename", help="Debian codename"),
    suite: str | None = typer.Option(None, "--suite", help="Debian suite (default: codename)"),
    components: str = typer.Option("main", "--components", help="Comma-separated Debian components"),
    arch: str = typer.Option("amd64", "--arch", help="Comma-separated Debian architectures"),
    base_url: str | None = typer.Option(None, "--base-url", help="Public URL of the repository"),
    gpg_key_url: str | None = typer.Option(
        None, "--gpg-key-url", help="Public URL of the GPG key (RPM .repo)"
    ),
    distro: DistroVariant = typer.Option(DistroVariant.FEDORA, "--distro", help="RPM distribution variant"),
    version: str | None = typer.Option(None, "--version", help="RPM release version directory"),
    repo_name: str | None = typer.Option(None, "--repo-name", help="Pacman repository name"),
    incremental: bool = typer.Option(False, "--incremental", help="Add to an existing repository"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Scan INPUT_DIR for packages and write signed repositories to OUTPUT_DIR."""
    _set_verbose(verbose)

    try:
        config = RepositoryConfig(
            input_dir=input_dir,
            output_dir=output_dir,
            gpg_key_path=gpg_key,
            gpg_passphrase=gpg_passphrase,
            rsa_key_path=rsa_key,
            rsa_passphrase=rsa_passphrase,
            rsa_key_name=key_name,
            origin=origin,
            label=label,
            codename=codename,
            suite=suite,
            components=components,
            architectures=arch,
            base_url=base_url,
            gpg_key_url=gpg_key_url,
            distro_variant=distro,
            version=version,
            repo_name=repo_name,
            incremental=incremental,
        )
    except ValidationError as e:
        logger.error(f"Invalid configuration: {e}")
        raise typer.Exit(code=2) from e

    if not config.input_dir.is_dir():
        logger.error(f"Input directory {config.input_dir} does not exist")
        raise typer.Exit(code=2)

    try:
        counts = generate_repository(config)
    except RepoGenError as e:
        logger.error(str(e))
        raise typer.Exit(code=1) from e

    if not counts:
        logger.warning("Nothing was generated")
        return
    summary = ", ".join(f"{package_type}: {count}" for package_type, count in counts.items())
    logger.info(f"Repository generation complete ({summary})")


@cli.command()
def scan(
    input_dir: Path = typer.Argument(Path("."), help="Directory to scan"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """List the packages that would be picked up from INPUT_DIR."""
    _set_verbose(verbose)
    for item in scan_directory(input_dir):
        typer.echo(f"{item.type:<9} {item.size:>12}  {item.path}")


def main() -> None:
    """Main entry point for the repogen CLI."""
    cli()


if __name__ == "__main__":
    main()
