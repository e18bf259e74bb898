"""End-to-end generation: scan, parse, merge, then build every ecosystem."""

import asyncio
import logging
import threading
from collections import defaultdict
from collections.abc import Sequence
from contextlib import ExitStack

from repogen.codecs import get_codec
from repogen.constants import GPG_PUBLIC_KEY_FILENAME
from repogen.errors import GenerationCancelled, MetadataNotFoundError, ParseError
from repogen.fileops import ensure_dir, write_file
from repogen.generators import RepositoryGenerator, get_generator
from repogen.merge import merge
from repogen.models import Package, PackageType, RepositoryConfig
from repogen.scanner import ScannedPackage, scan_directory
from repogen.signing import GPGSigner, GpgSigning, RSASigner, RsaSigning, SigningMode, Unsigned

logger = logging.getLogger(__name__)

GPG_SIGNED_TYPES = {PackageType.DEB, PackageType.RPM, PackageType.PACMAN}


def parse_packages(
    scanned: Sequence[ScannedPackage],
    config: RepositoryConfig,
    cancel: threading.Event | None = None,
) -> dict[PackageType, list[Package]]:
    """Parse every scanned file, skipping the ones that cannot be read."""
    packages: dict[PackageType, list[Package]] = defaultdict(list)
    for item in scanned:
        if cancel is not None and cancel.is_set():
            raise GenerationCancelled("package parsing cancelled")
        try:
            pkg = get_codec(item.type, config).parse_package(item.path)
        except ParseError as e:
            logger.warning(f"Skipping unreadable package: {e}")
            continue
        logger.debug(f"Parsed {item.type} package {pkg.name} {pkg.version} ({pkg.architecture or 'no arch'})")
        packages[item.type].append(pkg)
    return dict(packages)


def load_existing(generator: RepositoryGenerator) -> list[Package]:
    """Read the published index for incremental mode, or nothing if there is none."""
    try:
        existing = generator.codec.parse_existing_index(generator.root, generator.config)
    except MetadataNotFoundError:
        logger.info(f"No existing {generator.package_type} metadata, performing full generation")
        return []
    except ParseError as e:
        logger.warning(f"Existing {generator.package_type} metadata is unreadable, regenerating: {e}")
        return []
    logger.info(f"Loaded {len(existing)} existing {generator.package_type} packages")
    return existing


def prepare_packages(generator: RepositoryGenerator, packages: Sequence[Package]) -> list[Package]:
    """Resolve the full package list for one ecosystem before anything is written.

    Raises:
        ConflictError: If the scan repeats an identity, or in incremental mode
            re-adds one that is already published
    """
    existing = load_existing(generator) if generator.config.incremental else []
    return merge(existing, packages, generator.package_type)


def generate_ecosystem(generator: RepositoryGenerator, packages: Sequence[Package]) -> int:
    generator.generate(packages)
    return len(packages)


async def _run_all(jobs: dict[PackageType, tuple[RepositoryGenerator, list[Package]]]) -> list:
    return await asyncio.gather(
        *(
            asyncio.to_thread(generate_ecosystem, generator, packages)
            for generator, packages in jobs.values()
        ),
        return_exceptions=True,
    )


def _signing_for(package_type: PackageType, gpg: SigningMode, rsa: SigningMode) -> SigningMode:
    match package_type:
        case PackageType.DEB | PackageType.RPM | PackageType.PACMAN:
            return gpg
        case PackageType.APK:
            return rsa
        case _:
            return Unsigned()


def generate_repository(
    config: RepositoryConfig,
    cancel: threading.Event | None = None,
) -> dict[PackageType, int]:
    """Generate repositories for every package type found in the input directory.

    Validation and the incremental merge run for every ecosystem before the
    output directory is touched, so a conflict or bad config writes nothing.
    Ecosystems are then built concurrently and independently; a failure in one
    does not stop the others. Outputs already written are left in place.

    Args:
        config: Resolved run configuration
        cancel: Optional event; setting it stops the run at the next file boundary

    Returns:
        Number of packages indexed per ecosystem

    Raises:
        RepoGenError: The first fatal error hit by any ecosystem
    """
    scanned = scan_directory(config.input_dir, exclude=config.output_dir, cancel=cancel)
    if not scanned:
        logger.warning(f"No packages found in {config.input_dir}")
        return {}

    by_type = parse_packages(scanned, config, cancel)
    if not by_type:
        logger.warning("No readable packages found")
        return {}

    with ExitStack() as stack:
        gpg_mode: SigningMode = Unsigned()
        rsa_mode: SigningMode = Unsigned()
        if config.gpg_key_path is not None and GPG_SIGNED_TYPES & by_type.keys():
            signer = stack.enter_context(GPGSigner(config.gpg_key_path, config.gpg_passphrase))
            gpg_mode = GpgSigning(signer)
        if config.rsa_key_path is not None and PackageType.APK in by_type:
            rsa_mode = RsaSigning(RSASigner(config.rsa_key_path, config.rsa_passphrase), config.rsa_key_name)

        jobs: dict[PackageType, tuple[RepositoryGenerator, list[Package]]] = {}
        for package_type, pkgs in sorted(by_type.items()):
            signing = _signing_for(package_type, gpg_mode, rsa_mode)
            jobs[package_type] = (get_generator(package_type, config, signing, cancel), pkgs)
        for package_type, (generator, pkgs) in jobs.items():
            generator.validate(pkgs)
            jobs[package_type] = (generator, prepare_packages(generator, pkgs))

        ensure_dir(config.output_dir)
        results = asyncio.run(_run_all(jobs))

        counts: dict[PackageType, int] = {}
        errors: list[BaseException] = []
        for package_type, result in zip(jobs, results):
            if isinstance(result, BaseException):
                logger.error(f"{package_type} generation failed: {result}")
                errors.append(result)
            else:
                counts[package_type] = result

        # only publish the key next to repositories that were actually signed with it
        if isinstance(gpg_mode, GpgSigning) and GPG_SIGNED_TYPES & counts.keys():
            write_file(config.output_dir / GPG_PUBLIC_KEY_FILENAME, gpg_mode.signer.get_public_key())

    if errors:
        raise errors[0]
    return counts

