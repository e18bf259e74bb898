from os import getenv

# Defaults applied when the corresponding option is not given
DEFAULT_ORIGIN = getenv("REPOGEN_DEFAULT_ORIGIN", "Repogen Repository")
DEFAULT_CODENAME = "stable"
DEFAULT_COMPONENT = "main"
DEFAULT_KEY_NAME = "repogen"

# Architecture assumed for packages that do not declare one
DEFAULT_DEB_ARCH = "amd64"
DEFAULT_RPM_ARCH = "x86_64"
DEFAULT_APK_ARCH = "x86_64"
DEFAULT_PACMAN_ARCH = "x86_64"

# Release version directory used when an RPM carries no distro hint
DISTRO_DEFAULT_VERSIONS = {
    "fedora": "40",
    "centos": "9",
    "rhel": "9",
}
FALLBACK_RPM_VERSION = "40"

# Armored public key written next to GPG-signed output
GPG_PUBLIC_KEY_FILENAME = "repogen.asc"

# Read size for hashing and copying
CHUNK_SIZE = 64 * 1024
