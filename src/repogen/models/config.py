from enum import StrEnum
from pathlib import Path
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from repogen.constants import (
    DEFAULT_CODENAME,
    DEFAULT_COMPONENT,
    DEFAULT_DEB_ARCH,
    DEFAULT_KEY_NAME,
    DEFAULT_ORIGIN,
)

type OptionalStr = str | None
type OptionalPath = Path | None


class DistroVariant(StrEnum):
    FEDORA = "fedora"
    CENTOS = "centos"
    RHEL = "rhel"


class RepositoryConfig(BaseModel):
    """Settings for a single generation run.

    Fallback values (suite from codename, label from origin) are filled in
    when the model is built, so every consumer sees a complete config.
    """

    model_config = ConfigDict(frozen=True)

    input_dir: Path = Path(".")
    output_dir: Path = Path("./repo")

    # Debian
    origin: str = DEFAULT_ORIGIN
    label: str = DEFAULT_ORIGIN
    codename: str = DEFAULT_CODENAME
    suite: str = DEFAULT_CODENAME
    components: Annotated[list[str], Field(min_length=1)] = [DEFAULT_COMPONENT]
    architectures: Annotated[list[str], Field(min_length=1)] = [DEFAULT_DEB_ARCH]

    # RPM
    distro_variant: DistroVariant = DistroVariant.FEDORA
    version: OptionalStr = None
    base_url: OptionalStr = None
    gpg_key_url: OptionalStr = None

    # Pacman
    repo_name: OptionalStr = None

    # Signing
    gpg_key_path: OptionalPath = None
    gpg_passphrase: OptionalStr = None
    rsa_key_path: OptionalPath = None
    rsa_passphrase: OptionalStr = None
    rsa_key_name: str = DEFAULT_KEY_NAME

    incremental: bool = False

    @model_validator(mode="before")
    @classmethod
    def _resolve_defaults(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = {key: value for key, value in data.items() if value is not None and value != ""}
        data.setdefault("origin", DEFAULT_ORIGIN)
        data.setdefault("codename", DEFAULT_CODENAME)
        data.setdefault("suite", data["codename"])
        data.setdefault("label", data["origin"])
        for key in ("components", "architectures"):
            if isinstance(data.get(key), str):
                data[key] = [item.strip() for item in data[key].split(",") if item.strip()]
        return data

    @property
    def gpg_signing_enabled(self) -> bool:
        return self.gpg_key_path is not None

    @property
    def rsa_signing_enabled(self) -> bool:
        return self.rsa_key_path is not None

    @property
    def default_component(self) -> str:
        return self.components[0]
