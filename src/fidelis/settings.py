"""Configuration loading and validation for Fidelis.

Configuration is loaded from fidelis.yaml and validated using Pydantic.
The resulting object is passed explicitly into ``LoyaltyApp.start``.
"""

from __future__ import annotations

from functools import cache
from pathlib import Path

import omegaconf as oc
import pydantic as pdt
import pydantic_settings as pdts

import fidelis.backends as backends
import fidelis.errors as errors
import fidelis.models as models


class Settings(pdts.BaseSettings):
    """Base settings class with strict validation.

    Only a section left out of fidelis.yaml is built from its defaults, and
    only then does it read FIDELIS_-prefixed environment variables (e.g.
    FIDELIS_URL). Values loaded from the file ignore the
    environment.
    """

    model_config = pdts.SettingsConfigDict(
        strict=True,
        frozen=True,
        extra="forbid",
        env_prefix="FIDELIS_",
    )


class SyncSettings(Settings):
    """Remote replication settings.

    ``url`` is the default endpoint, used until a URL is saved in the local
    store with ``fidelis sync-url``. Leaving it unset disables sync.
    """

    url: str | None = None
    timeout_seconds: float = 10.0
    pull_on_start: bool = True


class RewardSettings(Settings):
    """Point accrual constants."""

    points_threshold: int = pdt.Field(default=models.FIDELITY_POINTS_THRESHOLD, gt=0)
    points_for_reward: int = pdt.Field(default=models.FIDELITY_POINTS_FOR_REWARD, gt=0)


class FidelisSettings(Settings):
    """Root configuration loaded from fidelis.yaml.

    Example fidelis.yaml:
        name: pizza-n-gooo
        passcode: "060821"
        store:
          kind: sqlite
          path: .fidelis/store.db
        sync:
          url: https://script.google.com/macros/s/.../exec
          timeout_seconds: 10
          pull_on_start: true
        rewards:
          points_threshold: 75000
          points_for_reward: 10
    """

    name: str
    passcode: str = pdt.Field(min_length=1)
    store: backends.StoreKind
    sync: SyncSettings = pdt.Field(default_factory=SyncSettings)
    rewards: RewardSettings = pdt.Field(default_factory=RewardSettings)

    _config_path: Path | None = pdt.PrivateAttr(default=None)

    @property
    def config_path(self) -> Path | None:
        return self._config_path


def load_settings(path: Path | str = Path("fidelis.yaml")) -> FidelisSettings:
    """Load and validate Fidelis configuration from a YAML file.

    Relative sqlite store paths are resolved against the directory holding
    the configuration file.

    Raises:
        ConfigNotFoundError: If config file doesn't exist.
        ConfigValidationError: If config fails validation.
    """
    path = Path(path)

    if not path.exists():
        raise errors.ConfigNotFoundError(str(path))

    try:
        config = oc.OmegaConf.load(path)
        config_dict = oc.OmegaConf.to_container(config, resolve=True)
        if not isinstance(config_dict, dict):
            raise errors.ConfigValidationError(
                path=str(path),
                details="Top level of the configuration must be a mapping",
            )
        _resolve_store_path(config_dict, path.parent)
        settings = FidelisSettings.model_validate(config_dict)
        object.__setattr__(settings, "_config_path", path)
        return settings
    except pdt.ValidationError as e:
        raise errors.ConfigValidationError(
            path=str(path),
            details=_format_validation_errors(e),
        ) from e
    except oc.errors.OmegaConfBaseException as e:
        raise errors.ConfigValidationError(
            path=str(path),
            details=str(e),
        ) from e


def _resolve_store_path(config_dict: dict, root: Path) -> None:
    store = config_dict.get("store")
    if isinstance(store, dict) and isinstance(store.get("path"), str):
        store_path = Path(store["path"])
        if not store_path.is_absolute():
            store["path"] = str(root / store_path)


def _format_validation_errors(error: pdt.ValidationError) -> str:
    """Format Pydantic validation errors into readable messages."""
    messages = []
    for err in error.errors():
        loc = ".".join(str(x) for x in err["loc"])
        msg = err["msg"]
        messages.append(f"  - {loc}: {msg}")
    return "\n".join(messages)


@cache
def get_settings() -> FidelisSettings:
    """Get cached settings instance from ./fidelis.yaml.

    For testing or when you need to load from a specific path,
    use load_settings() directly.
    """
    return load_settings()
