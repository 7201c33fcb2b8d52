from functools import lru_cache
from pathlib import Path

from pydantic import AnyHttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Vault configuration loaded from environment."""

    lxd_socket_path: Path = Path("/var/snap/lxd/common/lxd/unix.socket")
    lxd_base_url: str = "http://lxd/1.0"
    lxd_request_timeout: float = 30.0
    operation_poll_timeout: float = 60.0
    operation_poll_interval: float = 1.0
    image_remotes: dict[str, AnyHttpUrl | str] = {
        "release": "https://cloud-images.ubuntu.com/releases/",
        "daily": "https://cloud-images.ubuntu.com/daily/",
    }
    default_image_remote: str = "release"
    image_arch: str = "amd64"
    upstream_request_timeout: int = 900
    user_agent: str = "LXD-Image-Vault/1.0"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)

    @property
    def socket_path(self) -> Path:
        return self.lxd_socket_path if self.lxd_socket_path.is_absolute() else Path.cwd() / self.lxd_socket_path

    @property
    def remotes(self) -> dict[str, str]:
        return {name: str(url) for name, url in self.image_remotes.items()}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return vault settings instance."""

    return Settings()
