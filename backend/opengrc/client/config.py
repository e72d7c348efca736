from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="OPENGRC_",
        extra="ignore",
    )

    API_URL: str = "http://localhost:8080/api/v1"
    TIMEOUT: float | None = None
    CREDENTIALS_FILE: str = str(Path.home() / ".opengrc" / "credentials.json")

    @property
    def sso_base_url(self) -> str:
        return sso_base(self.API_URL)


def sso_base(api_url: str) -> str:
    """SSO endpoints live beside the API, not under /api/v1."""
    url = api_url.rstrip("/")
    if url.endswith("/api/v1"):
        url = url[: -len("/api/v1")]
    return url


client_settings = ClientSettings()
