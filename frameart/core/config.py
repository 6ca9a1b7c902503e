from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    FRAME_ART_PATH: Path = Path("/config/www/frame_art")

    # Git / LFS expectations checked by SyncEngine.verify()
    EXPECTED_REMOTE: str = "frame_art"
    REMOTE_NAME: str = "origin"
    REQUIRED_BRANCH: str = "main"
    REQUIRE_LFS: bool = True

    # Sync log lives next to the app, not inside the art repository
    SYNC_LOG_PATH: Path = Path("sync_logs.json")
    SYNC_LOG_LIMIT: int = 100

    GIT_TIMEOUT_SECONDS: float = 60.0
    GIT_PROCESS_TIMEOUT_SECONDS: float = 600.0
    AUTO_PULL_ON_STARTUP: bool = True
    AUTO_SYNC: bool = False  # commit+push touched files after each mutating request

    THUMBNAIL_WIDTH: int = 400
    THUMBNAIL_HEIGHT: int = 300
    MAX_UPLOAD_BYTES: int = 50 * 1024 * 1024

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8"
    )

    @property
    def library_path(self) -> Path:
        return self.FRAME_ART_PATH / "library"

    @property
    def thumbs_path(self) -> Path:
        return self.FRAME_ART_PATH / "thumbs"

    @property
    def metadata_path(self) -> Path:
        return self.FRAME_ART_PATH / "metadata.json"


settings = Settings()
