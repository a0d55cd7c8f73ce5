from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # Melo service
    MELO_RPC_URL: str = "http://localhost:8080/rpc"
    REQUEST_TIMEOUT_SECONDS: int = 30

    # Polling
    POLL_INTERVAL_SECONDS: float = 1.0
    PLAYER_POLL_ENABLED: bool = False
    PLAYLIST_POLL_ENABLED: bool = False

    # Browsing
    BROWSER_ROOT_PATH: str = "/"

    # System
    LOG_LEVEL: str = "INFO"
    HTTP_SERVER_ENABLED: bool = True
    HTTP_SERVER_HOST: str = "127.0.0.1"
    HTTP_SERVER_PORT: int = 8090

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

settings = Settings()
