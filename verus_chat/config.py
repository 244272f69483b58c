from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings configuration class for the chat backend."""

    app_name: str = "verus-chat"

    # RPC Configuration
    # No daemon port here: it only comes from a discovered config file or
    # explicit user input.
    rpc_host: str = "127.0.0.1"
    rpc_timeout: float = 10.0  # General calls, seconds
    probe_timeout: float = 8.0  # Liveness probes during detection, seconds
    request_id_prefix: str = "chat-dapp"

    # Messaging Configuration
    memo_limit_bytes: int = 512
    send_minconf: int = 1
    poll_minconf: int = 0  # Include unconfirmed messages when polling

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="VERUS_CHAT_",
        env_file_encoding="utf-8",
    )


settings = Settings()
