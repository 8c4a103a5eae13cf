from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    rules_path: str = "rules.json"
    # trailing-edge delay before a full reapply after navigation / resize
    debounce_ms: int = 500
    marker_class_prefix: str = "pagemarker-highlight-"
    # class / id fragment identifying companion UI (minimap etc.)
    companion_prefix: str = "pagemarker-minimap"
    request_timeout: float = 15.0
    max_document_bytes: int = 5 * 1024 * 1024
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_prefix": "PAGEMARKER_"}


settings = Settings()
