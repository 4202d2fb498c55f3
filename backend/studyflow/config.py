from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str
    secret_key: str
    access_token_expire_hours: int = 24
    backend_cors_origins: str = "http://localhost:5173"
    # How many fresh participant codes are tried before giving up on a collision.
    participant_code_attempts: int = 5
    log_level: str = "INFO"
    sql_echo: bool = False

    model_config = {"env_file": "../.env", "env_file_encoding": "utf-8"}

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.backend_cors_origins.split(",")]


@lru_cache
def load_settings() -> Settings:
    """Read settings from the environment once per process."""
    return Settings()
