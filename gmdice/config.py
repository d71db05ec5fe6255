from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="GMDICE_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    environment: str = "local"
    debug: bool = False
    log_level: str = "INFO"

    # Seed for every DieRoller the API and CLI create. Leave unset for
    # unpredictable rolls; set it to make a deployment reproducible.
    random_seed: int | None = None

    # Preset file served by GET /presets.
    preset_file: str = "presets.dice"

    # Specs longer than this are rejected by the HTTP API before parsing.
    max_spec_length: int = 1024


settings = Settings()
