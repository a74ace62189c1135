"""Application configuration contract."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from metamode.errors import ConfigError

KNOWN_RULES = (
    "unique-id-per-scope",
    "deps-must-exist",
    "no-circular-runtime-deps",
    "required-fields-present",
    "visibility-consistency",
    "schema-validates",
)

KNOWN_FIELDS = (
    "id",
    "name",
    "desc",
    "tags",
    "deps",
    "ai",
    "visibility",
    "version",
    "phase",
    "status",
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = Field(alias="APP_ENV", default="dev")
    log_level: str = Field(alias="LOG_LEVEL", default="INFO")
    source_dirs: str = Field(alias="MM_SOURCE_DIRS", default="src,scripts")
    extensions: str = Field(alias="MM_EXTENSIONS", default=".ts,.tsx,.js,.jsx,.vue,.py")
    exclude: str = Field(
        alias="MM_EXCLUDE",
        default="node_modules,dist,.git,.vite,coverage,__pycache__,.venv",
    )
    max_depth: int = Field(alias="MM_MAX_DEPTH", default=0)
    db_version: str = Field(alias="MM_DB_VERSION", default="2.0.0")
    output_dir: str = Field(alias="MM_OUTPUT_DIR", default=".metamode")
    token_budget: int = Field(alias="MM_TOKEN_BUDGET", default=4000)
    max_entries: int = Field(alias="MM_MAX_ENTRIES", default=100)
    required_fields: str = Field(alias="MM_REQUIRED_FIELDS", default="id,desc")
    warn_only_rules: str = Field(alias="MM_WARN_ONLY_RULES", default="")
    path_segment_match: int = Field(alias="MM_PATH_SEGMENT_MATCH", default=1)


def split_csv(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


def validate_settings(settings: Settings) -> None:
    problems: list[str] = []
    if settings.token_budget <= 0:
        problems.append("MM_TOKEN_BUDGET(must be > 0)")
    if settings.max_entries <= 0:
        problems.append("MM_MAX_ENTRIES(must be > 0)")
    if settings.max_depth < 0:
        problems.append("MM_MAX_DEPTH(must be >= 0)")
    if not split_csv(settings.extensions):
        problems.append("MM_EXTENSIONS(empty)")

    unknown_rules = [
        rule for rule in split_csv(settings.warn_only_rules) if rule not in KNOWN_RULES
    ]
    if unknown_rules:
        problems.append(f"MM_WARN_ONLY_RULES(unknown: {', '.join(unknown_rules)})")
    unknown_fields = [
        name for name in split_csv(settings.required_fields) if name not in KNOWN_FIELDS
    ]
    if unknown_fields:
        problems.append(f"MM_REQUIRED_FIELDS(unknown: {', '.join(unknown_fields)})")

    if problems:
        raise ConfigError(f"invalid metamode configuration: {', '.join(problems)}")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
