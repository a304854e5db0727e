"""Runtime settings, read from ``STOCK_COUNT_*`` environment variables or ``.env``."""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="STOCK_COUNT_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    csv_delimiter: str = ","
    include_timestamp: bool = True
    include_employee_info: bool = True

    file_prefix: str = "inventory"
    output_dir: str = "output"
    json_format_version: str = "1.1"

    unknown_branch_code: str = "XXX"
    unknown_branch_name: str = "Unspecified branch"

    multi_unit_enabled: bool = True
    log_level: str = "INFO"

    @property
    def delimiter(self) -> str:
        """Single-character delimiter; the escaped form ``\\t`` means a tab."""

        value = self.csv_delimiter
        if value == "\\t":
            return "\t"
        if len(value) != 1:
            raise ValueError(f"CSV delimiter must be one character: {value!r}")
        return value


settings = Settings()
