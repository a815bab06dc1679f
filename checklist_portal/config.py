from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator


class SheetsConfig(BaseModel):
    credentials_file: Path = Field(
        ..., description="Path to the Google service account JSON credentials"
    )
    spreadsheet_id: str = Field(..., description="ID of the spreadsheet holding portal data")
    projects_sheet_name: str = Field("ALL", description="Tab name with one row per project")
    logins_sheet_name: str = Field("App: Logins", description="Tab name with portal logins")
    past_inspections_sheet_name: Optional[str] = Field(
        "Past Inspections",
        description="Optional tab with historical inspection results",
    )
    inspection_requests_sheet_name: Optional[str] = Field(
        "Inspection Requests",
        description="Optional tab where new inspection requests are logged",
    )
    contact_emails_sheet_name: Optional[str] = Field(
        "Additional Contact Emails",
        description="Optional tab where added project contacts are logged",
    )
    client_uploads_sheet_name: Optional[str] = Field(
        "Client Uploads",
        description="Optional tab where client file uploads are logged",
    )
    header_row: int = Field(
        1,
        ge=1,
        description="1-based row number that contains the column headers",
    )
    data_start_row: int = Field(
        2,
        ge=1,
        description="1-based row number where table data begins",
    )

    @field_validator("credentials_file")
    @classmethod
    def _expand_credentials_path(cls, value: Path) -> Path:
        return value.expanduser().resolve()

    @model_validator(mode="after")
    def _validate_rows(self) -> "SheetsConfig":
        if self.data_start_row <= self.header_row:
            msg = "data_start_row must be greater than header_row"
            raise ValueError(msg)
        return self


class GHLConfig(BaseModel):
    """GoHighLevel CRM settings; every secret may come from the environment."""

    api_key: str | None = Field(None, description="Explicit API key")
    api_key_env: str | None = Field(
        "GHL_API_KEY",
        description="Environment variable with the API key",
    )
    location_id: str | None = Field(None, description="GHL location identifier")
    location_id_env: str | None = Field(
        "GHL_LOCATION_ID",
        description="Environment variable with the location identifier",
    )
    webhook_url: str | None = Field(
        None,
        description="Optional webhook receiving updates instead of the REST API",
    )
    webhook_url_env: str | None = Field(
        "GHL_WEBHOOK_URL",
        description="Environment variable with the webhook URL",
    )
    base_url: str = Field(
        "https://rest.gohighlevel.com/v1",
        description="Base URL of the GHL REST API",
    )
    request_timeout: int = Field(30, gt=0, description="Timeout in seconds for API requests")
    max_workers: int = Field(
        1,
        ge=1,
        le=20,
        description="Number of parallel threads used when pushing pending records",
    )
    max_retries: int = Field(
        3,
        ge=1,
        description="Attempts per record before giving up on rate limited pushes",
    )

    def resolved_api_key(self) -> str | None:
        return _resolve(self.api_key, self.api_key_env)

    def resolved_location_id(self) -> str | None:
        return _resolve(self.location_id, self.location_id_env)

    def resolved_webhook_url(self) -> str | None:
        return _resolve(self.webhook_url, self.webhook_url_env)


def _resolve(value: str | None, env_name: str | None) -> str | None:
    if value:
        return value
    if env_name:
        return os.environ.get(env_name) or None
    return None


class AppConfig(BaseModel):
    sheets: SheetsConfig
    database_path: Path | None = Field(
        None,
        description="Optional path to the SQLite database with synced portal data",
    )
    ghl: GHLConfig = Field(default_factory=GHLConfig)
    all_companies_token: str = Field(
        "ALL",
        min_length=1,
        description="Company value that grants access to every project",
    )

    @field_validator("database_path")
    @classmethod
    def _expand_database_path(cls, value: Path | None) -> Path | None:
        if value is None:
            return None
        return value.expanduser().resolve()


def load_config(path: str | Path) -> AppConfig:
    """Load configuration from a YAML file and return a validated object."""

    config_path = Path(path).expanduser().resolve()
    if not config_path.exists():
        msg = f"Configuration file not found: {config_path}"
        raise FileNotFoundError(msg)

    with config_path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)

    if data is None:
        msg = f"Configuration file is empty: {config_path}"
        raise ValueError(msg)

    try:
        return AppConfig.model_validate(data)
    except ValidationError as exc:  # pragma: no cover - passthrough for readability
        raise ValueError(f"Invalid configuration: {exc}") from exc
