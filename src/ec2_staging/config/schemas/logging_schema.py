"""Logging configuration schema."""

from typing import Optional

from pydantic import BaseModel, Field


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field("INFO", description="Log level for the ec2_staging logger")
    console_enabled: bool = Field(True, description="Log to stderr")
    file_path: Optional[str] = Field(None, description="Optional log file path")
    format: Optional[str] = Field(None, description="logging.Formatter format string")
