from __future__ import annotations

from typing import Any, Optional
from urllib.parse import urlparse

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from structurizr_dsl_mcp.config import DEFAULT_DEBUG_PORT, DEFAULT_MAX_ERRORS


class ToolInputBase(BaseModel):
    """Shared configuration for structured tool inputs."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        populate_by_name=True,
        extra="forbid",
    )

    response_format: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("_format", "response_format", "responseFormat"),
        serialization_alias="_format",
        description="Optional response rendering hint (`markdown` or `json`).",
    )


class ProcessDslErrorInput(ToolInputBase):
    error_text: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("error_text", "errorText", "text"),
        description="The Structurizr DSL error text to process.",
    )


class GetDslErrorsInput(ToolInputBase):
    count: int = Field(
        default=10,
        ge=1,
        le=DEFAULT_MAX_ERRORS,
        description="Number of recent DSL errors to retrieve (1-100).",
    )
    unique: bool = Field(
        default=False,
        description="Collapse repeated errors with the same file, line and message.",
    )


class ClearDslErrorsInput(ToolInputBase):
    """Input for `clearDslErrors`; accepts optional formatting hints only."""


class FixDslErrorInput(ToolInputBase):
    line: int = Field(
        ...,
        ge=1,
        description="1-based line number of the error in workspace.dsl.",
    )
    fix: str = Field(
        ...,
        min_length=1,
        description="Suggested fix for the error.",
    )


class BrowserPortsInput(ToolInputBase):
    structurizr_port: Optional[int] = Field(
        default=None,
        ge=1,
        le=65535,
        validation_alias=AliasChoices("structurizr_port", "structurizrPort"),
        description="Port the Structurizr UI is served on; defaults to the server setting.",
    )


class LaunchBrowserInput(BrowserPortsInput):
    url: Optional[str] = Field(
        default=None,
        description="URL to open; defaults to the local Structurizr UI.",
    )
    headless: bool = Field(
        default=False,
        description="Whether to run the browser in headless mode.",
    )

    @field_validator("url")
    @classmethod
    def _validate_url(cls, value: Optional[str]) -> Optional[str]:
        if not value:
            return None
        parsed = urlparse(value)
        if parsed.scheme not in {"http", "https", "file"}:
            raise ValueError("url must use http, https or file scheme.")
        return value


class ConnectToBrowserInput(BrowserPortsInput):
    debug_port: int = Field(
        default=DEFAULT_DEBUG_PORT,
        ge=1,
        le=65535,
        validation_alias=AliasChoices("debug_port", "debugPort"),
        description="Remote-debugging port of the running browser.",
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_null_debug_port(cls, data: Any) -> Any:
        """Treat an explicit ``null`` debug port as "use the default"."""
        if isinstance(data, dict):
            for key in ("debug_port", "debugPort"):
                if key in data and data[key] is None:
                    data = {k: v for k, v in data.items() if k != key}
        return data


class BrowserStatusInput(ToolInputBase):
    """Input for `checkBrowserStatus`; accepts optional formatting hints only."""


class ToolSpecInput(ToolInputBase):
    """Input for `getToolSpec`; accepts optional formatting hints only."""

    pass
