#!/usr/bin/env python3
"""
RATCHET SETTINGS
----------------
Environment configuration, read once per command invocation.

Author: Ratchet Team
Date: 2026-10-18
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(case_sensitive=False, populate_by_name=True, extra="ignore")

    # GitHub or GitHub Enterprise REST root
    actions_base_url: str = Field(default="https://api.github.com", alias="ACTIONS_BASE_URL")
    actions_token: Optional[str] = Field(default=None, alias="ACTIONS_TOKEN")
    github_token: Optional[str] = Field(default=None, alias="GITHUB_TOKEN")

    request_timeout: float = Field(default=10.0, alias="RATCHET_REQUEST_TIMEOUT")

    debug_newline_parsing: bool = Field(default=False, alias="RATCHET_DEBUG_NEWLINE_PARSING")
    log_level: str = Field(default="WARNING", alias="RATCHET_LOG_LEVEL")

    @property
    def token(self) -> Optional[str]:
        return self.actions_token or self.github_token or None
