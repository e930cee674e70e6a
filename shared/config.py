"""
ITSM Ticket Intelligence - Configuration

Settings are assembled once at the process boundary (CLI) and passed down as
plain parameters. Nothing below the CLI reads the environment.
"""

import os
from typing import Optional

from pydantic import BaseModel, Field

from shared.errors import ConfigurationError

DEFAULT_MONTHS_BACK = 6
DEFAULT_MIN_OCCURRENCES = 3


class Settings(BaseModel):
    """Runtime configuration for one invocation"""

    # ServiceNow (backend A)
    servicenow_instance: Optional[str] = None
    servicenow_username: Optional[str] = None
    servicenow_password: Optional[str] = None

    # Jira (backend B)
    jira_url: Optional[str] = None
    jira_email: Optional[str] = None
    jira_api_token: Optional[str] = None

    # Completion provider
    ai_provider: str = Field("ollama", description="ollama/openai/anthropic")
    ai_model: Optional[str] = None
    ai_url: Optional[str] = None
    ai_api_key: Optional[str] = None
    ai_timeout: float = 120.0

    # Analysis defaults
    months_back: int = DEFAULT_MONTHS_BACK
    min_occurrences: int = DEFAULT_MIN_OCCURRENCES
    request_timeout: float = 30.0

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables"""
        return cls(
            servicenow_instance=os.getenv("SERVICENOW_INSTANCE"),
            servicenow_username=os.getenv("SERVICENOW_USERNAME"),
            servicenow_password=os.getenv("SERVICENOW_PASSWORD"),
            jira_url=os.getenv("JIRA_URL"),
            jira_email=os.getenv("JIRA_EMAIL"),
            jira_api_token=os.getenv("JIRA_API_TOKEN"),
            ai_provider=os.getenv("AI_PROVIDER", "ollama"),
            ai_model=os.getenv("AI_MODEL"),
            ai_url=os.getenv("AI_URL"),
            ai_api_key=os.getenv("AI_API_KEY"),
            ai_timeout=float(os.getenv("AI_TIMEOUT", "120")),
            months_back=int(os.getenv("MONTHS_BACK", str(DEFAULT_MONTHS_BACK))),
            min_occurrences=int(os.getenv("MIN_OCCURRENCES", str(DEFAULT_MIN_OCCURRENCES))),
        )

    def require_servicenow(self) -> None:
        if not self.servicenow_instance:
            raise ConfigurationError("ServiceNow instance is required (SERVICENOW_INSTANCE)")
        if not (self.servicenow_username and self.servicenow_password):
            raise ConfigurationError(
                "ServiceNow credentials are required (SERVICENOW_USERNAME/SERVICENOW_PASSWORD)"
            )

    def require_jira(self) -> None:
        if not self.jira_url:
            raise ConfigurationError("Jira base URL is required (JIRA_URL)")
        if not (self.jira_email and self.jira_api_token):
            raise ConfigurationError("Jira credentials are required (JIRA_EMAIL/JIRA_API_TOKEN)")
