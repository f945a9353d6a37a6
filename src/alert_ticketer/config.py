"""
Configuration management for Alert Ticketer.

This module handles environment variable configuration and application settings
for the webhook server, the identity store, the email sink and the work item tracker.
"""

from pathlib import Path
from typing import List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings


class Config(BaseSettings):
    """Application configuration loaded from environment variables."""

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=3000, description="Server port")
    log_level: str = Field(default="INFO", description="Logging level")

    # Identity Store Configuration
    state_dir: str = Field(default="/tmp", description="Directory holding the durable identity records")
    counter_file: str = Field(default="alertIdCounter.json", description="Counter record file name")
    mapping_file: str = Field(default="alertMapping.json", description="Alert key mapping record file name")
    alert_id_prefix: str = Field(default="ALR-SWF", description="Prefix of generated alert IDs")
    initial_counter: int = Field(default=100, description="Counter value used when no record exists")

    # Email Configuration
    smtp_host: str = Field(default="smtp.office365.com", description="SMTP server host")
    smtp_port: int = Field(default=587, description="SMTP server port")
    smtp_use_tls: bool = Field(default=True, description="Use STARTTLS")
    email_user: str = Field(default="", description="SMTP username")
    email_pass: str = Field(default="", description="SMTP password")
    email_from: str = Field(default="", description="Sender address")
    email_to: str = Field(default="", description="Primary recipient")
    email_to_1: str = Field(default="", description="Additional recipient")
    email_to_2: str = Field(default="", description="Additional recipient")
    email_footer_text: str = Field(
        default="This Alert is Generated By Software Factory Team",
        description="Signature line appended to every notification"
    )
    email_logo_url: Optional[str] = Field(
        default="https://mspmovil.com/en/wp-content/uploads/software-factory.png",
        description="Logo shown in the notification footer"
    )

    # Azure DevOps Configuration
    ado_base_url: str = Field(default="https://dev.azure.com", description="Azure DevOps base URL")
    ado_organization: str = Field(default="TICMPL", description="Azure DevOps organization")
    ado_project: str = Field(default="Training", description="Azure DevOps project")
    ado_work_item_type: str = Field(default="Bug", description="Work item type created for firing alerts")
    ado_api_version: str = Field(default="6.0", description="Azure DevOps REST API version")
    pat: str = Field(default="", description="Azure DevOps personal access token")
    http_timeout_seconds: float = Field(default=30.0, description="Timeout for tracker requests")

    # Reconciliation Configuration
    ticket_policy: str = Field(
        default="always_create",
        description="Firing alert ticket policy: always_create or reuse_open"
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    @property
    def counter_path(self) -> Path:
        """Full path of the counter record."""
        return Path(self.state_dir) / self.counter_file

    @property
    def mapping_path(self) -> Path:
        """Full path of the alert key mapping record."""
        return Path(self.state_dir) / self.mapping_file

    @property
    def email_recipients(self) -> List[str]:
        """Configured recipients with blanks removed."""
        return [
            address.strip()
            for address in (self.email_to, self.email_to_1, self.email_to_2)
            if address and address.strip()
        ]

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.log_level.upper() == "DEBUG"


# Global configuration instance
config = Config()
