from pydantic_settings import BaseSettings
from pydantic import ConfigDict, Field
from typing import List, Optional

class Settings(BaseSettings):
    model_config = ConfigDict(extra="allow", env_file=".env", case_sensitive=True)

    DEBUG: bool = False
    PROJECT_NAME: str = "InfraAudit Drift Engine"
    VERSION: str = "0.1.0"
    ENVIRONMENT: str = ""

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    LOG_FILE: Optional[str] = None

    # Drift classification
    NARRATIVE_MAX_CHANGES: int = Field(
        default=5,
        description="Number of changes listed in a drift narrative before truncating"
    )
    LARGE_CHANGE_THRESHOLD: int = Field(
        default=5,
        description="Modified resources with more changes than this are rated high"
    )

    # IaC reconciliation
    EXTRA_COMPUTED_FIELDS: List[str] = Field(
        default_factory=list,
        description="Additional provider-assigned fields ignored when reconciling"
    )

    # Observability
    METRICS_ENABLED: bool = True
    ENABLE_TRACING: bool = False
    OTLP_ENDPOINT: str = "localhost:4317"

settings = Settings()
