"""
src/config.py

Environment-driven settings, provider names and pricing defaults.
"""


import logging
import os
from enum import Enum
from typing import Optional


class Provider(str, Enum):

    AWS = "aws"
    AZURE = "azure"
    GCP = "gcp"
    RDS = "rds"
    ELASTICACHE = "elasticache"
    OPENSEARCH = "opensearch"
    REDSHIFT = "redshift"


def _env_bool(name: str, default: bool) -> bool:

    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default

    return raw.strip().lower() in ("1", "true", "yes", "on")


# Remote tool service
MCP_URL = os.getenv("VANTAGE_INSTANCES_MCP_URL")
MCP_API_KEY = os.getenv("VANTAGE_INSTANCES_MCP_KEY") or os.getenv("VANTAGE_INSTANCES_MCP_API_KEY")
MCP_TIMEOUT_SECONDS: float = float(os.getenv("MCP_TIMEOUT_SECONDS", "30"))

# Model backend
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
OPENAI_STREAM: bool = _env_bool("OPENAI_STREAM", True)
MODEL_RESPONSE_TIMEOUT_SECONDS: float = float(os.getenv("MODEL_RESPONSE_TIMEOUT_SECONDS", "60"))

# Sent once through the full turn loop at startup when set
DEBUG_PROMPT = os.getenv("PRICING_DEBUG_PROMPT")

# Defaults
ASSISTANT_NAME = "CloudPricingAssistant"
DEFAULT_PROVIDER: Provider = Provider.AWS
DEFAULT_PURCHASE_OPTION = "on-demand"
DEFAULT_OS = "linux"

# Observability buffers
TOOL_CALL_LOG_CAPACITY: int = 50
MCP_RESULT_LOG_CAPACITY: int = 20

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Web front-end
APP_HOST = os.getenv("APP_HOST", "0.0.0.0")
APP_PORT: int = int(os.getenv("APP_PORT", "7860"))


def configure_logging(level: Optional[str] = None) -> None:
    """Root logging setup for the app process"""

    logging.basicConfig(
        level=(level or LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
# EOF
