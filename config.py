import os
import sys
import logging
import structlog
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

GROQ_CHAT_COMPLETIONS_URL = "https://api.groq.com/openai/v1/chat/completions"

def _optional_float(value: str):
    return float(value) if value else None

class Config:
    # Jenkins Configuration
    JENKINS_URL = os.getenv("JENKINS_URL", "")
    JENKINS_USERNAME = os.getenv("JENKINS_USERNAME", "")
    JENKINS_API_TOKEN = os.getenv("JENKINS_API_TOKEN", "")

    # Groq Configuration
    GROQ_API_KEY = os.getenv("GROQ_API_KEY", "")
    GROQ_MODEL = os.getenv("GROQ_MODEL", "llama3-8b-8192")
    GROQ_API_URL = os.getenv("GROQ_API_URL", GROQ_CHAT_COMPLETIONS_URL)
    # Unset means no client-side timeout, same as requests itself
    GROQ_TIMEOUT = _optional_float(os.getenv("GROQ_TIMEOUT", ""))

    # Logging Configuration
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Setup structured logging
def setup_logging():
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO)
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

config = Config()
setup_logging()
logger = structlog.get_logger(__name__)
