"""Configuration management."""
import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class Config:
    """Application configuration."""
    
    # API
    PRH_API_BASE_URL = os.getenv(
        "PRH_API_BASE_URL",
        "https://api.penguinrandomhouse.com/resources/v2/domains/PRH.US"
    )
    PRH_API_KEY = os.getenv("PRH_API_KEY", "")
    
    # HTTP
    DEFAULT_TIMEOUT = int(os.getenv("DEFAULT_TIMEOUT", "10"))
    DEFAULT_MAX_RETRIES = int(os.getenv("DEFAULT_MAX_RETRIES", "3"))
    BASE_BACKOFF = float(os.getenv("BASE_BACKOFF", "1.0"))
    
    # Bulk loading
    BULK_BATCH_SIZE = int(os.getenv("BULK_BATCH_SIZE", "500"))
    BULK_BATCH_DELAY = float(os.getenv("BULK_BATCH_DELAY", "1.0"))
    AUTHORS_TOTAL_ESTIMATE = int(os.getenv("AUTHORS_TOTAL_ESTIMATE", "60000"))
    TITLES_TOTAL_ESTIMATE = int(os.getenv("TITLES_TOTAL_ESTIMATE", "200000"))
    
    # Paging
    DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "10"))
    LUCKY_FALLBACK_CEILING = int(os.getenv("LUCKY_FALLBACK_CEILING", "10000"))
    
    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
