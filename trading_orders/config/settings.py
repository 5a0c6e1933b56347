"""
Configuration Management using Pydantic Settings

Loads from environment variables with .env file support
Type-safe configuration with validation
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import Optional
from pathlib import Path
from dotenv import load_dotenv
import logging
import sys

logger = logging.getLogger(__name__)


def load_env_file() -> bool:
    """Load .env file from multiple possible locations"""
    possible_paths = [
        Path('.env'),
        Path(__file__).parent.parent / '.env',
        Path(__file__).parent.parent.parent / '.env',
    ]

    for path in possible_paths:
        if path.exists():
            load_dotenv(path)
            logger.debug(f"Loaded .env from: {path.absolute()}")
            return True

    logger.debug("No .env file found, using environment variables")
    return False


# Load .env before defining Settings
load_env_file()


class Settings(BaseSettings):

    """Application settings"""

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore'
    )

    # ========================================================================
    # Tastytrade Configuration
    # ========================================================================

    tastytrade_client_secret: str = Field(
        default="",
        description="Tastytrade OAuth client secret"
    )

    tastytrade_refresh_token: str = Field(
        default="",
        description="Tastytrade OAuth refresh token"
    )

    tastytrade_account_number: Optional[str] = Field(
        default=None,
        description="Account orders are routed to"
    )

    is_paper_trading: bool = Field(
        default=False,
        description="Use the Tastytrade certification (sandbox) environment"
    )

    # ========================================================================
    # Logging Configuration
    # ========================================================================

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    log_file: Optional[Path] = Field(
        default=None,
        description="Log file path (None for stdout only)"
    )

    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format"
    )

    # ========================================================================
    # Order Validation
    # ========================================================================

    buying_power_warning_pct: float = Field(
        default=80.0,
        description="Warn when an order uses more than this % of buying power"
    )

    max_order_quantity: int = Field(
        default=999_999,
        description="Largest quantity accepted on a single leg"
    )

    max_order_price: float = Field(
        default=1_000_000.0,
        description="Prices above this are always rejected"
    )

    auto_round_prices: bool = Field(
        default=False,
        description="Re-price off-grid limit prices to the nearest tick instead of rejecting"
    )

    # ========================================================================
    # Market Calendar
    # ========================================================================

    market_timezone: str = Field(
        default="US/Eastern",
        description="Timezone used for market-hours checks"
    )

    market_calendar: str = Field(
        default="XNYS",
        description="exchange_calendars calendar code"
    )

    order_rules_file: Optional[Path] = Field(
        default=None,
        description="Path to order_rules.yaml (None searches default locations)"
    )

    # ========================================================================
    # Validators
    # ========================================================================

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v.upper()

    @field_validator('buying_power_warning_pct')
    @classmethod
    def validate_percentage(cls, v):
        if not 0 <= v <= 100:
            raise ValueError("buying_power_warning_pct must be between 0 and 100")
        return v

    @field_validator('max_order_quantity')
    @classmethod
    def validate_max_quantity(cls, v):
        if v < 1:
            raise ValueError("max_order_quantity must be at least 1")
        return v

    @field_validator('max_order_price')
    @classmethod
    def validate_max_price(cls, v):
        if v <= 0:
            raise ValueError("max_order_price must be positive")
        return v

    # ========================================================================
    # Helper Methods
    # ========================================================================

    def is_production(self) -> bool:
        """Check if running against the live environment"""
        return not self.is_paper_trading

    def get_tastytrade_config(self) -> dict:
        """Get Tastytrade configuration dict"""
        return {
            'client_secret': self.tastytrade_client_secret,
            'refresh_token': self.tastytrade_refresh_token,
            'account_number': self.tastytrade_account_number,
            'is_paper': self.is_paper_trading,
        }


# ============================================================================
# Global Settings Instance
# ============================================================================

_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get global settings instance (singleton pattern)

    Usage:
        from trading_orders.config.settings import get_settings
        settings = get_settings()
        print(settings.buying_power_warning_pct)
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings():
    """Reload settings (useful for testing)"""
    global _settings
    _settings = Settings()
    return _settings


# ============================================================================
# Logging Configuration
# ============================================================================

def setup_logging(settings: Optional[Settings] = None):
    """
    Configure logging based on settings

    Usage:
        from trading_orders.config.settings import setup_logging, get_settings
        setup_logging(get_settings())
    """
    if settings is None:
        settings = get_settings()

    formatter = logging.Formatter(settings.log_format)

    root_logger = logging.getLogger()
    root_logger.setLevel(settings.log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(settings.log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if settings.log_file:
        path = Path(settings.log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding='utf-8')
        file_handler.setLevel(settings.log_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Silence noisy libraries
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('httpcore').setLevel(logging.WARNING)

    root_logger.info(f"Logging configured: level={settings.log_level}, file={settings.log_file}")


# ============================================================================
# Example .env file
# ============================================================================

ENV_EXAMPLE = """
# Tastytrade
TASTYTRADE_CLIENT_SECRET=your_client_secret_here
TASTYTRADE_REFRESH_TOKEN=your_refresh_token_here
TASTYTRADE_ACCOUNT_NUMBER=your_account_number
IS_PAPER_TRADING=true

# Logging
LOG_LEVEL=INFO
LOG_FILE=trading_orders.log

# Order validation
BUYING_POWER_WARNING_PCT=80.0
MAX_ORDER_QUANTITY=999999
AUTO_ROUND_PRICES=false

# Market calendar
MARKET_TIMEZONE=US/Eastern
MARKET_CALENDAR=XNYS
"""
