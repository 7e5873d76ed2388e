import os

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _get_env_var(name: str, default: str | None = None, *, strip: bool = True) -> str | None:
    """
    Fetch an environment variable with optional whitespace trimming.

    Args:
        name: Environment variable to look up.
        default: Value to return when the env var is unset or empty.
        strip: Whether to strip leading/trailing whitespace (default: True).

    Returns:
        The normalized string value or the provided default when empty.
    """
    value = os.environ.get(name)
    if value is None:
        return default

    if strip:
        value = value.strip()

    return value or default


def _get_bool_env(name: str, default: bool) -> bool:
    value = _get_env_var(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "on"}


class Config:
    """Configuration class for the catalog sync service"""

    # Environment Detection
    APP_ENV = os.environ.get("APP_ENV", "development")  # development, staging, production
    IS_PRODUCTION = APP_ENV == "production"
    IS_DEVELOPMENT = APP_ENV == "development"
    IS_TESTING = APP_ENV in {"testing", "test"} or os.environ.get("TESTING", "").lower() in {
        "1",
        "true",
        "yes",
    }
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    # Supabase Configuration
    SUPABASE_URL = _get_env_var("SUPABASE_URL")
    # The service role key is accepted for deployments that share the frontend .env
    SUPABASE_KEY = _get_env_var("SUPABASE_KEY") or _get_env_var("SUPABASE_SERVICE_ROLE_KEY")

    # Admin access for the HTTP trigger
    ADMIN_API_KEY = _get_env_var("ADMIN_API_KEY")

    # Fal.ai Configuration
    FAL_API_KEY = _get_env_var("FAL_API_KEY") or _get_env_var("FAL_KEY")
    FAL_API_BASE = _get_env_var("FAL_API_BASE", "https://api.fal.ai").rstrip("/")
    FAL_SCHEMA_URL = _get_env_var(
        "FAL_SCHEMA_URL",
        "https://fal.ai/api/openapi/queue/openapi.json",
    )
    FAL_PROVIDER_ID = _get_env_var("FAL_PROVIDER_ID", "fal-ai")
    FAL_REQUEST_TIMEOUT = float(os.environ.get("FAL_REQUEST_TIMEOUT", "30.0"))
    FAL_MODELS_PAGE_SIZE = int(os.environ.get("FAL_MODELS_PAGE_SIZE", "100"))
    FAL_MAX_MODEL_PAGES = int(os.environ.get("FAL_MAX_MODEL_PAGES", "500"))
    # The pricing endpoint rejects more than 50 endpoint ids per call
    FAL_PRICING_BATCH_SIZE = min(int(os.environ.get("FAL_PRICING_BATCH_SIZE", "50")), 50)
    FAL_PRICING_BATCH_DELAY = float(os.environ.get("FAL_PRICING_BATCH_DELAY", "5.0"))
    FAL_PRICING_MAX_RETRIES = int(os.environ.get("FAL_PRICING_MAX_RETRIES", "3"))
    FAL_PRICING_BACKOFF_INITIAL = float(os.environ.get("FAL_PRICING_BACKOFF_INITIAL", "2.0"))
    FAL_FETCH_MISSING_SCHEMAS = _get_bool_env("FAL_FETCH_MISSING_SCHEMAS", True)
    FAL_PARAMETER_REFRESH_DELAY = float(os.environ.get("FAL_PARAMETER_REFRESH_DELAY", "0.5"))

    # Credits
    DEFAULT_CREDIT_RATE = float(os.environ.get("DEFAULT_CREDIT_RATE", "0.025"))

    @classmethod
    def validate(cls):
        """Validate that all required environment variables are set"""
        missing_vars = []

        if not cls.SUPABASE_URL:
            missing_vars.append("SUPABASE_URL")
        if not cls.SUPABASE_KEY:
            missing_vars.append("SUPABASE_KEY")
        if not cls.FAL_API_KEY:
            missing_vars.append("FAL_API_KEY")

        if missing_vars:
            raise RuntimeError(
                f"Missing required environment variables: {', '.join(missing_vars)}\n"
                "Please create a .env file with the following variables:\n"
                "SUPABASE_URL=your_supabase_project_url\n"
                "SUPABASE_KEY=your_supabase_service_role_key\n"
                "FAL_API_KEY=your_fal_api_key"
            )

        return True
