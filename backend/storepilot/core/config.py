"""Configuration settings for the StorePilot billing backend.

Wraps environment variables and provides defaults.
"""

from typing import Optional

from pydantic import Field, PostgresDsn, ValidationInfo, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Pydantic settings class.

    Attributes:
    ----------
        PROJECT_NAME (str): The name of the project.
        LOCAL_DEVELOPMENT (bool): Whether the application is running locally.
        ENVIRONMENT (str): The deployment environment (local, dev, test, prod).
        DEBUG (bool): Whether debug mode is enabled.
        LOG_LEVEL (str): The logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        POSTGRES_HOST (str): The PostgreSQL server hostname.
        POSTGRES_DB (str): The PostgreSQL database name.
        POSTGRES_USER (str): The PostgreSQL username.
        POSTGRES_PASSWORD (str): The PostgreSQL password.
        SQLALCHEMY_ASYNC_DATABASE_URI (Optional[PostgresDsn]): The SQLAlchemy async database URI.
        RUN_ALEMBIC_MIGRATIONS (bool): Whether to run the alembic migrations on startup.
        STRIPE_ENABLED (bool): Whether the Stripe billing provider is enabled.
        STRIPE_SECRET_KEY (Optional[str]): The Stripe secret API key.
        STRIPE_WEBHOOK_SECRET (Optional[str]): The signing secret for Stripe webhooks.
        BILLING_PROVIDER_TIMEOUT_SECONDS (float): Upper bound for a single provider call.
        ADDITIONAL_CORS_ORIGINS (Optional[list[str]]): Additional CORS origins separated by commas.
    """

    PROJECT_NAME: str = "StorePilot"
    LOCAL_DEVELOPMENT: bool = False
    ENVIRONMENT: str = "local"

    # Debug configuration
    DEBUG: bool = False

    # Logging configuration
    LOG_LEVEL: str = "INFO"

    POSTGRES_HOST: str = "localhost"
    POSTGRES_DB: str = "storepilot"
    POSTGRES_USER: str = "storepilot"
    POSTGRES_PASSWORD: str = "storepilot"
    SQLALCHEMY_ASYNC_DATABASE_URI: Optional[PostgresDsn] = Field(
        default=None, validate_default=True
    )

    RUN_ALEMBIC_MIGRATIONS: bool = False

    # Billing provider
    STRIPE_ENABLED: bool = False
    STRIPE_SECRET_KEY: Optional[str] = Field(default=None, validate_default=True)
    STRIPE_WEBHOOK_SECRET: Optional[str] = Field(default=None, validate_default=True)
    BILLING_PROVIDER_TIMEOUT_SECONDS: float = 15.0

    ADDITIONAL_CORS_ORIGINS: Optional[str] = None  # Separated by commas or semicolons

    @field_validator("STRIPE_SECRET_KEY", "STRIPE_WEBHOOK_SECRET", mode="before")
    def validate_stripe_settings(cls, v: Optional[str], info: ValidationInfo) -> Optional[str]:
        """Validate Stripe settings when STRIPE_ENABLED is True.

        Args:
        ----
            v (Optional[str]): The value of the Stripe setting.
            info (ValidationInfo): The validation context containing all field values.

        Returns:
        -------
            Optional[str]: The validated Stripe setting.

        Raises:
        ------
            ValueError: If STRIPE_ENABLED is True and the Stripe setting is empty.
        """
        if info.data.get("STRIPE_ENABLED", False) and not v:
            raise ValueError(f"{info.field_name} must be set when STRIPE_ENABLED is True")
        return v

    @field_validator("BILLING_PROVIDER_TIMEOUT_SECONDS")
    def validate_provider_timeout(cls, v: float) -> float:
        """Provider calls must always be bounded."""
        if v <= 0:
            raise ValueError("BILLING_PROVIDER_TIMEOUT_SECONDS must be positive")
        return v

    @field_validator("ADDITIONAL_CORS_ORIGINS", mode="before")
    def parse_cors_origins(cls, v: Optional[str]) -> Optional[list[str]]:
        """Parse CORS origins from string to list, supporting both comma and semicolon separators.

        Args:
            v: The CORS origins string or list.

        Returns:
            Optional[list[str]]: The parsed list of CORS origins or None.
        """
        if isinstance(v, list) or v is None:
            return v

        if ";" in v:
            return [origin.strip() for origin in v.split(";") if origin.strip()]

        return v

    @field_validator("SQLALCHEMY_ASYNC_DATABASE_URI", mode="before")
    def assemble_db_connection(cls, v: Optional[str], info: ValidationInfo) -> PostgresDsn:
        """Build the SQLAlchemy database URI.

        Args:
        ----
            v (Optional[str]): The value of the SQLALCHEMY_DATABASE_URI setting.
            info (ValidationInfo): The validation context containing all field values.

        Returns:
        -------
            PostgresDsn: The assembled SQLAlchemy async database URI.

        """
        if isinstance(v, str):
            return v

        return PostgresDsn.build(
            scheme="postgresql+asyncpg",
            username=info.data.get("POSTGRES_USER"),
            password=info.data.get("POSTGRES_PASSWORD"),
            host=info.data.get("POSTGRES_HOST", "localhost"),
            path=f"{info.data.get('POSTGRES_DB') or ''}",
        )


settings = Settings()
