"""Configuration management for the UFile SDK.

Two layers live here:

- ClientConfig: the validated, immutable configuration a client is built
  from. It is produced only by build_client_config(), which checks every
  input up front so no client is ever half-constructed.
- Settings: environment-driven settings loaded with pydantic-settings,
  used by the CLI and by applications that prefer env/.env configuration.
"""

from dataclasses import dataclass
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ufile.core.errors import ConfigurationError
from ufile.core.models import DEFAULT_PROVIDER_SUFFIX, Credentials, Endpoint

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass(frozen=True)
class ClientConfig:
    """Validated client configuration.

    Attributes:
        credentials: API key pair
        endpoint: Bucket endpoint (domain and scheme)
        timeout: HTTP timeout in seconds
    """

    credentials: Credentials
    endpoint: Endpoint
    timeout: float = 30.0

    @property
    def bucket_name(self) -> str:
        return self.endpoint.bucket_name


def build_client_config(
    public_key: str,
    private_key: str,
    bucket_name: str,
    domain: Optional[str] = None,
    region: Optional[str] = None,
    use_https: bool = False,
    timeout: float = 30.0,
) -> ClientConfig:
    """Validate raw options and build a ClientConfig.

    The bucket domain is ``<bucket>.<domain>`` when an explicit domain is
    given, otherwise ``<bucket>.<region>.ufileos.com``.

    Args:
        public_key: API public key
        private_key: API private key
        bucket_name: Bucket name
        domain: Explicit bucket domain suffix (takes precedence over region)
        region: Region name used to derive the domain
        use_https: Use https instead of http
        timeout: HTTP timeout in seconds

    Returns:
        A frozen ClientConfig

    Raises:
        ConfigurationError: If keys or bucket are missing, or neither domain
            nor region is given
    """
    if not public_key or not private_key:
        raise ConfigurationError("public_key and private_key are required")
    if not bucket_name:
        raise ConfigurationError("bucket_name is required")
    if timeout <= 0:
        raise ConfigurationError("timeout must be greater than 0")

    if domain:
        host = f"{bucket_name}.{domain.lstrip('.')}"
    elif region:
        host = f"{bucket_name}.{region}.{DEFAULT_PROVIDER_SUFFIX}"
    else:
        raise ConfigurationError("domain and region cannot both be empty")

    return ClientConfig(
        credentials=Credentials(public_key=public_key, private_key=private_key),
        endpoint=Endpoint(
            bucket_name=bucket_name,
            domain=host,
            scheme="https" if use_https else "http",
        ),
        timeout=timeout,
    )


class Settings(BaseSettings):
    """SDK settings loaded from environment variables.

    All settings use the ``UFILE_`` prefix and may also come from a .env
    file. Credentials and bucket are required; domain and region are
    individually optional but one of them must be set by the time
    to_client_config() is called.

    Attributes:
        public_key: API public key
        private_key: API private key
        bucket_name: Bucket to operate on
        domain: Explicit bucket domain suffix
        region: Region name, used when domain is not set
        use_https: Whether to talk https to the bucket endpoint
        timeout_seconds: HTTP timeout
        restore_interval_seconds: Delay between restore polls
        restore_max_retry: Extra polls after the first one when waiting for a restore
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """

    model_config = SettingsConfigDict(
        env_prefix="UFILE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    public_key: str = Field(
        ...,
        description="API public key",
    )
    private_key: str = Field(
        ...,
        description="API private key",
        repr=False,
    )
    bucket_name: str = Field(
        ...,
        description="Bucket to operate on",
    )
    domain: Optional[str] = Field(
        default=None,
        description="Explicit bucket domain suffix, e.g. cn-bj.ufileos.com",
    )
    region: Optional[str] = Field(
        default=None,
        description="Region name, used when domain is not set",
    )
    use_https: bool = Field(
        default=False,
        description="Use https for the bucket endpoint",
    )
    timeout_seconds: float = Field(
        default=30.0,
        description="HTTP timeout in seconds",
        gt=0,
    )
    restore_interval_seconds: float = Field(
        default=10.0,
        description="Delay between restore polls in seconds",
        ge=0,
    )
    restore_max_retry: int = Field(
        default=30,
        description="Extra polls after the first when waiting for a restore",
        ge=0,
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the logging level.

        Args:
            v: The log_level value

        Returns:
            The upper-cased level name

        Raises:
            ValueError: If the level is not one of VALID_LOG_LEVELS
        """
        level = v.upper()
        if level not in VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(VALID_LOG_LEVELS)}")
        return level

    def to_client_config(self) -> ClientConfig:
        """Build a validated ClientConfig from these settings.

        Raises:
            ConfigurationError: If neither domain nor region is set
        """
        return build_client_config(
            public_key=self.public_key,
            private_key=self.private_key,
            bucket_name=self.bucket_name,
            domain=self.domain,
            region=self.region,
            use_https=self.use_https,
            timeout=self.timeout_seconds,
        )
