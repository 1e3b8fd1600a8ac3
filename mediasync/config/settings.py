"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables (and a .env file) with
sensible defaults. Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Mock mode enables local development without any object storage.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..core.replication.errors import ConfigurationFailure
from ..core.replication.models import TargetEndpoint


def parse_targets(value: str) -> list[TargetEndpoint]:
    """
    Parse "region=bucket[@endpoint]" entries separated by commas.

    Example: "us-east-1=media-use1,eu-west-1=media-euw1@https://s3.example.com"
    """
    targets: list[TargetEndpoint] = []
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        if "=" not in part:
            raise ConfigurationFailure(f"Invalid replica target '{part}', expected region=bucket")
        region, bucket = part.split("=", 1)
        endpoint_url = None
        if "@" in bucket:
            bucket, endpoint_url = bucket.split("@", 1)
        targets.append(TargetEndpoint(
            region=region.strip(),
            bucket_identifier=bucket.strip(),
            endpoint_url=endpoint_url.strip() if endpoint_url else None,
        ))
    return targets


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like api_keys), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "mediasync"
    api_version: str = "v1"
    api_keys: str = Field(
        default="dev-key-1",
        description="Comma-separated API keys. Using a list enables key rotation without downtime."
    )

    # Origin (R2) Configuration
    r2_account_id: str = Field(
        default="",
        description="Cloudflare account ID for R2"
    )
    r2_access_key_id: str = Field(
        default="",
        description="R2 access key ID"
    )
    r2_secret_access_key: str = Field(
        default="",
        description="R2 secret access key"
    )
    r2_bucket_name: str = Field(
        default="media-origin",
        description="Origin bucket that renditions are uploaded to and replicated from"
    )
    r2_endpoint_url: Optional[str] = Field(
        default=None,
        description="R2 endpoint URL. Auto-constructed from account_id if not provided."
    )

    # Replica (S3) Configuration
    aws_access_key_id: str = Field(
        default="",
        description="AWS access key ID used for every replica bucket"
    )
    aws_secret_access_key: str = Field(
        default="",
        description="AWS secret access key used for every replica bucket"
    )
    replica_targets: str = Field(
        default="",
        description="Comma-separated region=bucket[@endpoint] entries, one per replica"
    )

    storage_mock_mode: bool = Field(
        default=False,
        description="Use in-memory buckets instead of R2/S3. Enables local dev without object storage."
    )

    # Replication Behavior
    max_concurrency: int = Field(
        default=20,
        ge=1,
        description="Maximum transfers in flight per bucket. Bounds sockets and open files."
    )
    transfer_timeout_seconds: Optional[float] = Field(
        default=None,
        gt=0,
        description="Optional connect/read deadline for each storage request, enforced by the client"
    )
    staging_dir: str = Field(
        default="./downloads",
        description="Local directory origin prefixes are downloaded into before fan-out"
    )
    output_dir: str = Field(
        default="./output",
        description="Local directory pushed to the origin by the upload endpoint"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def api_keys_list(self) -> list[str]:
        """Parse comma-separated API keys into a list."""
        return [key.strip() for key in self.api_keys.split(",") if key.strip()]

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def r2_endpoint(self) -> str:
        """
        Construct R2 endpoint URL from account ID.

        R2 endpoints follow the pattern: https://{account_id}.r2.cloudflarestorage.com
        """
        if self.r2_endpoint_url:
            return self.r2_endpoint_url
        return f"https://{self.r2_account_id}.r2.cloudflarestorage.com"

    @property
    def replica_targets_list(self) -> list[TargetEndpoint]:
        """Parsed replica targets. Raises ConfigurationFailure if malformed."""
        return parse_targets(self.replica_targets)

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set based on mock mode settings.

        Returns list of missing required fields.
        This is separate from Pydantic validation because requirements
        depend on whether we're in mock mode.
        """
        missing = []

        # Targets are always required, mock or not
        try:
            if not self.replica_targets_list:
                missing.append("REPLICA_TARGETS")
        except ConfigurationFailure:
            missing.append("REPLICA_TARGETS (malformed)")

        # Credentials only required if not in mock mode
        if not self.storage_mock_mode:
            if not self.r2_account_id and not self.r2_endpoint_url:
                missing.append("R2_ACCOUNT_ID")
            if not self.r2_access_key_id:
                missing.append("R2_ACCESS_KEY_ID")
            if not self.r2_secret_access_key:
                missing.append("R2_SECRET_ACCESS_KEY")
            if not self.aws_access_key_id:
                missing.append("AWS_ACCESS_KEY_ID")
            if not self.aws_secret_access_key:
                missing.append("AWS_SECRET_ACCESS_KEY")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()
