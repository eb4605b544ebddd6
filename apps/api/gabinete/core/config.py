"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.01.00"

    # Proxy/Load Balancer Settings
    # Set to True when running behind nginx/Cloudflare to trust X-Forwarded-For
    TRUST_PROXY_HEADERS: bool = False

    # Database
    DATABASE_URL: str

    # Session Token (supports key rotation)
    JWT_SECRET: str = "change-this-in-production"
    JWT_SECRET_PREVIOUS: str = ""  # Set during rotation, clear after
    JWT_EXPIRES_HOURS: int = 8

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    # Rate Limiting (requests per minute)
    RATE_LIMIT_AUTH: int = 5  # Login attempts
    RATE_LIMIT_API: int = 60  # General API

    # Audit trail
    AUDIT_LOG_READ_LIMIT: int = 200  # Newest N entries returned by the audit panel

    # Demand protocol numbers (REQ-<year>-<4 digits>)
    PROTOCOL_MAX_ATTEMPTS: int = 5

    # Smart Import
    KNOWN_RESPONSIBLE_NAMES: str = "ALINE,ATILIO,CARLINHOS,MARCOS,FRANCIS JUNIO,MAURICIO,RONEY"
    IMPORT_MARKER_TAG: str = "SMART IMPORT"
    IMPORT_EMAIL_DOMAIN: str = "gabinete.leg.br"

    # Address / geocoding lookups
    VIACEP_BASE_URL: str = "https://viacep.com.br/ws"
    NOMINATIM_BASE_URL: str = "https://nominatim.openstreetmap.org"
    GEO_HTTP_TIMEOUT: float = 10.0
    GEOCODE_THROTTLE_SECONDS: float = 1.1  # Nominatim usage policy: max 1 req/s
    GEO_USER_AGENT: str = "gabinete-crm/0.1"

    # Object storage (attachments, avatars)
    STORAGE_BACKEND: str = "local"  # "local" or "s3"
    LOCAL_STORAGE_PATH: str = "/tmp/gabinete-storage"
    S3_BUCKET: str = "gabinete-files"
    S3_REGION: str = "us-east-1"
    S3_ENDPOINT_URL: str = ""
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def known_responsible_names(self) -> list[str]:
        """Parse KNOWN_RESPONSIBLE_NAMES into an uppercase list."""
        return [
            n.strip().upper()
            for n in self.KNOWN_RESPONSIBLE_NAMES.split(",")
            if n.strip()
        ]

    @property
    def jwt_secrets(self) -> list[str]:
        """Returns list of valid secrets (current first, then previous if set)."""
        secrets = [self.JWT_SECRET]
        if self.JWT_SECRET_PREVIOUS:
            secrets.append(self.JWT_SECRET_PREVIOUS)
        return secrets

    @property
    def cookie_secure(self) -> bool:
        """Secure cookies only in production."""
        return self.ENV != "dev"


settings = Settings()
