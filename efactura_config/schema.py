"""
Settings schema -- frozen dataclasses produced by ``loader.parse_settings``.

Every section has defaults matching ``defaults.yaml`` so tests can build a
section directly (``SyncSettings(batch_size=3)``) without touching YAML.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class AuthoritySettings:
    environment: str = "prod"
    timeout_seconds: float = 30.0
    efactura_base_urls: dict[str, str] = field(default_factory=lambda: {
        "prod": "https://api.anaf.ro/prod/FCTEL/rest",
        "test": "https://api.anaf.ro/test/FCTEL/rest",
    })
    etransport_base_urls: dict[str, str] = field(default_factory=lambda: {
        "prod": "https://api.anaf.ro/prod/ETRANSPORT/ws/v1",
        "test": "https://api.anaf.ro/test/ETRANSPORT/ws/v1",
    })

    @property
    def efactura_base_url(self) -> str:
        return self.efactura_base_urls[self.environment]

    @property
    def etransport_base_url(self) -> str:
        return self.etransport_base_urls[self.environment]


@dataclass(frozen=True)
class BucketLimit:
    capacity: int
    window_seconds: int


@dataclass(frozen=True)
class RateLimitSettings:
    global_limit: BucketLimit = BucketLimit(1000, 60)
    list_limit: BucketLimit = BucketLimit(1500, 86400)
    status_limit: BucketLimit = BucketLimit(100, 86400)
    download_limit: BucketLimit = BucketLimit(10, 86400)

    def as_buckets(self) -> dict[str, BucketLimit]:
        return {
            "global": self.global_limit,
            "list": self.list_limit,
            "status": self.status_limit,
            "download": self.download_limit,
        }


@dataclass(frozen=True)
class ValidationSettings:
    ubl_invoice_xsd: str | None = None
    ubl_credit_note_xsd: str | None = None
    etransport_xsd: str | None = None
    schematron_url: str | None = None
    schematron_timeout_seconds: float = 30.0
    java_path: str = "java"
    validator_jar: str | None = None
    saxon_jar: str | None = None
    etransport_compiled_xsl: str | None = None
    fallback_vat_rates: tuple[Decimal, ...] = (
        Decimal("0.00"), Decimal("5.00"), Decimal("9.00"), Decimal("21.00"),
    )


@dataclass(frozen=True)
class SubmissionSettings:
    max_attempts: int = 5
    backoff_ms: tuple[int, ...] = (300_000, 900_000, 1_800_000, 3_600_000, 7_200_000)
    timeout_message: str = "Numarul maxim de verificari a fost atins."
    no_token_message: str = "Nu exista un token ANAF valid pentru aceasta companie."
    sweep_limit: int = 200
    schedule_limit: int = 100
    deadline_days: int = 5
    deadline_warning_limit: int = 500


@dataclass(frozen=True)
class SyncSettings:
    batch_size: int = 10
    progress_interval: int = 5
    lookback_floor_days: int = 10
    default_lookback_days: int = 60
    late_submission_days: int = 5
    notification_error_cap: int = 5
    channel_prefix: str = "invoices:company_"


@dataclass(frozen=True)
class IntegrationSettings:
    authority: AuthoritySettings = field(default_factory=AuthoritySettings)
    rate_limits: RateLimitSettings = field(default_factory=RateLimitSettings)
    validation: ValidationSettings = field(default_factory=ValidationSettings)
    submission: SubmissionSettings = field(default_factory=SubmissionSettings)
    sync: SyncSettings = field(default_factory=SyncSettings)
