"""
Settings loader (``efactura_config.loader``).

Parses YAML dicts into the frozen dataclasses of ``efactura_config.schema``.
Required keys that are missing, or values of the wrong type, raise
``ConfigurationError`` naming the offending key; there are no silent
defaults once a section is present in the file.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from efactura_config.schema import (
    AuthoritySettings,
    BucketLimit,
    IntegrationSettings,
    RateLimitSettings,
    SubmissionSettings,
    SyncSettings,
    ValidationSettings,
)
from efactura_kernel.exceptions import ConfigurationError

_ENVIRONMENTS = ("prod", "test")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file; an empty file yields an empty dict."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path}: top level must be a mapping")
    return data


def merge_dicts(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` over ``base`` (returns a new dict)."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged


def _require(data: dict[str, Any], key: str, section: str) -> Any:
    if key not in data:
        raise ConfigurationError(f"missing setting {section}.{key}", key=f"{section}.{key}")
    return data[key]


def _int(data: dict[str, Any], key: str, section: str) -> int:
    value = _require(data, key, section)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigurationError(
            f"{section}.{key} must be a non-negative integer, got {value!r}",
            key=f"{section}.{key}",
        )
    return value


def _optional_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    return None if value in (None, "") else str(value)


def parse_authority(data: dict[str, Any]) -> AuthoritySettings:
    environment = _require(data, "environment", "authority")
    if environment not in _ENVIRONMENTS:
        raise ConfigurationError(
            f"authority.environment must be one of {_ENVIRONMENTS}, got {environment!r}",
            key="authority.environment",
        )
    efactura_urls = dict(_require(data, "efactura_base_urls", "authority"))
    etransport_urls = dict(_require(data, "etransport_base_urls", "authority"))
    for name, urls in (("efactura_base_urls", efactura_urls), ("etransport_base_urls", etransport_urls)):
        if environment not in urls:
            raise ConfigurationError(
                f"authority.{name} has no entry for {environment!r}",
                key=f"authority.{name}",
            )
    return AuthoritySettings(
        environment=environment,
        timeout_seconds=float(_require(data, "timeout_seconds", "authority")),
        efactura_base_urls=efactura_urls,
        etransport_base_urls=etransport_urls,
    )


def parse_bucket(data: dict[str, Any], name: str) -> BucketLimit:
    section = f"rate_limits.{name}"
    limit = BucketLimit(
        capacity=_int(data, "capacity", section),
        window_seconds=_int(data, "window_seconds", section),
    )
    if limit.capacity == 0 or limit.window_seconds == 0:
        raise ConfigurationError(f"{section} must have a positive capacity and window", key=section)
    return limit


def parse_rate_limits(data: dict[str, Any]) -> RateLimitSettings:
    return RateLimitSettings(
        global_limit=parse_bucket(_require(data, "global", "rate_limits"), "global"),
        list_limit=parse_bucket(_require(data, "list", "rate_limits"), "list"),
        status_limit=parse_bucket(_require(data, "status", "rate_limits"), "status"),
        download_limit=parse_bucket(_require(data, "download", "rate_limits"), "download"),
    )


def parse_validation(data: dict[str, Any]) -> ValidationSettings:
    raw_rates = data.get("fallback_vat_rates") or []
    try:
        rates = tuple(Decimal(str(r)).quantize(Decimal("0.01")) for r in raw_rates)
    except InvalidOperation as exc:
        raise ConfigurationError(
            f"validation.fallback_vat_rates contains a non-numeric value: {raw_rates!r}",
            key="validation.fallback_vat_rates",
        ) from exc
    return ValidationSettings(
        ubl_invoice_xsd=_optional_str(data, "ubl_invoice_xsd"),
        ubl_credit_note_xsd=_optional_str(data, "ubl_credit_note_xsd"),
        etransport_xsd=_optional_str(data, "etransport_xsd"),
        schematron_url=_optional_str(data, "schematron_url"),
        schematron_timeout_seconds=float(data.get("schematron_timeout_seconds", 30)),
        java_path=str(data.get("java_path") or "java"),
        validator_jar=_optional_str(data, "validator_jar"),
        saxon_jar=_optional_str(data, "saxon_jar"),
        etransport_compiled_xsl=_optional_str(data, "etransport_compiled_xsl"),
        fallback_vat_rates=rates,
    )


def parse_submission(data: dict[str, Any]) -> SubmissionSettings:
    backoff = _require(data, "backoff_ms", "submission")
    if not isinstance(backoff, list) or not backoff:
        raise ConfigurationError(
            "submission.backoff_ms must be a non-empty list", key="submission.backoff_ms",
        )
    return SubmissionSettings(
        max_attempts=_int(data, "max_attempts", "submission"),
        backoff_ms=tuple(int(ms) for ms in backoff),
        timeout_message=str(_require(data, "timeout_message", "submission")),
        no_token_message=str(_require(data, "no_token_message", "submission")),
        sweep_limit=_int(data, "sweep_limit", "submission"),
        schedule_limit=int(data.get("schedule_limit", 100)),
        deadline_days=int(data.get("deadline_days", 5)),
        deadline_warning_limit=int(data.get("deadline_warning_limit", 500)),
    )


def parse_sync(data: dict[str, Any]) -> SyncSettings:
    settings = SyncSettings(
        batch_size=_int(data, "batch_size", "sync"),
        progress_interval=_int(data, "progress_interval", "sync"),
        lookback_floor_days=_int(data, "lookback_floor_days", "sync"),
        default_lookback_days=_int(data, "default_lookback_days", "sync"),
        late_submission_days=_int(data, "late_submission_days", "sync"),
        notification_error_cap=_int(data, "notification_error_cap", "sync"),
        channel_prefix=str(_require(data, "channel_prefix", "sync")),
    )
    if settings.batch_size == 0 or settings.progress_interval == 0:
        raise ConfigurationError("sync.batch_size and sync.progress_interval must be positive")
    return settings


def parse_settings(data: dict[str, Any]) -> IntegrationSettings:
    """Parse a complete settings dict (defaults already merged)."""
    return IntegrationSettings(
        authority=parse_authority(_require(data, "authority", "root")),
        rate_limits=parse_rate_limits(_require(data, "rate_limits", "root")),
        validation=parse_validation(data.get("validation") or {}),
        submission=parse_submission(_require(data, "submission", "root")),
        sync=parse_sync(_require(data, "sync", "root")),
    )
