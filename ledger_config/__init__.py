"""
ledger_config -- single public entrypoint for chart configuration.

Responsibility:
    Provides the ONLY way to obtain a chart configuration at runtime through
    ``get_active_config()``.  YAML loading and validation are internal.

Architecture position:
    Configuration -- sits above ``ledger_kernel``.  The kernel MUST NEVER
    import from ``ledger_config``; ProvisioningService accepts the returned
    ``ChartConfiguration`` by shape.

Failure modes:
    - ``FileNotFoundError`` -- no configuration set with that name.
    - ``ValueError`` -- validation failures (all of them, one per line).

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``ledger_config_loaded`` log entry with the config id, version and
    checksum, tying a provisioned company to the exact chart it came from.
"""

from __future__ import annotations

from pathlib import Path

from ledger_config.loader import load_chart
from ledger_config.schema import (
    AccountDef,
    ChartConfiguration,
    CompanyDef,
    PartyDef,
    RoleBinding,
    VoucherTypeDef,
)
from ledger_config.validator import ConfigValidationResult, validate_configuration
from ledger_kernel.logging_config import get_logger

_logger = get_logger("config")

# Default configuration sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"


def get_active_config(
    name: str = "default",
    config_dir: Path | None = None,
) -> ChartConfiguration:
    """
    Load, validate and return a named chart configuration set.

    Args:
        name: Set name; the file ``<config_dir>/<name>.yaml`` is read.
        config_dir: Override path to configuration sets directory.
            Defaults to ledger_config/sets/.

    Raises:
        FileNotFoundError: If the set does not exist.
        ValueError: If configuration validation fails.
    """
    sets_dir = config_dir or _DEFAULT_CONFIG_DIR
    path = Path(sets_dir) / f"{name}.yaml"
    if not path.exists():
        raise FileNotFoundError(f"No configuration set {name!r} in {sets_dir}")

    config = load_chart(path)

    validation = validate_configuration(config)
    if not validation.is_valid:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )
    for warning in validation.warnings:
        _logger.warning("ledger_config_warning", extra={"config_id": config.config_id, "warning": warning})

    _logger.info(
        "ledger_config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "account_count": len(config.accounts),
            "role_binding_count": len(config.role_bindings),
        },
    )
    return config


__all__ = [
    "get_active_config",
    "validate_configuration",
    "ConfigValidationResult",
    "ChartConfiguration",
    "CompanyDef",
    "AccountDef",
    "RoleBinding",
    "VoucherTypeDef",
    "PartyDef",
]
