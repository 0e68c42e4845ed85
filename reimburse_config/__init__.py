"""
reimburse_config -- single public entrypoint for runtime configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  The packaged ``defaults.yaml`` is always
    loaded first; an optional file is merged over it.  The result is a
    frozen ``ReimburseConfig``.

Architecture position:
    Configuration -- sits above ``reimburse_kernel``.  The kernel MUST
    NEVER import from ``reimburse_config``; ``bridges`` translates the
    parsed config into runtime collaborators.

Invariants enforced:
    - Deterministic loading: the same YAML always yields the same
      ``ReimburseConfig.checksum``.
    - Every policy in the directory has passed ``validate_policy``.

Failure modes:
    - ``FileNotFoundError`` -- the override file does not exist.
    - ``yaml.YAMLError`` -- malformed YAML.
    - ``ValueError`` / ``KeyError`` -- schema violations.
    - ``InvalidPolicyError`` -- a configured policy is malformed.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``REIMBURSE_CONFIG_TRACE`` log entry carrying the checksum, source
    path, and policy/company counts.
"""

from __future__ import annotations

import logging
from pathlib import Path

from reimburse_config.loader import load_yaml_file, merge_dicts, parse_config
from reimburse_config.schema import (
    CompanyDirectory,
    DatabaseSettings,
    DirectorySettings,
    RateCacheSettings,
    ReimburseConfig,
)

_logger = logging.getLogger("reimburse.config")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: Path | str | None = None) -> ReimburseConfig:
    """The ONLY public configuration entrypoint.

    Args:
        path: Optional YAML file merged over the packaged defaults.

    Returns:
        Frozen ``ReimburseConfig``.
    """
    data = load_yaml_file(DEFAULTS_PATH)
    if path is not None:
        data = merge_dicts(data, load_yaml_file(Path(path)))

    config = parse_config(data)

    _logger.info(
        "REIMBURSE_CONFIG_TRACE",
        extra={
            "trace_type": "REIMBURSE_CONFIG_TRACE",
            "checksum": config.checksum,
            "source": str(path) if path is not None else "defaults",
            "policy_count": len(config.directory.policies),
            "company_count": len(config.directory.companies),
        },
    )
    return config


__all__ = [
    "CompanyDirectory",
    "DatabaseSettings",
    "DirectorySettings",
    "RateCacheSettings",
    "ReimburseConfig",
    "get_active_config",
]
