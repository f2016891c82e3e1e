"""Environment and filesystem checks run at startup and before each report."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

from chatdigest.errors import ConfigError
from chatdigest.settings import OPTIONAL_ENV_VARS, REQUIRED_ENV_VARS, mask_sensitive

_LOG = logging.getLogger(__name__)

STANDARD_RC_SERVERS = (
    "https://platform.ringcentral.com",
    "https://platform.devtest.ringcentral.com",
)


@dataclass
class ValidationResult:
    valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    config: dict[str, Any] = field(default_factory=dict)

    def error(self, message: str) -> None:
        self.valid = False
        self.errors.append(message)


def _ensure_writable(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)
    if not os.access(path, os.W_OK):
        raise PermissionError("permission denied")


class ConfigValidator:
    def __init__(self, env: Mapping[str, str] | None = None, env_file: str | Path = ".env") -> None:
        self._env = env
        self._env_file = Path(env_file)

    @property
    def env(self) -> Mapping[str, str]:
        return self._env if self._env is not None else os.environ

    def validate_environment(self) -> ValidationResult:
        result = ValidationResult()
        env = self.env

        result.config["envFileExists"] = self._env_file.exists()
        if not result.config["envFileExists"]:
            result.warnings.append("No .env file found. Using system environment variables.")

        for name in REQUIRED_ENV_VARS:
            value = env.get(name)
            if not value:
                result.error(f"Missing required environment variable: {name}")
            else:
                result.config[name] = mask_sensitive(name, value)

        for name in OPTIONAL_ENV_VARS:
            value = env.get(name)
            if value:
                result.config[name] = value

        self._validate_specific(result)
        return result

    def _validate_specific(self, result: ValidationResult) -> None:
        env = self.env
        server = env.get("RC_SERVER")
        if server and server not in STANDARD_RC_SERVERS:
            result.warnings.append(f'RC_SERVER "{server}" is not a standard RingCentral server URL')

        jwt = env.get("RC_JWT")
        if jwt and len(jwt.split(".")) != 3:
            result.error("RC_JWT does not appear to be a valid JWT format")

        reports_dir = Path(env.get("REPORTS_DIR") or "./reports")
        try:
            _ensure_writable(reports_dir)
        except OSError as exc:
            result.error(f'Reports directory "{reports_dir}" is not writable: {exc}')
        else:
            result.config["reportsDir"] = str(reports_dir)
            result.config["reportsDirWritable"] = True

        logs_dir = Path(env.get("LOGS_DIR") or "./logs")
        try:
            _ensure_writable(logs_dir)
        except OSError as exc:
            result.warnings.append(f'Logs directory "{logs_dir}" is not writable: {exc}')
        else:
            result.config["logsDir"] = str(logs_dir)
            result.config["logsDirWritable"] = True

    def generate_config_report(self) -> str:
        validation = self.validate_environment()
        lines = [
            "# Configuration Validation Report",
            "",
            f"**Status:** {'✅ Valid' if validation.valid else '❌ Invalid'}",
            f"**Generated:** {datetime.now(timezone.utc).isoformat()}",
            "",
        ]
        if validation.errors:
            lines.append("## ❌ Errors")
            lines.extend(f"- {e}" for e in validation.errors)
            lines.append("")
        if validation.warnings:
            lines.append("## ⚠️ Warnings")
            lines.extend(f"- {w}" for w in validation.warnings)
            lines.append("")
        lines.append("## 📋 Configuration Summary")
        lines.extend(f"- **{key}:** {value}" for key, value in validation.config.items())
        return "\n".join(lines) + "\n"

    def validate_and_raise(self) -> ValidationResult:
        validation = self.validate_environment()
        if not validation.valid:
            raise ConfigError("Configuration validation failed:\n" + "\n".join(validation.errors))
        return validation

    def health_check(self) -> dict[str, Any]:
        """Quick status for the /health endpoint."""
        try:
            validation = self.validate_environment()
        except Exception as exc:  # noqa: BLE001
            _LOG.exception("Config health check failed")
            return {
                "status": "error",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "error": str(exc),
            }
        return {
            "status": "healthy" if validation.valid else "unhealthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "errors": validation.errors,
            "warnings": validation.warnings,
        }
