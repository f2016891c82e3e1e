"""System diagnostics and health reporting."""

from __future__ import annotations

import json
import os
import platform
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

from chatdigest.metrics import MetricsRecorder
from chatdigest.settings import OPTIONAL_ENV_VARS, REQUIRED_ENV_VARS, mask_sensitive

# Error-rate thresholds, in percent.
ERROR_RATE_UNHEALTHY = 10.0
ERROR_RATE_WARNING = 5.0


def _check_write(path: Path) -> bool:
    probe = path / ".write-test"
    try:
        probe.write_text("test", encoding="utf-8")
        probe.unlink()
    except OSError:
        return False
    return True


class Diagnostics:
    """Builds the /health and /diagnostics payloads from live metrics."""

    def __init__(
        self,
        metrics: MetricsRecorder,
        *,
        directories: Mapping[str, str] | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self.metrics = metrics
        self.directories = dict(directories or {"reports": "./reports", "logs": "./logs"})
        self._env = env

    @property
    def env(self) -> Mapping[str, str]:
        return self._env if self._env is not None else os.environ

    def system_info(self) -> dict[str, Any]:
        info: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": int((time.time() - self.metrics.started_at) * 1000),
            "pythonVersion": sys.version.split()[0],
            "platform": sys.platform,
            "arch": platform.machine(),
            "pid": os.getpid(),
        }
        if hasattr(os, "getloadavg"):
            info["loadAverage"] = list(os.getloadavg())
        return info

    def check_filesystem(self) -> list[dict[str, Any]]:
        checks = []
        for name, raw in self.directories.items():
            path = Path(raw)
            if not path.is_dir():
                checks.append({"name": name, "path": raw, "exists": False})
                continue
            checks.append(
                {
                    "name": name,
                    "path": raw,
                    "exists": True,
                    "fileCount": sum(1 for _ in path.iterdir()),
                    "writable": _check_write(path),
                }
            )
        return checks

    def check_environment(self) -> dict[str, Any]:
        env = self.env
        result: dict[str, Any] = {"required": {}, "optional": {}, "missing": [], "present": []}
        for name in REQUIRED_ENV_VARS:
            value = env.get(name)
            if value:
                result["required"][name] = mask_sensitive(name, value)
                result["present"].append(name)
            else:
                result["missing"].append(name)
        for name in OPTIONAL_ENV_VARS:
            value = env.get(name)
            if value:
                result["optional"][name] = value
                result["present"].append(name)
        return result

    def health_status(
        self,
        app: Mapping[str, Any],
        filesystem: list[dict[str, Any]],
        environment: Mapping[str, Any],
    ) -> dict[str, Any]:
        issues: list[str] = []
        warnings: list[str] = []

        error_rate = float(str(app["errorRate"]).rstrip("%"))
        if error_rate > ERROR_RATE_UNHEALTHY:
            issues.append(f"High error rate: {app['errorRate']}")
        elif error_rate > ERROR_RATE_WARNING:
            warnings.append(f"Elevated error rate: {app['errorRate']}")

        if environment["missing"]:
            issues.append(
                "Missing required environment variables: " + ", ".join(environment["missing"])
            )

        if any(not d["exists"] or not d.get("writable") for d in filesystem):
            issues.append("Critical directories not accessible or writable")

        status = "unhealthy" if issues else "warning" if warnings else "healthy"
        return {"status": status, "issues": issues, "warnings": warnings}

    def generate_report(self) -> dict[str, Any]:
        system = self.system_info()
        app = self.metrics.app_stats()
        filesystem = self.check_filesystem()
        environment = self.check_environment()
        return {
            "timestamp": system["timestamp"],
            "system": system,
            "application": app,
            "filesystem": filesystem,
            "environment": environment,
            "health": self.health_status(app, filesystem, environment),
        }

    def export(self, fmt: str = "json") -> str:
        report = self.generate_report()
        if fmt == "text":
            return format_report_as_text(report)
        return json.dumps(report, indent=2, default=str)


def format_report_as_text(report: Mapping[str, Any]) -> str:
    health = report["health"]
    system = report["system"]
    app = report["application"]
    lines = [f"DIAGNOSTIC REPORT - {report['timestamp']}", "=" * 50, ""]
    lines.append(f"HEALTH STATUS: {health['status'].upper()}")
    if health["issues"]:
        lines.append(f"Issues: {', '.join(health['issues'])}")
    if health["warnings"]:
        lines.append(f"Warnings: {', '.join(health['warnings'])}")
    lines.append("")
    lines.append("SYSTEM INFO:")
    lines.append(f"- Uptime: {system['uptime'] // 60000} minutes")
    lines.append(f"- Python: {system['pythonVersion']}")
    lines.append(f"- Platform: {system['platform']} {system['arch']}")
    lines.append("")
    lines.append("APPLICATION STATS:")
    lines.append(f"- Total Requests: {app['requestCount']}")
    lines.append(f"- Error Rate: {app['errorRate']}")
    lines.append(f"- API Calls: {json.dumps(app['apiStats'], indent=2)}")
    return "\n".join(lines) + "\n"
