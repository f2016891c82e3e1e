"""Process-wide state, owned explicitly and passed to components."""

from __future__ import annotations

from dataclasses import dataclass, field

from chatdigest.messaging.routes import RouteCache
from chatdigest.metrics import MetricsRecorder


@dataclass
class RuntimeContext:
    """Metrics counters plus the route and person-name caches.

    Build one per application (or per test) instead of relying on module
    globals.
    """

    metrics: MetricsRecorder = field(default_factory=MetricsRecorder)
    route_cache: RouteCache = field(default_factory=RouteCache)
    person_names: dict[str, str] = field(default_factory=dict)
