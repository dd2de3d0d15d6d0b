"""In-process metrics for certificate fetches.

Provides a minimal Prometheus text format exporter suitable for scraping,
without a client library. Metrics are process-local and reset on restart.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from threading import Lock

_BUCKETS_MS: tuple[float, ...] = (5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000)

_KNOWN_OUTCOMES: frozenset[str] = frozenset({"success", "not_found", "error", "cancelled"})


def _sanitize_label_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def _normalize_outcome(outcome: str) -> str:
    outcome = (outcome or "").strip().lower()
    return outcome if outcome in _KNOWN_OUTCOMES else "error"


@dataclass
class _Histogram:
    buckets_ms: tuple[float, ...] = _BUCKETS_MS
    # bucket upper bound -> count of observations falling in that bucket only
    bucket_counts: dict[float, int] = field(default_factory=dict)
    count: int = 0
    sum_ms: float = 0.0

    def observe(self, value_ms: float) -> None:
        self.count += 1
        self.sum_ms += float(value_ms)
        for bound in self.buckets_ms:
            if value_ms <= bound:
                self.bucket_counts[bound] = self.bucket_counts.get(bound, 0) + 1
                break
        # +Inf bucket is represented implicitly as count


class FetchMetrics:
    """Thread-safe counters/histograms for the fetch pipeline."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._upstream_requests_total: dict[str, int] = {}
        self._upstream_duration_ms: dict[str, _Histogram] = {}
        self._coalesced_total = 0
        self._rejected_total = 0

    def observe_upstream(self, *, outcome: str, duration_ms: float) -> None:
        outcome = _normalize_outcome(outcome)
        with self._lock:
            current = self._upstream_requests_total.get(outcome, 0)
            self._upstream_requests_total[outcome] = current + 1
            hist = self._upstream_duration_ms.get(outcome)
            if hist is None:
                hist = _Histogram()
                self._upstream_duration_ms[outcome] = hist
            hist.observe(duration_ms)

    def inc_coalesced(self) -> None:
        with self._lock:
            self._coalesced_total += 1

    def inc_rejected(self) -> None:
        with self._lock:
            self._rejected_total += 1

    def upstream_requests(self, outcome: str | None = None) -> int:
        with self._lock:
            if outcome is None:
                return sum(self._upstream_requests_total.values())
            return self._upstream_requests_total.get(outcome, 0)

    @property
    def coalesced(self) -> int:
        with self._lock:
            return self._coalesced_total

    @property
    def rejected(self) -> int:
        with self._lock:
            return self._rejected_total

    def render_prometheus(
        self,
        *,
        cache_counts: Mapping[str, Mapping[str, int]] | None = None,
        gauges: Mapping[str, int] | None = None,
    ) -> str:
        """Render metrics in Prometheus text exposition format.

        `cache_counts` is a cache stats snapshot ({namespace: {event: n}}) and
        `gauges` holds point-in-time coordinator values such as `in_flight`.
        """
        lines: list[str] = []

        with self._lock:
            lines.append(
                "# HELP certificate_upstream_requests_total Upstream calls by outcome"
            )
            lines.append("# TYPE certificate_upstream_requests_total counter")
            for outcome, count in sorted(self._upstream_requests_total.items()):
                lines.append(
                    "certificate_upstream_requests_total"
                    f'{{outcome="{_sanitize_label_value(outcome)}"}} {count}'
                )

            lines.append(
                "# HELP certificate_fetch_coalesced_total Lookups that joined an in-flight fetch"
            )
            lines.append("# TYPE certificate_fetch_coalesced_total counter")
            lines.append(f"certificate_fetch_coalesced_total {self._coalesced_total}")

            lines.append(
                "# HELP certificate_fetch_rejected_total Fetches rejected by a full queue"
            )
            lines.append("# TYPE certificate_fetch_rejected_total counter")
            lines.append(f"certificate_fetch_rejected_total {self._rejected_total}")

            lines.append(
                "# HELP certificate_upstream_duration_ms Upstream call duration in milliseconds"
            )
            lines.append("# TYPE certificate_upstream_duration_ms histogram")
            for outcome, hist in sorted(self._upstream_duration_ms.items()):
                outcome_label = _sanitize_label_value(outcome)
                cumulative = 0
                for bound in hist.buckets_ms:
                    cumulative += hist.bucket_counts.get(bound, 0)
                    labels = f'outcome="{outcome_label}",le="{bound}"'
                    lines.append(f"certificate_upstream_duration_ms_bucket{{{labels}}} {cumulative}")
                labels_inf = f'outcome="{outcome_label}",le="+Inf"'
                lines.append(f"certificate_upstream_duration_ms_bucket{{{labels_inf}}} {hist.count}")
                labels_no_le = f'outcome="{outcome_label}"'
                lines.append(f"certificate_upstream_duration_ms_sum{{{labels_no_le}}} {hist.sum_ms}")
                lines.append(f"certificate_upstream_duration_ms_count{{{labels_no_le}}} {hist.count}")

        if cache_counts:
            lines.append("# HELP certificate_cache_events_total Cache operations by event")
            lines.append("# TYPE certificate_cache_events_total counter")
            for namespace, events in sorted(cache_counts.items()):
                ns_label = _sanitize_label_value(namespace)
                for cache_event, count in sorted(events.items()):
                    labels = f'namespace="{ns_label}",event="{_sanitize_label_value(cache_event)}"'
                    lines.append(f"certificate_cache_events_total{{{labels}}} {count}")

        for name, value in sorted((gauges or {}).items()):
            metric = f"certificate_fetch_{name}"
            lines.append(f"# TYPE {metric} gauge")
            lines.append(f"{metric} {value}")

        return "\n".join(lines) + "\n"


_metrics_singleton: FetchMetrics | None = None


def get_fetch_metrics() -> FetchMetrics:
    global _metrics_singleton
    if _metrics_singleton is None:
        _metrics_singleton = FetchMetrics()
    return _metrics_singleton
