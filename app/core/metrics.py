from __future__ import annotations

from dataclasses import dataclass
from threading import Lock


@dataclass
class EndpointMetric:
    total_requests: int = 0
    total_duration_ms: float = 0.0
    max_duration_ms: float = 0.0
    error_count: int = 0

    def add(self, duration_ms: float, failed: bool) -> None:
        self.total_requests += 1
        self.total_duration_ms += duration_ms
        self.max_duration_ms = max(self.max_duration_ms, duration_ms)
        if failed:
            self.error_count += 1

    @property
    def avg_duration_ms(self) -> float:
        return self.total_duration_ms / self.total_requests if self.total_requests else 0.0


class InMemoryRequestMetrics:
    """Contadores por rota HTTP e por operação do gateway (processo único)."""

    def __init__(self) -> None:
        self._metrics: dict[tuple[str, str], EndpointMetric] = {}
        self._gateway_metrics: dict[str, EndpointMetric] = {}
        self._lock = Lock()

    def observe(self, endpoint: str, method: str, status_code: int, duration_ms: float) -> None:
        with self._lock:
            metric = self._metrics.setdefault((endpoint, method), EndpointMetric())
            metric.add(duration_ms, status_code >= 400)

    def observe_gateway(self, operation: str, status_code: int | None, duration_ms: float) -> None:
        # status_code None = falha de rede/timeout
        failed = status_code is None or status_code >= 400
        with self._lock:
            metric = self._gateway_metrics.setdefault(operation, EndpointMetric())
            metric.add(duration_ms, failed)

    def snapshot(self) -> dict[str, dict[str, float | int]]:
        with self._lock:
            return {
                f"{method} {endpoint}": {
                    "total_requests": metric.total_requests,
                    "total_duration_ms": round(metric.total_duration_ms, 2),
                    "avg_duration_ms": round(metric.avg_duration_ms, 2),
                    "max_duration_ms": round(metric.max_duration_ms, 2),
                    "error_count": metric.error_count,
                }
                for (endpoint, method), metric in self._metrics.items()
            }

    def snapshot_gateway(self) -> dict[str, dict[str, float | int]]:
        with self._lock:
            return {
                operation: {
                    "calls": metric.total_requests,
                    "errors": metric.error_count,
                    "avg_latency_ms": round(metric.avg_duration_ms, 2),
                    "max_latency_ms": round(metric.max_duration_ms, 2),
                }
                for operation, metric in self._gateway_metrics.items()
            }

    def reset(self) -> None:
        with self._lock:
            self._metrics.clear()
            self._gateway_metrics.clear()


request_metrics = InMemoryRequestMetrics()
