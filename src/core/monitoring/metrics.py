"""
Monitoring & Metrics
====================
Métricas em memória para observabilidade da API de endereços

Features:
- ✅ Contadores e latências por endpoint
- ✅ Contadores do fluxo de endereço padrão (criação, resolução, demoção)
"""

import time
import logging
from typing import Dict, Any
from datetime import datetime, timezone
from collections import defaultdict, deque

logger = logging.getLogger(__name__)

LATENCY_WINDOW = 1000


class MetricsCollector:
    """
    Coletor centralizado de métricas da aplicação
    """

    def __init__(self):
        # Contadores HTTP
        self.request_count = defaultdict(int)
        self.error_count = defaultdict(int)

        # Latências (em ms), janela das últimas LATENCY_WINDOW por endpoint
        self.request_latencies = defaultdict(lambda: deque(maxlen=LATENCY_WINDOW))

        # Fluxo de endereços
        self.addresses_created = 0
        self.addresses_rejected = 0
        self.creation_failures = 0
        self.resolution_failures = 0
        self.demotions_succeeded = 0
        self.demotions_failed = 0
        self.self_inclusions = 0

        # Timestamps
        self.start_time = time.time()
        self.last_reset = datetime.now(timezone.utc)

    def track_request(self, endpoint: str, method: str, duration_ms: float, status_code: int):
        """Registra métrica de requisição HTTP"""
        key = f"{method}_{endpoint}"
        self.request_count[key] += 1
        self.request_latencies[key].append(duration_ms)

        if status_code >= 400:
            self.error_count[key] += 1

    def track_address_created(self):
        self.addresses_created += 1

    def track_address_rejected(self):
        self.addresses_rejected += 1

    def track_creation_failure(self):
        self.creation_failures += 1

    def track_resolution_failure(self):
        self.resolution_failures += 1

    def track_self_inclusion(self):
        self.self_inclusions += 1

    def track_demotions(self, succeeded: int, failed: int):
        """Registra o resultado de um lote de demoções"""
        self.demotions_succeeded += succeeded
        self.demotions_failed += failed

    def get_metrics_summary(self) -> Dict[str, Any]:
        """
        Retorna resumo completo das métricas

        Returns:
            dict: Métricas agregadas
        """
        uptime_seconds = time.time() - self.start_time

        avg_request_latencies = {}
        for endpoint, latencies in self.request_latencies.items():
            if latencies:
                avg_request_latencies[endpoint] = {
                    "avg_ms": round(sum(latencies) / len(latencies), 2),
                    "min_ms": round(min(latencies), 2),
                    "max_ms": round(max(latencies), 2),
                    "p95_ms": round(self._percentile(latencies, 95), 2),
                }

        total_requests = sum(self.request_count.values())
        total_errors = sum(self.error_count.values())

        return {
            "system": {
                "uptime_seconds": round(uptime_seconds, 2),
                "last_reset": self.last_reset.isoformat(),
            },
            "requests": {
                "total": total_requests,
                "by_endpoint": dict(self.request_count),
                "errors": total_errors,
                "error_rate": round(
                    (total_errors / total_requests * 100) if total_requests > 0 else 0, 2
                ),
                "latencies": avg_request_latencies,
            },
            "addresses": {
                "created": self.addresses_created,
                "rejected": self.addresses_rejected,
                "creation_failures": self.creation_failures,
                "resolution_failures": self.resolution_failures,
                "demotions_succeeded": self.demotions_succeeded,
                "demotions_failed": self.demotions_failed,
                "self_inclusions": self.self_inclusions,
            },
        }

    def reset_metrics(self):
        """Reseta todas as métricas (útil para testes)"""
        self.__init__()

    @staticmethod
    def _percentile(values, percentile: int) -> float:
        """Calcula percentil de uma sequência de valores"""
        if not values:
            return 0
        sorted_values = sorted(values)
        index = int(len(sorted_values) * (percentile / 100))
        return sorted_values[min(index, len(sorted_values) - 1)]


# Instância global
metrics = MetricsCollector()
