"""
Testes do Coletor de Métricas
=============================
"""

from src.core.monitoring.metrics import LATENCY_WINDOW, MetricsCollector


class TestMetricsCollector:

    def test_latency_window_is_bounded(self):
        collector = MetricsCollector()

        for i in range(LATENCY_WINDOW + 250):
            collector.track_request("/api/address", "POST", float(i), 200)

        latencies = collector.request_latencies["POST_/api/address"]
        assert len(latencies) == LATENCY_WINDOW
        # Só as mais recentes ficam na janela
        assert min(latencies) == 250.0
        assert collector.request_count["POST_/api/address"] == LATENCY_WINDOW + 250

    def test_summary_uses_window(self):
        collector = MetricsCollector()
        collector.track_request("/api/address", "GET", 10.0, 200)
        collector.track_request("/api/address", "GET", 30.0, 502)

        summary = collector.get_metrics_summary()

        latency = summary["requests"]["latencies"]["GET_/api/address"]
        assert latency["avg_ms"] == 20.0
        assert latency["max_ms"] == 30.0
        assert summary["requests"]["errors"] == 1
