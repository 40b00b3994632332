from .aggregator import MetricsAggregator, streak_rollup_uptime, window_metrics

__all__ = ["MetricsAggregator", "streak_rollup_uptime", "window_metrics"]
