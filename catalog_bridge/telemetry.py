"""OpenTelemetry helpers for sync metrics."""

from dataclasses import dataclass
from typing import Any

from opentelemetry import metrics
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import ConsoleMetricExporter, PeriodicExportingMetricReader

METER_NAME = "catalog_bridge"

_meter_provider_initialized = False


def init_metrics() -> None:
    """Initialize OpenTelemetry metrics with a console exporter."""
    global _meter_provider_initialized
    if _meter_provider_initialized:
        return
    reader = PeriodicExportingMetricReader(ConsoleMetricExporter())
    provider = MeterProvider(metric_readers=[reader])
    metrics.set_meter_provider(provider)
    _meter_provider_initialized = True


@dataclass(frozen=True)
class SyncInstruments:
    """Instruments the reconciler records into."""
    duration: Any
    outcomes: Any

    def record(self, platform: str, action: str, duration_ms: float) -> None:
        attributes = {"platform": platform, "action": action}
        self.duration.record(duration_ms, attributes)
        self.outcomes.add(1, attributes)


def get_sync_instruments(meter_provider: Any = None) -> SyncInstruments:
    """
    Build the per-product sync duration histogram and outcome counter.

    Without an explicit provider the global one is used, installing the
    console exporter on first use.
    """
    if meter_provider is None:
        init_metrics()
        meter = metrics.get_meter(METER_NAME)
    else:
        meter = meter_provider.get_meter(METER_NAME)
    return SyncInstruments(
        duration=meter.create_histogram(
            name="catalog_bridge.sync.product.duration",
            unit="ms",
            description="Duration of syncing one product to a destination",
        ),
        outcomes=meter.create_counter(
            name="catalog_bridge.sync.products",
            unit="1",
            description="Products synced, by outcome",
        ),
    )
