import logging

from aws_embedded_metrics import metric_scope

_LOGGER = logging.getLogger(__name__)

METRICS_NAMESPACE = "PcAcademy"


class MetricsManager:
    """Queues metrics during an invocation and emits them as CloudWatch embedded metrics on flush."""

    def __init__(self, namespace: str = METRICS_NAMESPACE):
        self._namespace = namespace
        self._metrics: dict[str, tuple[int, str]] = {}
        self._dimensions: dict[str, str] = {}

    def set_dimension(self, name: str, value: str):
        self._dimensions[name] = value

    def put_metric(self, name: str, value: int, unit: str = "Count"):
        # Same-named metrics within one invocation are summed
        previous, _ = self._metrics.get(name, (0, unit))
        self._metrics[name] = (previous + value, unit)
        _LOGGER.debug(f"Queued metric '{name}' with value {value} in namespace '{self._namespace}'")

    @metric_scope
    def flush(self, metrics):
        metrics.set_namespace(self._namespace)
        if self._dimensions:
            metrics.put_dimensions(self._dimensions)
        for name, (value, unit) in self._metrics.items():
            metrics.put_metric(name, value, unit)

        _LOGGER.info(f"Flushed {len(self._metrics)} metrics to namespace '{self._namespace}'.")
        self._metrics = {}
