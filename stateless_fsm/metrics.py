"""
Prometheus instrumentation for routing outcomes.
"""

import threading
from typing import Any, Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, REGISTRY

from .state import display_name


class MachineMetrics:
    """
    Counters and latency histogram shared by any number of machines.

    Metrics are labelled by machine id, so one instance per registry is
    enough. Prometheus collectors are internally synchronized and live
    outside the routing table, so attaching them keeps a built machine
    safe for concurrent use.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None, namespace: str = 'fsm'):
        registry = registry if registry is not None else REGISTRY
        self.registry = registry

        self.transitions = Counter(
            f'{namespace}_transitions_total',
            'Total transitions taken',
            labelnames=['machine', 'from_state', 'to_state', 'event'],
            registry=registry
        )

        self.routing_misses = Counter(
            f'{namespace}_routing_misses_total',
            'Events for which no transition was selected',
            labelnames=['machine', 'state', 'event'],
            registry=registry
        )

        self.transition_latency = Histogram(
            f'{namespace}_transition_latency_seconds',
            'Latency of routing and executing a transition',
            labelnames=['machine'],
            buckets=(0.0001, 0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1),
            registry=registry
        )

    def record_transition(self, machine_id: str, source: Any, target: Any, event: Any, seconds: float):
        self.transitions.labels(
            machine=machine_id,
            from_state=display_name(source),
            to_state=display_name(target),
            event=display_name(event)
        ).inc()
        self.transition_latency.labels(machine=machine_id).observe(seconds)

    def record_miss(self, machine_id: str, state: Any, event: Any):
        self.routing_misses.labels(machine=machine_id, state=display_name(state), event=display_name(event)).inc()


_default_metrics: Optional[MachineMetrics] = None
_default_lock = threading.Lock()


def default_metrics() -> MachineMetrics:
    """Lazily created metrics bound to the global Prometheus registry"""
    global _default_metrics
    with _default_lock:
        if _default_metrics is None:
            _default_metrics = MachineMetrics()
        return _default_metrics
