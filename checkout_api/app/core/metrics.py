from __future__ import annotations
import threading
import time
from collections import defaultdict
from typing import Callable, Dict, Iterable, List, Optional, Tuple

_LabelKey = Tuple[Tuple[str, str], ...]


def _key(labels: Optional[Dict[str, str]]) -> _LabelKey:
    return tuple(sorted((labels or {}).items()))


def _fmt_labels(key: _LabelKey, extra: str = "") -> str:
    parts = [f'{k}="{v}"' for k, v in key]
    if extra:
        parts.append(extra)
    return "{" + ",".join(parts) + "}" if parts else ""


# ---------- Primitives ----------

class _Counter:
    def __init__(self, name: str, help_: str = ""):
        self.name = name
        self.help = help_
        self._lock = threading.Lock()
        self._values: Dict[_LabelKey, int] = defaultdict(int)

    def inc(self, labels: Optional[Dict[str, str]] = None, by: int = 1) -> None:
        with self._lock:
            self._values[_key(labels)] += by

    def value(self, labels: Optional[Dict[str, str]] = None) -> int:
        return self._values.get(_key(labels), 0)

    def render(self) -> Iterable[str]:
        if self.help:
            yield f"# HELP {self.name} {self.help}\n# TYPE {self.name} counter\n"
        for key, v in sorted(self._values.items()):
            yield f"{self.name}{_fmt_labels(key)} {v}\n"


class _Histogram:
    DEFAULT_BUCKETS = [0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10]  # seconds

    def __init__(self, name: str, help_: str = "", buckets: Optional[Iterable[float]] = None):
        self.name = name
        self.help = help_
        self._lock = threading.Lock()
        self._buckets: List[float] = sorted(buckets or self.DEFAULT_BUCKETS)
        self._counts: Dict[_LabelKey, List[int]] = {}
        self._sum: Dict[_LabelKey, float] = defaultdict(float)

    def observe(self, value_seconds: float, labels: Optional[Dict[str, str]] = None) -> None:
        key = _key(labels)
        with self._lock:
            counts = self._counts.setdefault(key, [0] * (len(self._buckets) + 1))
            idx = len(self._buckets)  # +Inf
            for i, b in enumerate(self._buckets):
                if value_seconds <= b:
                    idx = i
                    break
            counts[idx] += 1
            self._sum[key] += value_seconds

    def timer(self, labels: Optional[Dict[str, str]] = None) -> Callable[[], None]:
        start = time.perf_counter()

        def _stop() -> None:
            self.observe(time.perf_counter() - start, labels=labels)
        return _stop

    def render(self) -> Iterable[str]:
        if self.help:
            yield f"# HELP {self.name} {self.help}\n# TYPE {self.name} histogram\n"
        for key in sorted(self._counts.keys()):
            running = 0
            for b, c in zip(self._buckets + [float("inf")], self._counts[key]):
                running += c
                le = "+Inf" if b == float("inf") else f"{b:g}"
                le_label = 'le="%s"' % le
                yield f"{self.name}_bucket{_fmt_labels(key, le_label)} {running}\n"
            yield f"{self.name}_sum{_fmt_labels(key)} {self._sum[key]}\n"
            yield f"{self.name}_count{_fmt_labels(key)} {running}\n"


# ---------- Registry ----------

class MetricsRegistry:
    def __init__(self):
        self._items: list = []

    def counter(self, name: str, help_: str = "") -> _Counter:
        c = _Counter(name, help_)
        self._items.append(c)
        return c

    def histogram(self, name: str, help_: str = "", buckets: Optional[Iterable[float]] = None) -> _Histogram:
        h = _Histogram(name, help_, buckets=buckets)
        self._items.append(h)
        return h

    def render_prometheus(self) -> str:
        out: list[str] = []
        for it in self._items:
            out.extend(it.render())
        return "".join(out)


REGISTRY = MetricsRegistry()

# ---------- App metrics ----------

checkout_counter = REGISTRY.counter(
    "checkout_sessions_total", "Checkout session requests by result"
)
checkout_duration = REGISTRY.histogram(
    "checkout_session_duration_seconds", "Checkout handler duration in seconds"
)
webhook_counter = REGISTRY.counter(
    "stripe_webhook_events_total", "Verified Stripe webhook events by type"
)
reconcile_counter = REGISTRY.counter(
    "orders_reconciled_total", "Orders repaired by the reconciliation worker, by action"
)
