from __future__ import annotations

import threading
import time
from collections import deque
from typing import Callable, Deque, List, Optional


FlushHandler = Callable[[Optional[float]], int]


class OutputPump:
    """Releases timestamped output at its time.

    Calls `flush(now_ms)` on a daemon thread every `interval_ms`. The handler
    is normally MidoOutput.flush_due. MidiOut only orders events; this thread
    is what makes them happen on the wall clock.
    """

    def __init__(self, flush: FlushHandler, interval_ms: float = 1.0, now: Optional[Callable[[], float]] = None):
        self.flush = flush
        self.interval_ms = float(interval_ms)
        self.now = now if now is not None else (lambda: time.monotonic() * 1000.0)
        self._t: Optional[threading.Thread] = None
        self._stop = threading.Event()
        self._jitter_ms: Deque[float] = deque(maxlen=512)
        self._lock = threading.Lock()
        self._sent = 0

    def start(self):
        if self._t and self._t.is_alive():
            return
        self._stop.clear()
        self._t = threading.Thread(target=self._run, daemon=True)
        self._t.start()

    def stop(self):
        self._stop.set()
        if self._t:
            self._t.join(timeout=1.0)

    def is_running(self) -> bool:
        return bool(self._t and self._t.is_alive())

    def pump_once(self) -> int:
        sent = self.flush(self.now())
        with self._lock:
            self._sent += sent
        return sent

    def _run(self):
        next_call = self.now()
        while not self._stop.is_set():
            now = self.now()
            if now >= next_call:
                # Record jitter relative to scheduled time
                with self._lock:
                    self._jitter_ms.append(max(0.0, now - next_call))
                next_call += self.interval_ms
                if next_call < now:
                    # Fell behind; don't burst to catch up
                    next_call = now + self.interval_ms
                self.pump_once()
            else:
                time.sleep(min(0.002, max(0.0, (next_call - now) / 1000.0)))

    def _percentile(self, values: List[float], pct: float) -> float:
        if not values:
            return 0.0
        xs = sorted(values)
        k = (len(xs) - 1) * pct
        f = int(k)
        c = min(f + 1, len(xs) - 1)
        if f == c:
            return xs[f]
        d0 = xs[f] * (c - k)
        d1 = xs[c] * (k - f)
        return d0 + d1

    def get_metrics(self) -> dict:
        # Return jitter p95/p99 over recent window
        with self._lock:
            samples = list(self._jitter_ms)
            sent = self._sent
        return {
            "jitterMsP95": round(self._percentile(samples, 0.95), 3),
            "jitterMsP99": round(self._percentile(samples, 0.99), 3),
            "sent": sent,
        }
