import time
from collections import Counter
from datetime import datetime
from typing import Callable, Dict, Any


class CallLedger:
    """
    Counts upstream calls per endpoint and per hour of day. Telemetry only;
    nothing in the pipeline branches on these numbers.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self.reset()

    def reset(self):
        self.total = 0
        self.by_endpoint: Counter = Counter()
        self.by_hour: Counter = Counter()
        self.session_start = self._clock()

    def record(self, endpoint: str):
        self.total += 1
        self.by_endpoint[endpoint] += 1
        hour = datetime.fromtimestamp(self._clock()).hour
        self.by_hour[hour] += 1

    def stats(self) -> Dict[str, Any]:
        session_minutes = (self._clock() - self.session_start) / 60
        calls_per_minute = self.total / session_minutes if session_minutes > 0 else 0.0
        return {
            "total_calls": self.total,
            "session_minutes": round(session_minutes, 2),
            "calls_per_minute": round(calls_per_minute, 2),
            "by_endpoint": dict(self.by_endpoint),
            "by_hour": dict(self.by_hour),
            "top_endpoints": [
                {"endpoint": ep, "calls": n} for ep, n in self.by_endpoint.most_common(5)
            ],
        }
