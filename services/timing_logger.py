"""
Timing Logger Utility
Sub-operation timing for safety endpoints
"""

import time
from typing import Optional
from contextlib import contextmanager


def format_duration(duration_ms: float) -> str:
    """Format duration with speed indicator"""
    if duration_ms > 500:
        return f"🟡 {duration_ms:.2f}ms (SLOW)"
    elif duration_ms > 50:
        return f"🟢 {duration_ms:.2f}ms (GOOD)"
    else:
        return f"⚡ {duration_ms:.2f}ms (FAST)"


class TimingLogger:
    """Context manager for timing an operation and its named steps"""

    def __init__(self, operation_name: str, request_id: Optional[str] = None):
        self.operation_name = operation_name
        self.request_id = request_id or "---"
        self.start_time: Optional[float] = None

    def start(self):
        self.start_time = time.perf_counter()
        print(f"   ⏱️  [{self.request_id}] Starting: {self.operation_name}")

    def stop(self) -> float:
        """Stop timing and return duration in ms"""
        if self.start_time is None:
            return 0.0
        duration_ms = (time.perf_counter() - self.start_time) * 1000
        print(f"   ✓  [{self.request_id}] {self.operation_name}: {format_duration(duration_ms)}")
        return duration_ms

    @contextmanager
    def step(self, name: str):
        """Time a named sub-step"""
        start = time.perf_counter()
        try:
            yield
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            print(f"      └─ {name}: {format_duration(duration_ms)}")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False


@contextmanager
def time_operation(operation_name: str, request_id: str = "---"):
    """Context manager for timing synchronous operations"""
    timer = TimingLogger(operation_name, request_id)
    timer.start()
    try:
        yield timer
    finally:
        timer.stop()
