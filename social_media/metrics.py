from collections import defaultdict
from typing import Dict, Tuple


# (path, status) -> count
_http_requests_total: Dict[Tuple[str, str], int] = defaultdict(int)

# (operation, result) -> count
_service_results_total: Dict[Tuple[str, str], int] = defaultdict(int)

# simple latency buckets in ms
_latency_buckets = {
    "100": 0,
    "500": 0,
    "+Inf": 0,
}
_latency_count = 0


def inc_http_request(path: str, status: int) -> None:
    key = (path, str(status))
    _http_requests_total[key] += 1


def inc_service_result(operation: str, result: str) -> None:
    _service_results_total[(operation, result)] += 1


def observe_latency_ms(latency_ms: float) -> None:
    global _latency_count
    _latency_count += 1
    if latency_ms <= 100:
        _latency_buckets["100"] += 1
        _latency_buckets["500"] += 1
        _latency_buckets["+Inf"] += 1
    elif latency_ms <= 500:
        _latency_buckets["500"] += 1
        _latency_buckets["+Inf"] += 1
    else:
        _latency_buckets["+Inf"] += 1


def reset_metrics() -> None:
    global _latency_count
    _http_requests_total.clear()
    _service_results_total.clear()
    for le in _latency_buckets:
        _latency_buckets[le] = 0
    _latency_count = 0


def render_metrics() -> str:
    """Return plain text metrics."""
    lines: list[str] = []

    for (path, status), value in _http_requests_total.items():
        lines.append(
            f'http_requests_total{{path="{path}",status="{status}"}} {value}'
        )

    for (operation, result), value in _service_results_total.items():
        lines.append(
            f'service_results_total{{operation="{operation}",result="{result}"}} {value}'
        )

    for le, value in _latency_buckets.items():
        lines.append(
            f'request_latency_ms_bucket{{le="{le}"}} {value}'
        )
    lines.append(f"request_latency_ms_count {_latency_count}")

    return "\n".join(lines) + "\n"
