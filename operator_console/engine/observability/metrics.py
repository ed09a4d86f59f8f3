from __future__ import annotations

from typing import Any, Dict

from operator_console.engine.observability.logging import safe_redact, structured_log


def counter(name: str, value: int = 1, labels: dict[str, str] | None = None) -> None:
    payload = {"type": "metric", "metric_type": "counter", "name": name, "value": int(value), "labels": labels or {}}
    structured_log(payload)


def histogram(name: str, value: float, labels: dict[str, str] | None = None) -> None:
    payload = {"type": "metric", "metric_type": "histogram", "name": name, "value": float(value), "labels": labels or {}}
    structured_log(payload)


def event(name: str, fields: Dict[str, Any]) -> None:
    payload = {"type": "event", "name": name, "fields": safe_redact(fields)}
    structured_log(payload)


__all__ = ["counter", "histogram", "event"]
