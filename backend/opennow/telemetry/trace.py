from __future__ import annotations

import json
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from datetime import datetime, timezone
from time import perf_counter
from uuid import UUID, uuid4

_TRACE_CONTEXT: ContextVar["RequestTrace | None"] = ContextVar("request_trace", default=None)

TRACKED_STAGES = ("store", "provider", "ranking")


def _round_or_none(value: float | None) -> float | None:
    if value is None:
        return None
    return round(value, 3)


@dataclass
class RequestTrace:
    request_id: UUID = field(default_factory=uuid4)
    path: str = ""
    method: str = "GET"
    request_start_timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    search_term: str | None = None
    stage_times_ms: dict[str, float] = field(default_factory=dict)
    stage_calls: dict[str, int] = field(default_factory=dict)
    total_time_ms: float | None = None
    result_count: int | None = None
    imported_count: int | None = None
    _request_perf_counter_start: float = field(default_factory=perf_counter, repr=False)

    def mark_search(self, term: str) -> None:
        self.search_term = term.strip()

    def record_stage_time(self, stage: str, duration_ms: float) -> None:
        if stage not in TRACKED_STAGES:
            return
        self.stage_times_ms[stage] = self.stage_times_ms.get(stage, 0.0) + duration_ms
        self.stage_calls[stage] = self.stage_calls.get(stage, 0) + 1

    def set_result_summary(self, result_count: int, imported_count: int | None = None) -> None:
        self.result_count = result_count
        if imported_count is not None:
            self.imported_count = imported_count

    def finalize(self) -> None:
        if self.total_time_ms is None:
            self.total_time_ms = (perf_counter() - self._request_perf_counter_start) * 1000.0
        for stage in TRACKED_STAGES:
            self.stage_times_ms.setdefault(stage, 0.0)
            self.stage_calls.setdefault(stage, 0)

    def to_header_value(self) -> str:
        payload = {
            "request_id": str(self.request_id),
            "store_time_ms": _round_or_none(self.stage_times_ms.get("store")),
            "provider_time_ms": _round_or_none(self.stage_times_ms.get("provider")),
            "ranking_time_ms": _round_or_none(self.stage_times_ms.get("ranking")),
            "total_time_ms": _round_or_none(self.total_time_ms),
            "result_count": self.result_count,
        }
        return json.dumps(payload, separators=(",", ":"))


def get_current_trace() -> RequestTrace | None:
    return _TRACE_CONTEXT.get()


def set_current_trace(trace: RequestTrace) -> Token:
    return _TRACE_CONTEXT.set(trace)


def reset_current_trace(token: Token) -> None:
    _TRACE_CONTEXT.reset(token)
