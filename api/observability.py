from __future__ import annotations

import time
from typing import Optional
from uuid import uuid4

from core.logging_config import request_id_var


def get_request_id() -> Optional[str]:
    return request_id_var.get()


def set_request_id(value: Optional[str]):
    return request_id_var.set(value)


def reset_request_id(token) -> None:
    request_id_var.reset(token)


def new_request_id() -> str:
    return uuid4().hex


def request_log_fields(*, method: str, path: str, status_code: int, duration_ms: float, client_ip: Optional[str]) -> dict[str, object]:
    return {
        "ctx_method": method,
        "ctx_path": path,
        "ctx_status_code": int(status_code),
        "ctx_duration_ms": round(float(duration_ms), 2),
        "ctx_client_ip": client_ip or "",
    }


def monotonic_ms() -> float:
    return time.perf_counter() * 1000.0
