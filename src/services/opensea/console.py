from __future__ import annotations

from datetime import datetime


def now_str() -> str:
    return datetime.now().strftime("%H:%M:%S")


def log(scope: str, message: str) -> None:
    print(f"[{now_str()}] [{scope}] {message}", flush=True)
