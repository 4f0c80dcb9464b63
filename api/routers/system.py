import os
import platform
import time
from datetime import datetime, timezone

from fastapi import APIRouter

router = APIRouter()

VERSION = "1.0.0"
_started = time.monotonic()


def _uptime_s() -> int:
    return int(time.monotonic() - _started)


@router.get("/healthz")
def healthz():
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptimeSec": _uptime_s(),
    }


@router.get("/v1/meta")
def meta():
    return {
        "version": VERSION,
        "uptimeSec": _uptime_s(),
        "gitSha": os.environ.get("GIT_SHA", "unknown"),
        "pythonVersion": platform.python_version(),
        "platform": platform.system().lower(),
        "arch": platform.machine(),
    }
