# config.py
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional


@dataclass(frozen=True)
class Settings:
    group: str
    version: str
    plural: str
    finalizer: str
    watch_namespace: Optional[str]
    resync_seconds: int
    retry_attempts: int
    retry_max_wait: int
    run_once: bool
    log_level: str

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}"


def _int(env: Mapping[str, str], name: str, default: int, minimum: int = 1) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        val = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")
    return max(val, minimum)


def load_settings(env: Mapping[str, str] = os.environ) -> Settings:
    """
    Controller settings from the environment.
    FINALIZER defaults to "<INTENT_GROUP>/label-cleanup".
    """
    group = env.get("INTENT_GROUP", "labels.nslabel.io")
    return Settings(
        group=group,
        version=env.get("INTENT_VERSION", "v1"),
        plural=env.get("INTENT_PLURAL", "labelintents"),
        finalizer=env.get("FINALIZER") or f"{group}/label-cleanup",
        watch_namespace=env.get("WATCH_NAMESPACE") or None,
        resync_seconds=_int(env, "RESYNC_SECONDS", 30),
        retry_attempts=_int(env, "RETRY_ATTEMPTS", 5),
        retry_max_wait=_int(env, "RETRY_MAX_WAIT", 10),
        run_once=env.get("RUN_ONCE", "0") == "1",
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
    )
