# intents/model.py
from __future__ import annotations

from typing import Dict, Tuple

KIND = "LabelIntent"
DEFAULT_API_VERSION = "labels.nslabel.io/v1"

IntentKey = Tuple[str, str]  # (namespace, name)


def intent_key(obj: dict) -> IntentKey:
    meta = (obj or {}).get("metadata", {}) or {}
    return (meta.get("namespace", ""), meta.get("name", ""))


def is_terminating(obj: dict) -> bool:
    return bool(((obj or {}).get("metadata", {}) or {}).get("deletionTimestamp"))


def intent_manifest(
    namespace: str,
    name: str,
    labels: Dict[str, str],
    api_version: str = DEFAULT_API_VERSION,
) -> Dict:
    """
    Build a LabelIntent body asking for `labels` on `namespace`.
    """
    return {
        "apiVersion": api_version,
        "kind": KIND,
        "metadata": {
            "name": name,
            "namespace": namespace,
        },
        "spec": {
            "labels": {str(k): str(v) for k, v in labels.items()},
        },
    }
