# intents/labels.py
from __future__ import annotations

import logging
from typing import Dict

PROTECTED_MARKER = "kubernetes.io"

log = logging.getLogger("intents")


def is_protected(key: str) -> bool:
    # plain substring match, e.g. "app.kubernetes.io/name" or "kubernetes.io/metadata.name"
    return PROTECTED_MARKER in key


def namespace_labels(ns: dict) -> Dict[str, str]:
    return dict(((ns or {}).get("metadata", {}) or {}).get("labels", {}) or {})


def intent_labels(intent: dict) -> Dict[str, str]:
    """spec.labels of an intent; a malformed one counts as no labels."""
    spec = (intent or {}).get("spec") or {}
    labels = (spec.get("labels") or {}) if isinstance(spec, dict) else spec
    if not isinstance(labels, dict):
        meta = (intent or {}).get("metadata", {}) or {}
        log.warning(
            "ignoring malformed spec.labels ns=%s intent=%s type=%s",
            meta.get("namespace"), meta.get("name"), type(labels).__name__,
        )
        return {}
    return {str(k): str(v) for k, v in labels.items()}


def extract_protected(ns: dict) -> Dict[str, str]:
    """Protected subset of the namespace's *current* labels."""
    return {k: v for k, v in namespace_labels(ns).items() if is_protected(k)}
