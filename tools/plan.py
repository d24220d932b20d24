#!/usr/bin/env python3
"""Plan-only runner: prints what the next full sync of a namespace would do.

Usage:
  python3 tools/plan.py team-a
  NAMESPACE=team-a python3 tools/plan.py

Notes:
- Uses in-cluster config, falling back to your local kubeconfig.
- Does not attach finalizers or write any namespace.
- Protected (kubernetes.io) labels are read from the live namespace.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from kubernetes import config

# Ensure project root is on sys.path when running as a script
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config import load_settings  # noqa: E402
from intents.merge import plan_sync, print_plan  # noqa: E402
from store import INTENT, NAMESPACE, KubeStore, NotFound  # noqa: E402


def main(argv: list[str]) -> int:
    namespace = argv[1] if len(argv) > 1 else os.environ.get("NAMESPACE")
    if not namespace:
        print("usage: plan.py NAMESPACE", file=sys.stderr)
        return 2

    try:
        config.load_incluster_config()
        print("[plan] using in-cluster config")
    except config.ConfigException:
        config.load_kube_config()
        print("[plan] using kubeconfig (local)")

    settings = load_settings()
    store = KubeStore(settings.group, settings.version, settings.plural)

    try:
        ns = store.get(NAMESPACE, None, namespace)
    except NotFound:
        print(f"[plan] namespace {namespace} not found")
        return 1

    intents = store.list(INTENT, namespace)
    print(f"[plan] intents={len(intents)}")
    print_plan(plan_sync(ns, intents))
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv))
