#!/usr/bin/env python3
"""tools/render.py

Render a LabelIntent manifest as YAML.

Usage examples:
  python3 tools/render.py team-a owners key_1=value_1 tier=gold | kubectl apply -f -

  # Different CRD group/version:
  INTENT_GROUP=labels.example.com python3 tools/render.py team-a owners a=1

Notes:
- This does NOT apply anything.
"""

from __future__ import annotations

import os
import sys

import yaml

# Allow executing from tools/ without installing as a package
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from config import load_settings  # noqa: E402
from intents.model import intent_manifest  # noqa: E402


def parse_pairs(pairs: list[str]) -> dict[str, str]:
    labels: dict[str, str] = {}
    for p in pairs:
        if "=" not in p:
            raise ValueError(f"expected key=value, got {p!r}")
        k, v = p.split("=", 1)
        if not k:
            raise ValueError(f"empty label key in {p!r}")
        labels[k] = v
    return labels


def main(argv: list[str]) -> int:
    if len(argv) < 3:
        print("usage: render.py NAMESPACE NAME [key=value ...]", file=sys.stderr)
        return 2

    try:
        labels = parse_pairs(argv[3:])
    except ValueError as e:
        print(f"[render] {e}", file=sys.stderr)
        return 2

    settings = load_settings()
    manifest = intent_manifest(argv[1], argv[2], labels, api_version=settings.api_version)
    try:
        yaml.safe_dump(manifest, sys.stdout, sort_keys=False)
    except BrokenPipeError:
        # Common when piping to `head`; exit cleanly
        return 0
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv))
