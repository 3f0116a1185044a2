"""Shared utility functions."""
import os
import uuid
from datetime import datetime, timezone
from typing import Optional

import yaml

from kanbanflow.config import settings
from kanbanflow.logging_config import get_logger

logger = get_logger(__name__)

_BUILTIN_TEMPLATES_DIR = os.path.join(os.path.dirname(__file__), "templates")


def gen_id(prefix: str = "") -> str:
    """Generate a short prefixed ID."""
    return f"{prefix}{uuid.uuid4().hex[:12]}"


def now_ms() -> int:
    """Get current timestamp in milliseconds."""
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def _templates_dirs() -> list[str]:
    dirs = []
    if settings.board_templates_dir:
        dirs.append(settings.board_templates_dir)
    dirs.append(_BUILTIN_TEMPLATES_DIR)
    return dirs


def load_board_template(template_id: str) -> Optional[dict]:
    """Load a board template YAML by ID, returning the parsed content or None.

    The configured BOARD_TEMPLATES_DIR is searched before the built-in
    templates, so deployments can override ``default``.
    """
    for templates_dir in _templates_dirs():
        if not os.path.isdir(templates_dir):
            continue
        for fname in sorted(os.listdir(templates_dir)):
            if not fname.endswith((".yml", ".yaml")):
                continue
            fpath = os.path.join(templates_dir, fname)
            try:
                with open(fpath, "r") as f:
                    content = yaml.safe_load(f)
            except (OSError, yaml.YAMLError) as e:
                logger.warning(f"Skipping unreadable board template {fpath}: {e}")
                continue
            if isinstance(content, dict) and content.get("id") == template_id:
                return content
    return None


def merge_unique(current: list[str], extra: list[str]) -> list[str]:
    """Order-preserving union of two id lists."""
    merged = list(current)
    for item in extra:
        if item not in merged:
            merged.append(item)
    return merged
