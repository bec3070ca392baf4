"""Path utilities: entity name normalization, ids, logical paths and blob keys.

Layout rules shared by the lifecycle manager and the tests:
- logical path of an entity is ``entities/<name>``;
- blob key base is ``<root>/users/<owner>/entities/<name>`` and the prefix
  that covers everything inside the entity is the base plus ``/``;
- folder ids are derived deterministically from owner and name.
"""

from __future__ import annotations

import re
from typing import Optional

from app.packages.drive.core.constants import (
    ENTITY_PATH_ROOT,
    FOLDER_ID_PREFIX,
    FOLDER_PLACEHOLDER,
)
from app.packages.drive.core.exceptions import ValidationError

_SLUG_RE = re.compile(r"[^a-z0-9-]")
_MULTI_SLASH_RE = re.compile(r"/+")


def normalize_name(raw: Optional[str], *, field: str = "name") -> str:
    """Trim a user supplied entity/folder/file name and reject unusable values."""
    cleaned = str(raw).strip() if raw is not None else ""
    if not cleaned:
        raise ValidationError(f"{field} 不能为空")
    if "/" in cleaned or cleaned in {".", ".."}:
        raise ValidationError(f"{field} 不能包含 '/' 或为 '.'/'..'")
    return cleaned


def require_owner(owner_id: Optional[str]) -> str:
    cleaned = (owner_id or "").strip()
    if not cleaned:
        raise ValidationError("userId 不能为空")
    return cleaned


def slug(value: str) -> str:
    return _SLUG_RE.sub("-", value.lower())


def folder_id(owner_id: str, name: str) -> str:
    return f"{FOLDER_ID_PREFIX}{slug(owner_id)}_{slug(name)}"


def subfolder_id(owner_id: str, entity_name: str, folder_name: str) -> str:
    return f"{folder_id(owner_id, entity_name)}_{slug(folder_name)}"


def entity_path(name: str) -> str:
    return f"{ENTITY_PATH_ROOT}/{name}"


def is_entity_path(path: str) -> bool:
    """True for ``entities/<name>`` only; sub-folders live one level deeper."""
    parts = path.split("/")
    return len(parts) == 2 and parts[0] == ENTITY_PATH_ROOT and bool(parts[1])


def join_key(*parts: str) -> str:
    return _MULTI_SLASH_RE.sub("/", "/".join(p for p in parts if p))


def owner_base_key(root: str, owner_id: str) -> str:
    return join_key(root, "users", owner_id)


def entity_base_key(root: str, owner_id: str, name: str) -> str:
    return join_key(owner_base_key(root, owner_id), entity_path(name))


def entity_prefix(root: str, owner_id: str, name: str) -> str:
    return entity_base_key(root, owner_id, name) + "/"


def placeholder_key(base_key: str) -> str:
    return f"{base_key.rstrip('/')}/{FOLDER_PLACEHOLDER}"


def replace_prefix(value: str, old_prefix: str, new_prefix: str) -> str:
    """Swap a leading prefix; values not starting with it are returned as is."""
    if value.startswith(old_prefix):
        return new_prefix + value[len(old_prefix):]
    return value


def rewrite_entity_path(path: Optional[str], old_name: str, new_name: str) -> str:
    """``entities/<old>[/rest]`` -> ``entities/<new>[/rest]``."""
    old_path = entity_path(old_name)
    new_path = entity_path(new_name)
    if not path:
        return new_path
    if path == old_path:
        return new_path
    if path.startswith(old_path + "/"):
        return new_path + path[len(old_path):]
    return path


def replace_last_segment(key: str, new_name: str) -> str:
    head, sep, _ = key.rpartition("/")
    return f"{head}{sep}{new_name}"
