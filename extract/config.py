# extract/config.py
"""
Configuration loading and validation.

Responsibilities:
- Load the YAML extraction policy
- Validate it against JSON Schema
- Merge command line options on top of it
- Expose a normalised config object

This module does NOT:
- interact with git
- parse rule strings (see extract.validation)
- perform rewrites
"""

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import json
import yaml
from jsonschema import Draft202012Validator

from extract.validation import parse_add_parents


class ConfigError(RuntimeError):
    pass


@dataclass(frozen=True)
class Config:
    source: Optional[str] = None
    paths: Tuple[str, ...] = ()
    paths_from: Optional[Path] = None
    exclude: Tuple[str, ...] = ()
    move: Tuple[Any, ...] = ()  # "from:to" strings or {from, to} mappings
    until: Tuple[str, ...] = ()
    remove: Tuple[str, ...] = ()
    fixup: Tuple[str, ...] = ()
    add_parent: Any = field(default_factory=tuple)  # list of strings or mapping
    no_prune: bool = False
    keep_committer: bool = False
    branch: Optional[str] = None


def default_schema_path() -> Path:
    """
    schema.json ships next to this module.
    """
    return Path(__file__).resolve().parent / "schema.json"


def _load_schema(schema_path: Path) -> Dict[str, Any]:
    """
    Load JSON Schema from a schema.json file.
    """
    try:
        raw = schema_path.read_text(encoding="utf-8")
    except Exception as e:
        raise ConfigError(f"Failed to read schema file: {schema_path}") from e

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Schema is not valid JSON: {schema_path}") from e

    if not isinstance(parsed, dict):
        raise ConfigError(f"Schema must be a JSON object: {schema_path}")

    return parsed


def _load_yaml(config_path: Path) -> Dict[str, Any]:
    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except Exception as e:
        raise ConfigError(f"Failed to load config: {config_path}") from e

    if raw is None:
        raise ConfigError(f"Config is empty: {config_path}")

    if not isinstance(raw, dict):
        raise ConfigError(f"Config must be a mapping at top level: {config_path}")

    return raw


def load_config(config_path: Path, schema_path: Optional[Path] = None) -> Config:
    """
    Load and validate an extraction policy.

    A relative paths_from is resolved against the policy's directory.

    Raises ConfigError on validation failure.
    """
    raw_config = _load_yaml(config_path)
    schema = _load_schema(schema_path or default_schema_path())

    validator = Draft202012Validator(schema)
    errors = sorted(validator.iter_errors(raw_config), key=lambda e: list(e.path))

    if errors:
        messages = []
        for err in errors:
            path = ".".join(str(p) for p in err.path)
            prefix = path if path else "<root>"
            messages.append(f"{prefix}: {err.message}")
        raise ConfigError("Invalid configuration:\n" + "\n".join(messages))

    paths_from = raw_config.get("paths_from")
    if paths_from is not None:
        paths_from = (config_path.parent / paths_from).resolve()

    add_parent = raw_config.get("add_parent", ())
    if isinstance(add_parent, list):
        add_parent = tuple(add_parent)

    return Config(
        source=raw_config.get("source"),
        paths=tuple(raw_config.get("paths", ())),
        paths_from=paths_from,
        exclude=tuple(raw_config.get("exclude", ())),
        move=tuple(raw_config.get("move", ())),
        until=tuple(raw_config.get("until", ())),
        remove=tuple(raw_config.get("remove", ())),
        fixup=tuple(raw_config.get("fixup", ())),
        add_parent=add_parent,
        no_prune=bool(raw_config.get("no_prune", False)),
        keep_committer=bool(raw_config.get("keep_committer", False)),
        branch=raw_config.get("branch"),
    )


def merge_options(
    base: Config,
    *,
    source: Optional[str] = None,
    paths: Tuple[str, ...] = (),
    paths_from: Optional[Path] = None,
    exclude: Tuple[str, ...] = (),
    move: Tuple[str, ...] = (),
    until: Tuple[str, ...] = (),
    remove: Tuple[str, ...] = (),
    fixup: Tuple[str, ...] = (),
    add_parent: Tuple[str, ...] = (),
    no_prune: bool = False,
    keep_committer: bool = False,
    branch: Optional[str] = None,
) -> Config:
    """
    Layer command line options over a loaded policy.

    Lists are appended after the policy's own entries, so policy move rules
    keep precedence. Toggles are OR'ed and scalars override.
    """
    if add_parent:
        if isinstance(base.add_parent, dict):
            merged_add_parent: Any = tuple(
                f"{commit}:{','.join(parents)}"
                for commit, parents in parse_add_parents("add_parent", base.add_parent)
            ) + tuple(add_parent)
        else:
            merged_add_parent = tuple(base.add_parent) + tuple(add_parent)
    else:
        merged_add_parent = base.add_parent

    return replace(
        base,
        source=source if source is not None else base.source,
        paths=base.paths + tuple(paths),
        paths_from=paths_from if paths_from is not None else base.paths_from,
        exclude=base.exclude + tuple(exclude),
        move=base.move + tuple(move),
        until=base.until + tuple(until),
        remove=base.remove + tuple(remove),
        fixup=base.fixup + tuple(fixup),
        add_parent=merged_add_parent,
        no_prune=base.no_prune or no_prune,
        keep_committer=base.keep_committer or keep_committer,
        branch=branch if branch is not None else base.branch,
    )
