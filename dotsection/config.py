"""Loading of ``[tool.dotsection]`` settings."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
import tomllib

from .constants import (
    DEFAULT_FETCH_ATTEMPTS,
    DEFAULT_FETCH_BACKOFF,
    DEFAULT_IGNORE,
    DEFAULT_MAIN_SECTION,
    DEFAULT_MAX_FILE_SIZE,
    DEFAULT_PREFIX,
)

# Checked in order inside every directory on the way up.
CONFIG_CANDIDATES: tuple[tuple[str, tuple[tuple[str, ...], ...]], ...] = (
    ("pyproject.toml", (("tool", "dotsection"),)),
    (".dotsection.toml", (("dotsection",), ("tool", "dotsection"))),
)


@dataclass
class DotsectionConfig:
    """Settings shared by every dotsection command.

    Attributes:
        default_prefix: Comment prefix used when the file type is unknown. An
            empty string disables section processing for unknown types.
        prefixes: Extra ``{file_name_or_extension: prefix}`` lookups checked
            before the built-in tables.
        main_section: Name of the section `compile` wraps around an unmanaged
            file. Empty disables wrapping.
        ignore: File and directory names skipped by directory walks.
        create_targets: Whether `apply` may create a missing target file.
        allow_symlinks: Whether symlinked files may be read and replaced.
        max_file_size: Largest dotfile, in bytes, that is read at all.
        fetch_attempts: Attempts made for a remote source before giving up.
        fetch_backoff: Initial delay in seconds between remote attempts.

    Examples:
        DotsectionConfig(default_prefix="//", prefixes={"rasi": "//"})
    """

    # Comment syntax
    default_prefix: str = DEFAULT_PREFIX
    prefixes: dict[str, str] = field(default_factory=dict)

    # Operations
    main_section: str = DEFAULT_MAIN_SECTION
    ignore: list[str] = field(default_factory=lambda: list(DEFAULT_IGNORE))
    create_targets: bool = True
    allow_symlinks: bool = False

    # Limits
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    fetch_attempts: int = DEFAULT_FETCH_ATTEMPTS
    fetch_backoff: float = DEFAULT_FETCH_BACKOFF


class ConfigError(ValueError):
    """A dotsection table exists but its values cannot be used."""


def load_config(search_path: Path) -> DotsectionConfig:
    """Return the settings that apply to files under `search_path`.

    Each directory from `search_path` up to the root is checked for
    `pyproject.toml` (``[tool.dotsection]``) and then `.dotsection.toml`
    (``[dotsection]`` or ``[tool.dotsection]``). The first table found wins,
    even an empty one. Unreadable or undecodable TOML files are passed over.
    Without any table the defaults are returned.

    Raises:
        ConfigError: If the winning table is not a mapping or holds an
            unknown key.

    Examples:
        load_config(Path("~/dotfiles").expanduser())
    """
    for directory in (search_path.resolve(), *search_path.resolve().parents):
        for filename, table_paths in CONFIG_CANDIDATES:
            config = _read_config_file(directory / filename, table_paths)
            if config is not None:
                return config
    return DotsectionConfig()


def _read_config_file(
    config_file: Path, table_paths: tuple[tuple[str, ...], ...]
) -> DotsectionConfig | None:
    if not config_file.is_file():
        return None

    try:
        with open(config_file, "rb") as stream:
            document = tomllib.load(stream)
    except (OSError, tomllib.TOMLDecodeError):
        return None

    for table_path in table_paths:
        found, table = _lookup_table(document, table_path)
        if found:
            return _config_from_table(table, config_file, ".".join(table_path))
    return None


def _lookup_table(document: dict, table_path: tuple[str, ...]) -> tuple[bool, object]:
    node: object = document
    for key in table_path:
        if not isinstance(node, dict) or key not in node:
            return False, None
        node = node[key]
    return True, node


def _config_from_table(table: object, config_file: Path, table_name: str) -> DotsectionConfig:
    if not isinstance(table, dict):
        raise ConfigError(f"`[{table_name}]` in {config_file} must be a table")
    try:
        return DotsectionConfig(**table)
    except TypeError as error:
        unknown = sorted(set(table) - set(DotsectionConfig.__dataclass_fields__))
        raise ConfigError(
            f"Unknown `[{table_name}]` keys in {config_file}: {', '.join(unknown)}"
        ) from error


def validate_config(config: DotsectionConfig) -> None:
    """Check field types and values of `config`.

    Raises:
        ConfigError: If a field has the wrong type, a prefix contains
            whitespace, or a numeric limit is out of range.
    """
    for key in ("default_prefix", "main_section"):
        value = getattr(config, key)
        if not isinstance(value, str):
            raise ConfigError(f"`{key}` must be a string")
        if _has_space(value):
            raise ConfigError(f"`{key}` must not contain whitespace")

    if not isinstance(config.prefixes, dict):
        raise ConfigError("`prefixes` must be a table of strings")
    for key, prefix in config.prefixes.items():
        if not isinstance(prefix, str) or not prefix or _has_space(prefix):
            raise ConfigError(f"`prefixes.{key}` must be a non-empty string without whitespace")

    ignore = config.ignore
    if not isinstance(ignore, list) or not all(isinstance(name, str) for name in ignore):
        raise ConfigError("`ignore` must be a list of strings")

    for key in ("create_targets", "allow_symlinks"):
        if not isinstance(getattr(config, key), bool):
            raise ConfigError(f"`{key}` must be a boolean")

    for key in ("max_file_size", "fetch_attempts"):
        value = getattr(config, key)
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"`{key}` must be an integer")
        if value < 1:
            raise ConfigError(f"`{key}` must be at least 1")

    backoff = config.fetch_backoff
    if isinstance(backoff, bool) or not isinstance(backoff, (int, float)):
        raise ConfigError("`fetch_backoff` must be a number")
    if backoff < 0:
        raise ConfigError("`fetch_backoff` must not be negative")


def _has_space(value: str) -> bool:
    return any(character.isspace() for character in value)


def apply_overrides(config: DotsectionConfig, **overrides: object) -> DotsectionConfig:
    """Return `config` with command-line values laid over it.

    None means "not given" and leaves the field alone; `config` itself is
    returned untouched when nothing was given.

    Examples:
        updated = apply_overrides(config, main_section="", create_targets=False)
    """
    given = {key: value for key, value in overrides.items() if value is not None}
    return replace(config, **given) if given else config


def build_config(search_path: Path, **overrides: object) -> DotsectionConfig:
    """Load the settings for `search_path`, apply `overrides` and validate.

    Raises:
        ConfigError: If loading or validation fails.
    """
    config = apply_overrides(load_config(search_path), **overrides)
    validate_config(config)
    return config
