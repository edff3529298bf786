"""Typed release configuration.

The configuration is read once at startup from an optional `.release.toml`
at the repository root and handed to every component. Nothing mutates it
afterwards.

Example `.release.toml`:

    [version]
    file = "VERSION"
    default_starting = "1.0.0"

    [build]
    tool = "maven"        # or "gradle"; empty means auto-detect
    skip_tests = true

    [publish]
    retry_count = 3
    timeout = 300

    [git]
    main_branch = "main"  # empty means auto-detect
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_bool, get_int, get_str, get_table

__all__ = [
    "BuildConfig",
    "CONFIG_FILE_NAME",
    "ConfigError",
    "GitConfig",
    "PublishConfig",
    "ReleaseConfig",
    "VersionConfig",
    "load_config",
]

CONFIG_FILE_NAME = ".release.toml"

KNOWN_BUILD_TOOLS = ("maven", "gradle")


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class VersionConfig:
    file: str = "VERSION"
    default_starting: str = "1.0.0"


@dataclass(frozen=True, slots=True)
class BuildConfig:
    # Empty means: detect from the manifest files present in the repository.
    tool: str = ""
    skip_tests: bool = True


@dataclass(frozen=True, slots=True)
class PublishConfig:
    """Release host retry policy.

    Attributes:
        retry_count: Attempts at creating the release with its attachment
        timeout: Per-request timeout in seconds
        create_retry_delay: Seconds between creation attempts
        upload_attempts: Attempts at a separate asset upload
        upload_retry_delay: Seconds between upload attempts
    """

    retry_count: int = 3
    timeout: int = 300
    create_retry_delay: float = 10.0
    upload_attempts: int = 3
    upload_retry_delay: float = 5.0


@dataclass(frozen=True, slots=True)
class GitConfig:
    main_branch: str = ""
    remote: str = "origin"


@dataclass(frozen=True, slots=True)
class ReleaseConfig:
    """Main configuration container."""

    version: VersionConfig = field(default_factory=VersionConfig)
    build: BuildConfig = field(default_factory=BuildConfig)
    publish: PublishConfig = field(default_factory=PublishConfig)
    git: GitConfig = field(default_factory=GitConfig)
    plugins_dir: str = "plugins"

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> ReleaseConfig:
        """Create a config from parsed TOML.

        Raises:
            ValueError: A key is present with the wrong type or an invalid value.
        """
        version = _table(data, "version")
        build = _table(data, "build")
        publish = _table(data, "publish")
        git = _table(data, "git")
        plugins = _table(data, "plugins")

        tool = _opt_str(build, "tool", "")
        if tool and tool not in KNOWN_BUILD_TOOLS:
            raise ValueError(f"build.tool must be one of {', '.join(KNOWN_BUILD_TOOLS)}: {tool}")

        return cls(
            version=VersionConfig(
                file=_opt_str(version, "file", "VERSION"),
                default_starting=_opt_str(version, "default_starting", "1.0.0"),
            ),
            build=BuildConfig(
                tool=tool,
                skip_tests=_opt_bool(build, "skip_tests", True),
            ),
            publish=PublishConfig(
                retry_count=_opt_positive_int(publish, "retry_count", 3),
                timeout=_opt_positive_int(publish, "timeout", 300),
                create_retry_delay=_opt_delay(publish, "create_retry_delay", 10.0),
                upload_attempts=_opt_positive_int(publish, "upload_attempts", 3),
                upload_retry_delay=_opt_delay(publish, "upload_retry_delay", 5.0),
            ),
            git=GitConfig(
                main_branch=_opt_str(git, "main_branch", ""),
                remote=_opt_str(git, "remote", "origin"),
            ),
            plugins_dir=_opt_str(plugins, "dir", "plugins"),
        )


def _table(data: Mapping[str, object], key: str) -> StrDict:
    if key not in data:
        return {}
    table = get_table(data, key)
    if table is None:
        raise ValueError(f"[{key}] must be a table")
    return table


def _opt_str(table: StrDict, key: str, default: str) -> str:
    if key not in table:
        return default
    if not isinstance(table[key], str):
        raise ValueError(f"{key} must be a string")
    return get_str(table, key) or default


def _opt_bool(table: StrDict, key: str, default: bool) -> bool:
    if key not in table:
        return default
    value = get_bool(table, key)
    if value is None:
        raise ValueError(f"{key} must be a boolean")
    return value


def _opt_positive_int(table: StrDict, key: str, default: int) -> int:
    if key not in table:
        return default
    value = get_int(table, key)
    if value is None or value < 1:
        raise ValueError(f"{key} must be a positive integer")
    return value


def _opt_delay(table: StrDict, key: str, default: float) -> float:
    if key not in table:
        return default
    value = table[key]
    if isinstance(value, bool) or not isinstance(value, int | float) or value < 0:
        raise ValueError(f"{key} must be a non-negative number")
    return float(value)


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    import tomllib

    try:
        data_obj: object = tomllib.loads(path.read_bytes().decode("utf-8"))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except OSError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))

    data = as_str_dict(data_obj)
    if data is None:
        return Err(ConfigError("Config root must be a TOML table", path=path))
    return Ok(data)


def load_config(path: Path) -> Result[ReleaseConfig, ConfigError]:
    """Load configuration, falling back to defaults when the file is absent.

    Args:
        path: Path to `.release.toml`

    Returns:
        Ok(ReleaseConfig) on success, Err(ConfigError) when the file exists but
        cannot be parsed or holds invalid values.
    """
    if not path.is_file():
        return Ok(ReleaseConfig())

    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(ReleaseConfig.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))
