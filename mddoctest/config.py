"""Configuration loading for mddoctest (.mddoctest.yml or mddoctest_setup.py)."""

from __future__ import annotations

import importlib.util
import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

import yaml

from .logging import get_logger
from .runtime.babel import DEFAULT_PRESETS
from .sandbox import RESERVED_NAMES, JsExpression, to_js

CONFIG_FILENAMES = (".mddoctest.yml", ".mddoctest.yaml", "mddoctest_setup.py")
DEFAULT_INCLUDE = ("*.md", "*.markdown")

_PLACEHOLDER = re.compile(r"\$(\d+)")
_SETUP_KEYS = (
    "globals",
    "require",
    "regex_require",
    "before_each",
    "transpile",
    "include",
    "exclude",
)

logger = get_logger("config")


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class TranspileConfig:
    """Whether and how snippets are transpiled before evaluation."""

    enabled: bool = True
    presets: List[str] = field(default_factory=lambda: list(DEFAULT_PRESETS))


@dataclass
class DoctestConfig:
    """Settings shared by every snippet in a run."""

    root: Path = field(default_factory=Path.cwd)
    globals: Dict[str, Any] = field(default_factory=dict)
    require: Dict[str, Any] = field(default_factory=dict)
    regex_require: Dict[str, Callable[..., Any]] = field(default_factory=dict)
    before_each: Optional[Union[Callable[[], None], JsExpression]] = None
    transpile: TranspileConfig = field(default_factory=TranspileConfig)
    include: List[str] = field(default_factory=lambda: list(DEFAULT_INCLUDE))
    exclude: List[str] = field(default_factory=list)


def load_config(config_path: Path) -> DoctestConfig:
    """Load configuration from a directory, a YAML file or a Python setup module."""
    config_file = _resolve_config_path(Path(config_path))
    if config_file is None:
        return DoctestConfig(root=Path(config_path).expanduser().resolve())

    root = config_file.parent
    logger.debug("Loading configuration from %s", config_file)
    if config_file.suffix == ".py":
        data = _read_setup_module(config_file)
    else:
        data = _read_yaml(config_file)
    return build_config(data, root=root)


def build_config(data: Mapping[str, Any], *, root: Path) -> DoctestConfig:
    """Validate raw settings and turn them into a :class:`DoctestConfig`."""
    existing = data.get("config")
    if isinstance(existing, DoctestConfig):
        existing.root = root
        _check_sandbox_values(existing.globals, "globals")
        _check_sandbox_values(existing.require, "require")
        existing.before_each = _as_hook(existing.before_each)
        return existing

    globals_ = _as_dict(data.get("globals"), "globals")
    require = _as_dict(data.get("require"), "require")
    _check_sandbox_values(globals_, "globals")
    _check_sandbox_values(require, "require")

    regex_require: Dict[str, Callable[..., Any]] = {}
    for pattern, handler in _as_dict(data.get("regex_require"), "regex_require").items():
        try:
            re.compile(pattern)
        except re.error as exc:
            raise ConfigError(f"Invalid regex_require pattern {pattern!r}: {exc}") from exc
        regex_require[pattern] = _as_factory(pattern, handler)

    before_each = _as_hook(data.get("before_each"))

    include = _as_str_list(data.get("include")) or list(DEFAULT_INCLUDE)

    return DoctestConfig(
        root=root,
        globals=globals_,
        require=require,
        regex_require=regex_require,
        before_each=before_each,
        transpile=_as_transpile(data.get("transpile")),
        include=include,
        exclude=_as_str_list(data.get("exclude")),
    )


def template_factory(template: str) -> Callable[..., JsExpression]:
    """Build a regex_require factory from a JS expression template.

    ``$0`` is replaced by the full match and ``$1``... by the capture groups, each as a
    JavaScript string literal.
    """

    def factory(*groups: Optional[str]) -> JsExpression:
        def substitute(match: re.Match[str]) -> str:
            index = int(match.group(1))
            if index >= len(groups):
                raise ConfigError(f"Template {template!r} refers to missing group ${index}")
            return json.dumps(groups[index])

        return JsExpression(_PLACEHOLDER.sub(substitute, template))

    return factory


def _resolve_config_path(config_path: Path) -> Optional[Path]:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        for name in CONFIG_FILENAMES:
            candidate = config_path / name
            if candidate.exists():
                return candidate.resolve()
        return None
    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")
    return config_path.resolve()


def _loader_for(root: Path) -> type:
    class ConfigLoader(yaml.SafeLoader):
        """Safe loader that understands the ``!js`` and ``!js-file`` tags."""

    def construct_js(loader: yaml.SafeLoader, node: yaml.Node) -> JsExpression:
        return JsExpression(str(loader.construct_scalar(node)))

    def construct_js_file(loader: yaml.SafeLoader, node: yaml.Node) -> JsExpression:
        path = root / str(loader.construct_scalar(node))
        try:
            return JsExpression.from_commonjs(path)
        except OSError as exc:
            raise ConfigError(f"Cannot read module file {path}: {exc}") from exc

    ConfigLoader.add_constructor("!js", construct_js)
    ConfigLoader.add_constructor("!js-file", construct_js_file)
    return ConfigLoader


def _read_yaml(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.load(text, Loader=_loader_for(path.parent))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"{path.name} must contain a mapping at the root")
    return loaded


def _read_setup_module(path: Path) -> Dict[str, Any]:
    spec = importlib.util.spec_from_file_location("mddoctest_setup", path)
    if spec is None or spec.loader is None:
        raise ConfigError(f"Cannot import setup module {path}")
    module: ModuleType = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        raise ConfigError(f"Failed to import {path.name}: {exc}") from exc
    namespace = vars(module)
    data = {key: namespace[key] for key in _SETUP_KEYS if key in namespace}
    if "config" in namespace:
        data["config"] = namespace["config"]
    return data


def _check_sandbox_values(values: Mapping[str, Any], section: str) -> None:
    for name, value in values.items():
        try:
            to_js(value)
        except TypeError as exc:
            raise ConfigError(f"{section}.{name}: {exc}") from exc
        if section == "globals" and name in RESERVED_NAMES:
            logger.warning("Global %r shadows a helper the sandbox provides", name)


def _as_factory(pattern: str, handler: Any) -> Callable[..., Any]:
    if isinstance(handler, JsExpression):
        return template_factory(handler.source)
    if isinstance(handler, str):
        return template_factory(handler)
    if callable(handler):
        return handler
    raise ConfigError(
        f"regex_require[{pattern!r}] must be a JS expression template or a callable"
    )


def _as_hook(value: Any) -> Optional[Union[Callable[[], None], JsExpression]]:
    if value is None or isinstance(value, JsExpression):
        return value
    if isinstance(value, str):
        return JsExpression(value)
    if callable(value):
        return value
    raise ConfigError(
        "before_each must be a JavaScript function (source text or !js) or a Python callable"
    )


def _as_transpile(value: Any) -> TranspileConfig:
    if value is None:
        return TranspileConfig()
    if isinstance(value, TranspileConfig):
        return value
    if isinstance(value, bool):
        return TranspileConfig(enabled=value)
    if isinstance(value, Mapping):
        enabled = value.get("enabled", True)
        if not isinstance(enabled, bool):
            raise ConfigError("transpile.enabled must be a boolean")
        presets = _as_str_list(value.get("presets")) or list(DEFAULT_PRESETS)
        return TranspileConfig(enabled=enabled, presets=presets)
    raise ConfigError("transpile must be a boolean or a mapping")


def _as_dict(value: Any, section: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"{section} must be a mapping")
    return {str(key): item for key, item in value.items()}


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "CONFIG_FILENAMES",
    "ConfigError",
    "DoctestConfig",
    "TranspileConfig",
    "build_config",
    "load_config",
    "template_factory",
]
