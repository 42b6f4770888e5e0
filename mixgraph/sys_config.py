"""sys.config synthesis with optional Config.Provider wiring."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .config_merge import merge_app_config, merge_files
from .errors import ConfigError, TermParseError
from .term_text import ELIXIR, ERLANG, format_term, parse_term
from .terms import Atom, is_keyword, plain_string

logger = logging.getLogger(__name__)

DEFAULT_RUNTIME_PATH = '{:system, "RELEASE_ROOT", "/releases/0.1.0/runtime.exs"}'

BOOT_INJECTION = (
    "%% Boot script injection for Config.Provider.boot()\n"
    "%% Add this instruction after elixir application starts:\n"
    "{apply, {'Elixir.Config.Provider', boot, []}}\n"
)

ELIXIR_APP = Atom("elixir")


@dataclass
class RuntimeOptions:
    """Runtime configuration provider settings."""

    runtime_path: str | tuple | None = None  # None selects DEFAULT_RUNTIME_PATH
    env: str = "prod"
    reboot_after_config: bool = False
    prune_after_boot: bool = True


@dataclass
class SysConfig:
    """Synthesized sys.config term and the files rendered from it."""

    term: list
    sys_config: bytes
    boot_injection: bytes | None = None


def parse_runtime_path(text: str) -> str | tuple:
    """Read a runtime path template.

    ``{:system, "VAR", "/fallback"}`` becomes the tagged tuple; anything else
    is kept as a literal path.
    """
    if not text.startswith("{:system"):
        return text
    try:
        parsed = parse_term(text, ELIXIR)
    except TermParseError:
        logger.warning("Cannot parse runtime path %r, using it literally", text)
        return text
    if (
        isinstance(parsed, tuple)
        and len(parsed) == 3
        and parsed[0] == Atom("system")
        and plain_string(parsed[1]) is not None
        and plain_string(parsed[2]) is not None
    ):
        return (Atom("system"), parsed[1], parsed[2])
    return text


def provider_init(options: RuntimeOptions) -> dict:
    """The ``Config.Provider`` struct a release boots with."""
    runtime_path = options.runtime_path
    if runtime_path is None:
        runtime_path = parse_runtime_path(DEFAULT_RUNTIME_PATH)
    elif isinstance(runtime_path, str):
        runtime_path = parse_runtime_path(runtime_path)

    reader_options = [
        (Atom("env"), Atom(options.env)),
        (Atom("target"), Atom("host")),
        (Atom("imports"), Atom("disabled")),
    ]
    return {
        Atom("__struct__"): Atom("Elixir.Config.Provider"),
        Atom("providers"): [(Atom("Elixir.Config.Reader"), (runtime_path, reader_options))],
        Atom("config_path"): (Atom("system"), "RELEASE_SYS_CONFIG", ".config"),
        Atom("extra_config"): [],
        Atom("reboot_system_after_config"): options.reboot_after_config,
        Atom("prune_runtime_sys_config_after_boot"): options.prune_after_boot,
        Atom("validate_compile_env"): False,
    }


def _update_app(config: list, app: Atom, default: list, update) -> list:
    """Replace the first ``app`` entry in place, or append ``default``."""
    result = list(config)
    for index, (key, value) in enumerate(result):
        if key == app:
            result[index] = (key, update(value))
            return result
    result.append((app, default))
    return result


def with_config_provider(config: list, options: RuntimeOptions) -> list:
    """Prepend ``config_provider_init`` to the ``elixir`` application config."""
    entry = (Atom("config_provider_init"), provider_init(options))
    return _update_app(config, ELIXIR_APP, [entry], lambda existing: [entry, *existing])


def parse_extra_config(text: str) -> list:
    """Parse an Elixir keyword list given on the command line.

    Raises:
        ConfigError: If the text is not a literal keyword list
    """
    try:
        parsed = parse_term(text, ELIXIR)
    except TermParseError as exc:
        raise ConfigError(f"Cannot parse config {text!r}: {exc}") from exc
    if not is_keyword(parsed):
        raise ConfigError(f"Config {text!r} is not a keyword list")
    return parsed


def apply_extra_config(config: list, extras: Iterable[tuple[str, str]]) -> list:
    """Merge ``(app, keyword-list text)`` overrides into a merged config."""
    for app, text in extras:
        parsed = parse_extra_config(text)
        config = _update_app(
            config, Atom(app), parsed, lambda existing, new=parsed: merge_app_config(existing, new)
        )
    return config


def render_sys_config(term: list, runtime_config: bool) -> bytes:
    """Render the sys.config file contents."""
    header = f"%% coding: utf-8\n%% RUNTIME_CONFIG={'true' if runtime_config else 'false'}\n"
    return (header + format_term(term) + ".\n").encode("utf-8")


def synthesize(merged_config: list, runtime_opts: RuntimeOptions | None = None) -> SysConfig:
    """Build the sys.config term and its rendered artifacts.

    Args:
        merged_config: Keyword list of ``(app, config)`` pairs
        runtime_opts: Enables the runtime configuration provider when given

    Returns:
        SysConfig; ``boot_injection`` is set only with runtime options
    """
    if runtime_opts is None:
        return SysConfig(term=merged_config, sys_config=render_sys_config(merged_config, False))
    term = with_config_provider(merged_config, runtime_opts)
    return SysConfig(
        term=term,
        sys_config=render_sys_config(term, True),
        boot_injection=BOOT_INJECTION.encode("utf-8"),
    )


def read_sys_config(text: str) -> list:
    """Read a rendered sys.config back into its term."""
    term = parse_term(text, ERLANG)
    if not isinstance(term, list):
        raise ConfigError("sys.config does not contain a list")
    return term


def build_sys_config(
    compile_configs: Iterable[str | Path],
    extra: Iterable[tuple[str, str]] = (),
    runtime_opts: RuntimeOptions | None = None,
) -> SysConfig:
    """Merge compile-time fragments and extra config, then synthesize."""
    merged = merge_files(compile_configs)
    merged = apply_extra_config(merged, extra)
    return synthesize(merged, runtime_opts)


def write_sys_config(result: SysConfig, output: str | Path, boot_injection: str | Path | None = None) -> None:
    """Write sys.config and, when requested and available, the boot injection file.

    Raises:
        ConfigError: If an output file cannot be written
    """
    output = Path(output)
    try:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(result.sys_config)
        if boot_injection is not None:
            if result.boot_injection is None:
                logger.warning("Runtime config is disabled, not writing %s", boot_injection)
            else:
                Path(boot_injection).write_bytes(result.boot_injection)
    except OSError as exc:
        raise ConfigError(f"Cannot write sys.config output: {exc}") from exc
