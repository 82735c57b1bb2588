import os
import re
from collections.abc import Iterable

from .types import KeyConfig

_TRAILING_NUMBER = re.compile(r"(\d+)$")


def _parse_env_file(env_path: str) -> dict[str, str]:
    """Parse a simple .env file into a dict without modifying os.environ.

    Supports basic KEY=VALUE pairs, ignoring comments and blank lines.
    Surrounding single/double quotes are stripped if present.
    """
    values: dict[str, str] = {}
    try:
        with open(env_path) as f:
            for raw_line in f:
                line = raw_line.strip()
                if not line or line.startswith("#"):
                    continue
                if line.startswith("export "):
                    line = line[len("export ") :]
                if "=" not in line:
                    continue
                key, val = line.split("=", 1)
                key = key.strip()
                val = val.strip().strip('"').strip("'")
                if key:
                    values[key] = val
    except FileNotFoundError:
        # A missing .env is normal in deployed environments
        pass
    return values


def _natural_order(var: str, prefix: str) -> tuple[int, str]:
    # GEMINI_API_KEY sorts before GEMINI_API_KEY_2 ... GEMINI_API_KEY_10
    suffix = var[len(prefix) :]
    if not suffix.strip("_"):
        return (0, var)
    m = _TRAILING_NUMBER.search(suffix)
    return (int(m.group(1)) if m else 1 << 30, var)


def _expand(name: str, token: str, split_commas: bool) -> list[KeyConfig]:
    token = token.strip()
    if not token:
        return []
    if split_commas and "," in token:
        parts = [t.strip() for t in token.split(",") if t.strip()]
        return [KeyConfig(name=f"{name}_{idx + 1}", token=part) for idx, part in enumerate(parts)]
    return [KeyConfig(name=name, token=token)]


def load_keyconfigs_from_env(
    names: Iterable[str] | None = None,
    prefix: str | None = None,
    env_path: str | None = None,
    **kwargs,
) -> list[KeyConfig]:
    """Create an ordered list of KeyConfig objects from environment variables.

    - If 'names' is provided, look up each env var in the given order; unset or empty
        variables are skipped.
    - If 'prefix' is provided, every env var starting with the prefix is used, ordered by
        its trailing number (``GEMINI_API_KEY``, ``GEMINI_API_KEY_2``, ...).
    - If both are provided, explicit names come first, then prefix matches.
    - If 'env_path' is provided, variables from the .env file fill in anything the process
        environment lacks. Values in the actual environment take precedence.
    - The same token configured twice is only kept once (first occurrence wins).

    kwargs keywords:
    to_lower_names: make names lowercase (default False)
    split_commas: split comma-separated values (default True)
    strip_prefix: strip prefix from names (default False)
    """
    file_env = _parse_env_file(env_path) if env_path else {}
    env_map: dict[str, str] = {**file_env, **os.environ}

    split_commas = kwargs.get("split_commas", True)
    to_lower_names = kwargs.get("to_lower_names", False)
    strip_prefix = kwargs.get("strip_prefix", False)

    found: list[KeyConfig] = []
    seen_vars: set[str] = set()

    for var in names or ():
        seen_vars.add(var)
        token = env_map.get(var)
        if not token:
            continue
        cfg_name = var.lower() if to_lower_names else var
        found.extend(_expand(cfg_name, token, split_commas))

    if prefix:
        matches = [v for v in env_map if v.startswith(prefix) and v not in seen_vars]
        for var in sorted(matches, key=lambda v: _natural_order(v, prefix)):
            token = env_map[var]
            if not token:
                continue
            name_part = (var[len(prefix) :].lstrip("_") or var) if strip_prefix else var
            cfg_name = name_part.lower() if to_lower_names else name_part
            found.extend(_expand(cfg_name, token, split_commas))

    results: list[KeyConfig] = []
    tokens: set[str] = set()
    for cfg in found:
        if cfg.token in tokens:
            continue
        tokens.add(cfg.token)
        results.append(cfg)
    return results


def env_number(name: str, default: float, env_path: str | None = None) -> float:
    """Read a numeric setting from the environment (or .env), falling back to default."""
    raw = os.environ.get(name)
    if raw is None and env_path:
        raw = _parse_env_file(env_path).get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e
