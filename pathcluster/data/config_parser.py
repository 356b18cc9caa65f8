"""CLUSTER.CFG parser and writer.

The clustering run is configured with a Fortran-style namelist::

    &CLUSTER
     NCLUST = 8,
     INITOPT = 3,
     POSTPROC = 1,
     NORM = 0,
     NTHREADS = 8,
     MAXITER = 20,
     SEED = 42,
     ISPBF = .FALSE.,
     VARTOR = 0.999,
     CACHEDIR = '../dataset',
     /

Unlike a lenient namelist reader, unknown keys and unparseable values are
rejected: a misconfigured run must fail before any clustering starts.
Every line must consist entirely of `KEY = VALUE` items, and a value that
contains `/` must be quoted, since an unquoted `/` ends the namelist.
"""

from __future__ import annotations

import re
from pathlib import Path

from pathcluster.core.models import (
    ClusteringConfig,
    ConfigParseError,
    ConfigurationError,
)

# Mapping from CLUSTER.CFG namelist keys to ClusteringConfig field names + types
_CLUSTER_KEY_MAP: dict[str, tuple[str, type]] = {
    "NCLUST": ("n_clusters", int),
    "INITOPT": ("initialization", int),
    "POSTPROC": ("post_processing", int),
    "NORM": ("metric", int),
    "NTHREADS": ("num_workers", int),
    "MAXITER": ("max_iterations", int),
    "SEED": ("seed", int),
    "ISPBF": ("is_pbf", bool),
    "VARTOR": ("variance_threshold", float),
    "CACHEDIR": ("cache_dir", str),
}

_ITEM_RE = re.compile(r"\s*(\w+)\s*=\s*('[^']*'|\"[^\"]*\"|[^,'\"/\s]+)\s*(?:,|$)")
# Namelist terminator at the end of a line, e.g. "NCLUST = 4, /"
_END_RE = re.compile(r"(^|[\s,])/\s*$")


def _convert(key: str, raw: str, field_type: type, line_number: int):
    value = raw.strip().rstrip(",").strip()
    if field_type is bool:
        # Fortran booleans: .TRUE., .FALSE., T, F, 1, 0
        token = value.upper().strip(".")
        if token in ("TRUE", "T", "1"):
            return True
        if token in ("FALSE", "F", "0"):
            return False
        raise ConfigParseError(
            f"Cannot parse logical '{value}' for {key}",
            line_number=line_number,
            expected=".TRUE. or .FALSE.",
        )
    if field_type is str:
        return value.strip("'\"")
    try:
        number = float(value)
    except ValueError:
        raise ConfigParseError(
            f"Cannot parse {field_type.__name__} '{value}' for {key}",
            line_number=line_number,
            expected=field_type.__name__,
        ) from None
    if field_type is int:
        if not number.is_integer():
            raise ConfigParseError(
                f"Expected an integer for {key}, got '{value}'",
                line_number=line_number,
                expected="integer",
            )
        return int(number)
    return number


def parse_cluster_cfg(text: str) -> dict:
    """Parse a CLUSTER.CFG (``&CLUSTER`` namelist) into raw field values.

    Parameters
    ----------
    text : str
        Full text content of the CLUSTER.CFG file.

    Returns
    -------
    dict
        Key-value pairs using ClusteringConfig field names.

    Raises
    ------
    ConfigParseError
        If the block header is missing, a key is unknown, or a value does
        not parse.
    """
    if not re.search(r"&CLUSTER\b", text, flags=re.IGNORECASE):
        raise ConfigParseError("Missing &CLUSTER namelist header", line_number=1,
                               expected="&CLUSTER")

    result: dict = {}
    for line_number, line in enumerate(text.splitlines(), start=1):
        # Strip block markers and trailing comments
        content = line.split("!", 1)[0]
        content = re.sub(r"&CLUSTER\b", "", content, flags=re.IGNORECASE)
        content = re.sub(r"&END\b", "", content, flags=re.IGNORECASE)
        content = _END_RE.sub(r"\1", content)
        if not content.strip():
            continue

        # Every character must belong to a KEY = VALUE item
        pos = 0
        pairs = []
        while content[pos:].strip():
            match = _ITEM_RE.match(content, pos)
            if match is None:
                raise ConfigParseError(
                    f"Cannot parse '{content[pos:].strip()}'",
                    line_number=line_number,
                    expected="KEY = VALUE, with '/' only inside a quoted string",
                )
            pairs.append(match.groups())
            pos = match.end()

        for key_raw, val_raw in pairs:
            key = key_raw.strip().upper()
            if key not in _CLUSTER_KEY_MAP:
                raise ConfigParseError(
                    f"Unknown CLUSTER.CFG key '{key}'",
                    line_number=line_number,
                    expected=", ".join(_CLUSTER_KEY_MAP),
                )
            field_name, field_type = _CLUSTER_KEY_MAP[key]
            result[field_name] = _convert(key, val_raw, field_type, line_number)

    return result


def parse_config(text: str) -> ClusteringConfig:
    """Parse CLUSTER.CFG text into a validated ClusteringConfig.

    Raises
    ------
    ConfigurationError
        On any parsing error or invalid selector value.
    """
    config = ClusteringConfig(**parse_cluster_cfg(text))
    return config.validate()


def load_config(path: str | Path) -> ClusteringConfig:
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"Configuration file not found: {path}")
    return parse_config(path.read_text())


# ---------------------------------------------------------------------------
# CLUSTER.CFG writer
# ---------------------------------------------------------------------------

# Reverse mapping: ClusteringConfig field name → CLUSTER.CFG key
_FIELD_TO_CLUSTER_KEY: dict[str, str] = {v[0]: k for k, v in _CLUSTER_KEY_MAP.items()}


def write_cluster_cfg(config: ClusteringConfig) -> str:
    """Generate a CLUSTER.CFG namelist from a ClusteringConfig.

    Fields left as ``None`` (seed, cache directory) are omitted.
    """
    lines: list[str] = ["&CLUSTER"]
    for field_name, key in _FIELD_TO_CLUSTER_KEY.items():
        value = getattr(config, field_name)
        if value is None:
            continue
        if isinstance(value, bool):
            lines.append(f" {key} = {'.TRUE.' if value else '.FALSE.'},")
        elif isinstance(value, int):
            lines.append(f" {key} = {int(value)},")
        elif isinstance(value, float):
            lines.append(f" {key} = {value},")
        else:
            lines.append(f" {key} = '{value}',")
    lines.append(" /")
    return "\n".join(lines) + "\n"
