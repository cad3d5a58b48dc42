"""Defaults for the nixhash command line.

Settings come from built-in defaults, overridden by NIXHASH_<FIELD>
environment variables:

    NIXHASH_HASH_ALGO    md5 | sha1 | sha256 | sha512     (default sha256)
    NIXHASH_HASH_FORMAT  base16 | nix32 | base64 | sri    (default sri)
    NIXHASH_LOG_LEVEL    debug | info | warning | error   (default warning)
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, replace

from nixhash.hash import HashAlgorithm, HashFormat, parse_hash_format, parse_hash_type

LOG_LEVELS = ("debug", "info", "warning", "error", "critical")


@dataclass(frozen=True)
class Settings:
    hash_algo: HashAlgorithm = HashAlgorithm.SHA256
    hash_format: HashFormat = HashFormat.SRI
    log_level: str = "warning"


def _env(environ: Mapping[str, str], key: str) -> str | None:
    return environ.get(f"NIXHASH_{key.upper()}")


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from the defaults plus environment overrides.

    Raises BadHash for an unknown algorithm or format name, ValueError for
    an unknown log level.
    """
    if environ is None:
        environ = os.environ
    settings = Settings()

    if (value := _env(environ, "hash_algo")) is not None:
        settings = replace(settings, hash_algo=parse_hash_type(value))
    if (value := _env(environ, "hash_format")) is not None:
        settings = replace(settings, hash_format=parse_hash_format(value))
    if (value := _env(environ, "log_level")) is not None:
        level = value.lower()
        if level not in LOG_LEVELS:
            raise ValueError(f"unknown log level '{value}', expect one of {', '.join(LOG_LEVELS)}")
        settings = replace(settings, log_level=level)

    return settings
