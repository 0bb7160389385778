"""
cache_utils.py
--------------
Flat-file caching of expensive intermediate results (processed
quantification, group-comparison tables).

Objects are serialised with joblib inside a small envelope that records the
schema name, a schema version, the package version and the parameters the
result was computed with. A blob whose tag or parameters do not match what
the caller expects is treated as a cache miss, so stale results are
recomputed instead of being trusted.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable

import joblib

from .. import __version__

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


def _envelope(obj: Any, schema: str, params: dict | None) -> dict:
    return {
        "schema": schema,
        "schema_version": SCHEMA_VERSION,
        "protviz_version": __version__,
        "params": params,
        "payload": obj,
    }


def save_cache(obj: Any, path: str | Path, schema: str, params: dict | None = None) -> Path:
    """Serialise *obj* to *path* tagged with *schema*.

    The blob is written to a temporary file in the same directory and then
    renamed over *path*, so readers never see a partially written file.

    Parameters
    ----------
    obj : Any
        Object to persist (DataFrames, named tuples of DataFrames, ...).
    path : str or Path
        Destination file.
    schema : str
        Name describing the payload layout, e.g. ``"processed_data"``.
    params : dict, optional
        Parameters *obj* was computed with, compared again on load.

    Returns
    -------
    Path
        The path written.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    os.close(fd)
    try:
        joblib.dump(_envelope(obj, schema, params), tmp_name)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

    logger.info("Cached %s to %s", schema, path)
    return path


def load_cache(path: str | Path, schema: str, params: dict | None = None) -> Any | None:
    """Load a cached object, or return ``None`` on a miss.

    A miss is a missing file, a file that is not a protviz envelope, or an
    envelope whose schema name, schema version or package version differs.
    When *params* is given, an envelope computed with other parameters is a
    miss too. ``params=None`` accepts whatever the blob was computed with.
    """
    path = Path(path)
    if not path.exists():
        logger.info("No cache at %s", path)
        return None

    blob = joblib.load(path)
    if not isinstance(blob, dict) or "payload" not in blob:
        logger.warning("Ignoring cache %s: not a tagged cache file", path)
        return None

    expected = {
        "schema": schema,
        "schema_version": SCHEMA_VERSION,
        "protviz_version": __version__,
    }
    if params is not None:
        expected["params"] = params
    for key, value in expected.items():
        if blob.get(key) != value:
            logger.warning(
                "Ignoring cache %s: %s is %r, expected %r",
                path, key, blob.get(key), value,
            )
            return None

    logger.info("Loaded %s from cache %s", schema, path)
    return blob["payload"]


def cached(
    path: str | Path,
    schema: str,
    compute: Callable[[], Any],
    recompute: bool = False,
    params: dict | None = None,
) -> Any:
    """Return the cached result at *path* or compute and cache it.

    Parameters
    ----------
    path : str or Path
        Cache file.
    schema : str
        Schema tag the cached object must carry.
    compute : callable
        Zero-argument function producing the result on a miss.
    recompute : bool, optional
        Ignore any existing cache and overwrite it.
    params : dict, optional
        Parameters of *compute*; a cache written with different ones is
        recomputed.
    """
    if not recompute:
        hit = load_cache(path, schema, params)
        if hit is not None:
            return hit

    result = compute()
    save_cache(result, path, schema, params)
    return result
