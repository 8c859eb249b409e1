"""
strata - layered configuration aggregation.

Merges key/value data from files, the environment, secret stores and
centralized-config services into one case-insensitive hierarchical key
space, with a never-raising navigation façade, typed conversion, and
background reloading of remote sources.
"""

import importlib.metadata as _metadata

# Installed distribution version; the tuple form is canonical
_raw_version = _metadata.version("strata-config")
__version_info__: tuple[int, int, int] = tuple(int(x) for x in _raw_version.split(".")[:3])  # type: ignore[assignment]
__version__: str = ".".join(str(x) for x in __version_info__)

from strata.builder import ConfigurationBuilder  # noqa: E402
from strata.errors import (  # noqa: E402
    BuildError,
    EntryLoadError,
    FormatError,
    KeyTransformError,
    SourceLoadError,
    StrataError,
    UnsupportedShapeError,
)
from strata.mapping import FlatMapping  # noqa: E402
from strata.navigation import MISSING, ConfigNode, MissingNode  # noqa: E402
from strata.root import ConfigurationRoot  # noqa: E402

__all__ = [
    "MISSING",
    "BuildError",
    "ConfigNode",
    "ConfigurationBuilder",
    "ConfigurationRoot",
    "EntryLoadError",
    "FlatMapping",
    "FormatError",
    "KeyTransformError",
    "MissingNode",
    "SourceLoadError",
    "StrataError",
    "UnsupportedShapeError",
    "__version__",
    "__version_info__",
]
