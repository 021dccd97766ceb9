"""
config.py - Run Configuration for the Category Combiner

Holds the exclusion denylist, the category merge table, the partition size
threshold and the list sources. Everything lives in one immutable
CombinerConfig so the tables can be swapped for fixtures in tests or loaded
from a JSON file by the operator.

Config file format (all keys optional, absent keys keep the defaults):

    {
        "exclusions": ["child.txt", "special.txt"],
        "category_merges": {"publicite": "ads"},
        "max_partition_bytes": 94371840,
        "split_output": true,
        "list_suffix": ".txt",
        "sources": [
            {"name": "ut1", "kind": "ut1", "url": "https://..."},
            {"name": "blp", "kind": "github", "url": "https://api.github.com/..."}
        ]
    }
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any, Final, Iterable, Mapping, NamedTuple


# =============================================================================
# DEFAULTS
# =============================================================================

UT1_URL: Final[str] = "https://dsi.ut-capitole.fr/blacklists/download/all.tar.gz"
BLP_API: Final[str] = "https://api.github.com/repos/blocklistproject/Lists/contents/"
FM_API: Final[str] = "https://api.github.com/repos/FikesMedia/fm-if-categories/contents/CustomList"

#: Split threshold for one output partition (90 MiB of domain lines)
DEFAULT_MAX_PARTITION_BYTES: Final[int] = 90 * 1024 * 1024

DEFAULT_LIST_SUFFIX: Final[str] = ".txt"

SOURCE_KINDS: Final[frozenset[str]] = frozenset({"ut1", "github"})

#: Raw file names that never reach the output.
#: Mostly UT1 whitelists, meta lists and categories that are not blocking lists.
DEFAULT_EXCLUSIONS: Final[frozenset[str]] = frozenset({
    "agressif.txt",
    "arjel.txt",
    "child.txt",
    "list_blanche.txt",
    "list_bu.txt",
    "tricheur.txt",
    "tricheur_pix.txt",
    "update.txt",
    "reaffected.txt",
    "associations_religieuses.txt",
    "sect.txt",
    "exceptions_liste_bu.txt",
    "examen_pix.txt",
    "everything.txt",
    "special.txt",
})

#: Raw category -> canonical category
DEFAULT_CATEGORY_MERGES: Final[Mapping[str, str]] = MappingProxyType({
    "publicite": "ads",
    "drogue": "drugs",
    "doh": "DNS_Over_HTTPS",
    "gaming": "games",
    "x": "twitter",
    "adult": "porn",
})


class ConfigError(ValueError):
    """Raised when a configuration file or value is unusable."""


class SourceSpec(NamedTuple):
    """
    One list source fetched into its own directory.

    Attributes:
        name: Directory name under the work directory
        kind: "ut1" (tar.gz archive) or "github" (contents API listing)
        url: Archive URL or contents API URL
    """
    name: str
    kind: str
    url: str


DEFAULT_SOURCES: Final[tuple[SourceSpec, ...]] = (
    SourceSpec("ut1", "ut1", UT1_URL),
    SourceSpec("blp", "github", BLP_API),
    SourceSpec("fm", "github", FM_API),
)


# =============================================================================
# CONFIG OBJECT
# =============================================================================

@dataclass(frozen=True)
class CombinerConfig:
    """Immutable settings for one combiner run."""
    exclusions: frozenset[str] = DEFAULT_EXCLUSIONS
    category_merges: Mapping[str, str] = field(default_factory=lambda: DEFAULT_CATEGORY_MERGES)
    max_partition_bytes: int = DEFAULT_MAX_PARTITION_BYTES
    split_output: bool = True
    list_suffix: str = DEFAULT_LIST_SUFFIX
    sources: tuple[SourceSpec, ...] = field(default=DEFAULT_SOURCES)

    def __post_init__(self) -> None:
        # Lookups are done on lowercased names, so store the tables that way.
        object.__setattr__(
            self, "exclusions", frozenset(name.lower() for name in self.exclusions)
        )
        object.__setattr__(
            self,
            "category_merges",
            MappingProxyType({k.lower(): v for k, v in self.category_merges.items()}),
        )
        object.__setattr__(self, "list_suffix", self.list_suffix.lower())
        object.__setattr__(self, "sources", tuple(self.sources))

        if self.max_partition_bytes <= 0:
            raise ConfigError(
                f"max_partition_bytes must be positive, got {self.max_partition_bytes}"
            )
        if not self.list_suffix:
            raise ConfigError("list_suffix must not be empty")
        for source in self.sources:
            if source.kind not in SOURCE_KINDS:
                raise ConfigError(f"Unknown source kind {source.kind!r} for {source.name!r}")

    def is_excluded(self, file_name: str) -> bool:
        """Exact, case-insensitive match against the exclusion set."""
        return file_name.lower() in self.exclusions

    def with_overrides(self, **overrides: Any) -> CombinerConfig:
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self


# =============================================================================
# LOADING
# =============================================================================

def _parse_sources(raw: Iterable[Any]) -> tuple[SourceSpec, ...]:
    sources = []
    for entry in raw:
        if not isinstance(entry, dict):
            raise ConfigError(f"Source entry must be an object, got {entry!r}")
        try:
            sources.append(SourceSpec(str(entry["name"]), str(entry["kind"]), str(entry["url"])))
        except KeyError as e:
            raise ConfigError(f"Source entry missing key {e}: {entry!r}") from e
    return tuple(sources)


def config_from_dict(data: Mapping[str, Any]) -> CombinerConfig:
    """
    Build a config from a parsed JSON object.

    Args:
        data: Mapping with any of the CombinerConfig keys

    Returns:
        CombinerConfig with defaults for absent keys

    Raises:
        ConfigError: On unknown keys or wrongly typed values
    """
    known = {
        "exclusions", "category_merges", "max_partition_bytes",
        "split_output", "list_suffix", "sources",
    }
    unknown = set(data) - known
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")

    kwargs: dict[str, Any] = {}
    if "exclusions" in data:
        if not isinstance(data["exclusions"], list):
            raise ConfigError("exclusions must be a list of file names")
        kwargs["exclusions"] = frozenset(str(name) for name in data["exclusions"])
    if "category_merges" in data:
        if not isinstance(data["category_merges"], dict):
            raise ConfigError("category_merges must be an object")
        kwargs["category_merges"] = {str(k): str(v) for k, v in data["category_merges"].items()}
    if "max_partition_bytes" in data:
        value = data["max_partition_bytes"]
        if not isinstance(value, int) or isinstance(value, bool):
            raise ConfigError("max_partition_bytes must be an integer")
        kwargs["max_partition_bytes"] = value
    if "split_output" in data:
        if not isinstance(data["split_output"], bool):
            raise ConfigError("split_output must be true or false")
        kwargs["split_output"] = data["split_output"]
    if "list_suffix" in data:
        kwargs["list_suffix"] = str(data["list_suffix"])
    if "sources" in data:
        if not isinstance(data["sources"], list):
            raise ConfigError("sources must be a list")
        kwargs["sources"] = _parse_sources(data["sources"])

    return CombinerConfig(**kwargs)


def load_config(path: str | Path | None) -> CombinerConfig:
    """Load a JSON config file, or return the defaults when path is None."""
    if path is None:
        return CombinerConfig()

    config_path = Path(path)
    try:
        with open(config_path, encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        raise ConfigError(f"Could not load config {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config {config_path} must contain a JSON object")
    return config_from_dict(data)
