"""
normalizer.py - Raw File Name to Canonical Category

Maps a source file name onto the output bucket it feeds:

    Publicite.TXT  ->  raw "publicite"  ->  canonical "ads"
    child.txt      ->  excluded (never read)
    malware.txt    ->  canonical "malware" (unmapped, passes through)
"""
from __future__ import annotations

from typing import NamedTuple

from combiner.config import CombinerConfig


class CategoryAssignment(NamedTuple):
    """
    Where a raw file's lines go.

    Attributes:
        category: Canonical category name (raw key when excluded)
        included: False if the file is on the exclusion list
    """
    category: str
    included: bool


def raw_category(file_name: str, list_suffix: str = ".txt") -> str:
    """
    Lowercase the name and strip the list suffix.

    Example:
        >>> raw_category("Publicite.TXT")
        'publicite'
        >>> raw_category("domains")
        'domains'
    """
    name = file_name.lower()
    if name.endswith(list_suffix) and len(name) > len(list_suffix):
        name = name[: -len(list_suffix)]
    return name


def normalize_category(file_name: str, config: CombinerConfig) -> CategoryAssignment:
    """
    Assign a raw file to its canonical category.

    Args:
        file_name: Base name of the source file
        config: Run configuration with exclusions and merge table

    Returns:
        CategoryAssignment; included is False for excluded files
    """
    key = raw_category(file_name, config.list_suffix)
    if config.is_excluded(file_name):
        return CategoryAssignment(key, False)
    return CategoryAssignment(config.category_merges.get(key, key), True)
