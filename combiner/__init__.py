"""
combiner package - Category Blocklist Combiner

Modules:
    config: Exclusion set, category merge table, partition size, sources
    normalizer: Raw file name to canonical category
    aggregator: Deduplicate domains into category buckets
    writer: Size-bounded 0.0.0.0 partition output
    line_merger: Union same-named files from two directories
    fetcher: Download UT1 archive and GitHub list directories
    pipeline: Main processing pipeline
"""

__version__ = "1.0.0"
