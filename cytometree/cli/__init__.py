"""Command-line interface for cytometree.

Example Usage
-------------
    # From command line:
    cytometree --help
    cytometree build --input events.csv --out results/
    cytometree retrieve --phenotypes results/cytometree_phenotypes.csv --query "CD4+"
"""

from .main import cli, main

__all__ = [
    "cli",
    "main",
]
