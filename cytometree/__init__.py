"""cytometree: unsupervised partitioning and annotation of cytometry events.

This package provides tools for:
- Growing a binary tree over events, one marker split at a time, using
  normal versus two-component mixture fits compared by AIC
- Annotating every leaf with a present/absent/undetermined marker code
  and merging leaves with identical codes
- Retrieving the populations of sought phenotypes
- Scoring a labeling against a reference with the F-measure

Example usage:
    >>> from cytometree.core import CytomeTreeEngine
    >>>
    >>> result = CytomeTreeEngine().run(events, minleaf=50, t=0.1)
    >>> result.phenotypes
"""

__version__ = "0.1.0"
