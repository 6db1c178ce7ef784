"""stakerank - stake-weighted curation and ranking of identifiers."""

__version__ = "0.1.0"
