"""CRE news pipeline: feed collection, AI classification and subscriber digests."""

__version__ = "1.0.0"
