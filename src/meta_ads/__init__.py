"""Meta Ads CLI - read-only command line access to the Meta Marketing API."""

__version__ = "1.0.0"
