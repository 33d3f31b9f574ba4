"""envgate: launch gate and idle reaper for subdomain-addressed environments."""

__version__ = "0.1.0"
