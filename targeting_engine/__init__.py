"""Campaign targeting service: matches ad campaigns to app, country and OS over HTTP."""

__version__ = "0.1.0"