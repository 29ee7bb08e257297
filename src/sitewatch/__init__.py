"""sitewatch: web-site and application-pool health monitor."""

__version__ = "0.1.0"
