"""Multi-tenant authentication, session and authorization core for the CRM backend."""

__version__ = "1.0.0"
