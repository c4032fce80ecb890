"""LeadHub: multi-tenant lead management with per-company capability policy."""

__version__ = "0.1.0"
