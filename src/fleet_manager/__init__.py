"""fleet-manager: per-node agents and a fan-out controller for a query engine cluster."""

__version__ = "0.4.0"
