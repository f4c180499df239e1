"""koro - a personal agent core with durable memory and auditable actions."""

__version__ = "0.1.0"
