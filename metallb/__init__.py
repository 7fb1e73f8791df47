"""Configuration parsing, native BGP sessions and FRR status parsing for a bare-metal load balancer."""

__version__ = "0.1.0"