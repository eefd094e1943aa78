"""Upstream transports used by the forwarder."""
