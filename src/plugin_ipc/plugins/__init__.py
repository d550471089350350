"""Bindings for host plugins that stream data back through channels."""
