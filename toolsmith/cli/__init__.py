"""Command line interface: scaffold, inspect, check and serve tools."""
