"""Kernel: schema model, validation engine and tool execution."""
