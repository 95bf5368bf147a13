"""Shared plumbing for frame services (config, HTTP base class)."""
