"""
Unit tests for the samplerchain package.

This package covers method configuration, grammar loading, pipeline assembly,
the YAML configuration layer and the llama.cpp stage runtime.
"""
