"""Adapters implementing the core ports against a Bee node, a JSON file and the terminal."""
