"""Routing: compiled regex route table, guards and dispatch."""
