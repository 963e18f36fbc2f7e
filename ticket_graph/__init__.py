"""Dependency and context analysis over ticket tracker link graphs."""
