"""Observability helpers for kubemirror."""
