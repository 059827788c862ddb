"""Heartbeat service."""
