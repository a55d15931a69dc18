"""Scheduling, orchestration and command processing."""
