"""Clinic waiting-room queue: API service and terminal coordinator."""
