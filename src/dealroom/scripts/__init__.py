"""Operational scripts: database provisioning and migrations."""
