"""Kadre Coach backend: engagement scoring and AI update triage."""
