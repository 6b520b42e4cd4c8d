"""Credential resolution, netrc persistence, SSO, and session updates."""
