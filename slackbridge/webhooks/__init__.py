"""Slash-command inbound side: verification, validation, dispatch, routes."""
