"""Handlers for the certificate-manager actions."""
