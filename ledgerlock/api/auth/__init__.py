"""Signer authentication."""

from ledgerlock.api.auth.jwt import create_signer_token, verify_token

__all__ = ["create_signer_token", "verify_token"]
