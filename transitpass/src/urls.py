"""
API Endpoint URL Constants

This module defines the URL paths used throughout the application.

These URLs are relative paths and are prefixed by the mount point of
the sub application serving them (`/conductor` or `/public`).
"""

# -------------------------------
# Conductor
# -------------------------------
URL_VERIFY = "/verify"

# -------------------------------
# Public
# -------------------------------
URL_TICKET = "/ticket"
URL_FARE = "/fare"

# -------------------------------
# Wallet service (external)
# -------------------------------
URL_WALLET_DEBIT = "/wallet/debit"
URL_WALLET_CREDIT = "/wallet/credit"

# -------------------------------
# User service (external)
# -------------------------------
URL_USER_PROFILE = "/users/{user_id}"
