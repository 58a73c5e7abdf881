"""
Service layer for the Krushi Mithra backend.

This package holds the credential store, OTP verification, the account
lifecycle, portal content (subsidies, notifications) and the upstream
market price and weather providers.
"""
