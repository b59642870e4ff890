"""
Accounts module: registration, credentials, password reset and user administration.
"""
