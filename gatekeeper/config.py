"""
Gatekeeper configuration.

Storage and HTTP-layer settings, read from environment variables with
defaults that work for local development. Decision engine thresholds live in
``gatekeeper.security.settings``.
"""

import os

# Storage
STORE_BACKEND = os.getenv("GATEKEEPER_STORE", "memory")  # memory, sql or kv
DATABASE_URL = os.getenv("GATEKEEPER_DATABASE_URL", "sqlite:///./gatekeeper.db")
CHANNEL = os.getenv("GATEKEEPER_CHANNEL", "gatekeeper")

# Cloudflare KV (used when GATEKEEPER_STORE=kv)
CF_ACCOUNT_ID = os.getenv("CF_ACCOUNT_ID", "")
CF_API_TOKEN = os.getenv("CF_API_TOKEN", "")
KV_NAMESPACE_ID = os.getenv("KV_SHIELD_NAMESPACE", "")

# HTTP layer
SECRET_KEY = os.getenv("GATEKEEPER_SECRET_KEY", "")
ADMIN_TOKEN = os.getenv("GATEKEEPER_ADMIN_TOKEN", "")
SESSION_COOKIE_NAME = os.getenv("GATEKEEPER_SESSION_COOKIE", "gatekeeper_session")
SITE_NAME = os.getenv("SITE_NAME", "unknown")

