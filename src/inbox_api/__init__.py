"""
WhatsApp Inbox API

FastAPI app exposing the tenant-facing inbox routes and the bridge webhooks.
"""
