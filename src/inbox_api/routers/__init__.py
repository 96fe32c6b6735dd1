"""API routers, mounted under /api/whatsapp."""
