# API routes module
# Routers live in their own modules and are registered by main.py
