"""Services package: persistence-backed services and external API clients.

Modules are imported directly (``services.github_service`` etc.); importing
the package itself has no side effects.
"""
