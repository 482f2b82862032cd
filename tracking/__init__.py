"""Live distribution session tracking.

Sessions are driven through ``tracking.services.session_service`` and exposed
over HTTP by ``tracking.api.sessions``.
"""
