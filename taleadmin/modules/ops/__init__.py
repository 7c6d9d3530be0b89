"""
Ops Module
==========

Public /health endpoint for uptime monitors (no auth). Reports whether the
back office and audience databases can be reached and whether the
notification engine is configured.
"""

from flask import Blueprint

ops_health_bp = Blueprint(
    'ops_health',
    __name__,
    url_prefix='/health'
)

from . import routes
