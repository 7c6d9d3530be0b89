"""
Mail Marketing Module
=====================

Admin proxy for the notification engine's global mail marketing settings:
- GET/PUT /api/mail-marketing/config   -- pause switch, batch size, send window
- GET     /api/mail-marketing/status   -- engine-side scheduler status
- POST    /api/mail-marketing/send-batch -- trigger one global batch now
"""

from flask import Blueprint

mail_marketing_bp = Blueprint(
    'mail_marketing',
    __name__,
    url_prefix='/api/mail-marketing'
)

from . import routes
