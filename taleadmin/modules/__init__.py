"""
TaleAdmin Modules
=================

Flask blueprint modules mounted by the TaleAdmin extension.
"""

__all__ = ['auth', 'campaigns', 'mail_marketing', 'ops']
