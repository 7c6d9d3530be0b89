"""
Layouts the story generation workflow fills in when it drafts campaign
assets. Each is a Handlebars HTML file shipped under templates/email/.
"""

import logging
import os

from taleadmin.core import AdminError, ValidationFailed

logger = logging.getLogger(__name__)

TEMPLATE_DIR = os.path.join(os.path.dirname(__file__), 'templates', 'email')

TEMPLATE_FILES = {
    'default': 'template.html.hbs',
    'story-launch': 'story-launch.html.hbs',
    'enchanted-scroll': 'enchanted-scroll.html.hbs',
    'minimal-ink': 'minimal-ink.html.hbs',
    'aurora-split': 'aurora-split.html.hbs',
}


def load_template(name, template_dir=TEMPLATE_DIR):
    """
    Return the HTML of a named layout.

    Raises:
        ValidationFailed: unknown template name
        AdminError: the file could not be read (500)
    """
    filename = TEMPLATE_FILES.get(name)
    if filename is None:
        raise ValidationFailed(f'Unknown template: {name}', [{'field': 'templateName', 'message': 'Unknown template'}])

    path = os.path.join(template_dir, filename)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return f.read()
    except OSError as e:
        logger.error(f"Failed to read email template at {path}: {e}")
        raise AdminError('Failed to load email template')
