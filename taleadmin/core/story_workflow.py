"""
Story Generation Workflow Client
================================

The workflow service drafts campaign email assets with AI. Generation is an
async job: the admin API starts it, then the UI polls the job until the
generated subjects and bodies for every locale are ready.
"""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

from .service_client import ServiceClient


@dataclass(frozen=True)
class StoryWorkflowConfig:
    base_url: Optional[str]
    api_key: Optional[str] = None
    timeout: float = 30.0

    @classmethod
    def from_app(cls, app):
        base_url = app.config.get('STORY_GENERATION_WORKFLOW_URL') or None
        return cls(
            base_url=base_url.rstrip('/') if base_url else None,
            api_key=app.config.get('STORY_GENERATION_WORKFLOW_API_KEY') or '',
            timeout=float(app.config.get('STORY_GENERATION_WORKFLOW_TIMEOUT', 30)),
        )


class StoryWorkflowClient(ServiceClient):

    service_name = 'Story generation workflow'

    def start_email_asset_job(self, campaign_id, source_locale, subject, body_description, template_html):
        """Queue a generation job; the response carries the job id to poll"""
        return self.send('/api/jobs/generate-email-assets', {
            'sourceLocale': source_locale,
            'subject': subject,
            'bodyDescription': body_description,
            'templateHtml': template_html,
            'campaignId': campaign_id,
        })

    def get_job(self, job_id):
        return self.send(f"/api/jobs/{quote(str(job_id), safe='')}", method='GET')


def get_workflow_client() -> StoryWorkflowClient:
    """The client built for the current app by TaleAdmin"""
    from flask import current_app
    client = current_app.extensions.get('story_workflow')
    if client is None:
        client = StoryWorkflowClient(StoryWorkflowConfig.from_app(current_app))
        current_app.extensions['story_workflow'] = client
    return client
