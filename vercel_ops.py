import os
import json
import logging
import time
from typing import Callable, Optional

import requests

from models import Artifact, DeploymentResult, ErrorKind, RepositoryRef, StepResult

logger = logging.getLogger('vercel-ops')

API_URL = 'https://api.vercel.com/v13/deployments'
MOCK_URL_PREFIX = 'ai-website'
# seconds to let the asynchronous build start before answering
BUILD_START_WAIT = 3

# serve real files first, send every other path to the page
STATIC_MANIFEST = {
    'version': 2,
    'routes': [
        {'handle': 'filesystem'},
        {'src': '/(.*)', 'dest': '/index.html'},
    ],
}


def mock_public_url(clock: Callable[[], float] = time.time) -> str:
    return f'https://{MOCK_URL_PREFIX}-{int(clock() * 1000)}.vercel.app'


class VercelOps:
    """Starts a Vercel deployment for a published repository or a raw file set.

    With VERCEL_PROJECT_ID set the deployment is built from the git
    repository; with only VERCEL_TOKEN the files are uploaded inline. Any
    failure yields a placeholder URL instead of an exception.
    """

    def __init__(self, token: str = None, project_id: str = None, clock: Callable[[], float] = time.time, sleep: Callable[[float], None] = time.sleep):
        self.token = token if token is not None else os.environ.get('VERCEL_TOKEN')
        self.project_id = project_id if project_id is not None else os.environ.get('VERCEL_PROJECT_ID')
        if not self.token:
            logger.warning('VERCEL_TOKEN not set; deployments will return placeholder URLs')
        self.clock = clock
        self.sleep = sleep

    def deploy(self, repo: RepositoryRef, artifact: Artifact) -> DeploymentResult:
        return self.deploy_step(repo, artifact).value

    def deploy_step(self, repo: RepositoryRef, artifact: Artifact) -> StepResult:
        if not self.token:
            return self._placeholder(ErrorKind.CONFIGURATION_MISSING, 'deployment credential not configured')

        if self.project_id and not repo.placeholder:
            strategy = 'git'
            payload = {
                'name': repo.name,
                'project': self.project_id,
                'gitSource': {'type': 'github', 'repo': repo.full_name, 'ref': 'main'},
                'target': 'production',
            }
        else:
            strategy = 'files'
            payload = {
                'name': repo.name,
                'files': self._inline_files(artifact),
                'projectSettings': {'framework': None},
                'target': 'production',
            }

        headers = {'Authorization': f'Bearer {self.token}', 'Content-Type': 'application/json'}
        logger.info('Creating %s deployment for %s', strategy, repo.full_name)
        try:
            r = requests.post(API_URL, headers=headers, json=payload, timeout=30)
        except requests.RequestException as e:
            logger.exception('Deployment request failed')
            return self._placeholder(ErrorKind.REMOTE_UNAVAILABLE, str(e))

        if not 200 <= r.status_code < 300:
            logger.warning('Deployment returned %s: %s', r.status_code, (r.text or '')[:500])
            kind = ErrorKind.AUTH_REJECTED if r.status_code in (401, 403) else ErrorKind.REMOTE_REJECTED
            return self._placeholder(kind, f'status {r.status_code}')

        try:
            data = r.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            logger.warning('Deployment response was not a JSON object: %s', (r.text or '')[:500])
            return self._placeholder(ErrorKind.MALFORMED_RESPONSE, 'deployment response is not a JSON object')
        deployment_id = data.get('id') if isinstance(data.get('id'), str) else None
        host = data.get('url') if isinstance(data.get('url'), str) else None
        host = host or (f'{deployment_id}.vercel.app' if deployment_id else None)
        if not host:
            logger.warning('Deployment response had no id or url: %s', (r.text or '')[:500])
            return self._placeholder(ErrorKind.MALFORMED_RESPONSE, 'no deployment id in response')

        self.sleep(BUILD_START_WAIT)
        public_url = host if host.startswith('http') else f'https://{host}'
        logger.info('Deployment %s started at %s', deployment_id, public_url)
        return StepResult(value=DeploymentResult(
            public_url=public_url,
            succeeded=True,
            degraded=False,
            deployment_id=deployment_id,
            strategy=strategy,
        ))

    @staticmethod
    def _inline_files(artifact: Artifact) -> list:
        return [
            {'file': 'index.html', 'data': artifact.markup},
            {'file': 'style.css', 'data': artifact.styles},
            {'file': 'script.js', 'data': artifact.script},
            {'file': 'vercel.json', 'data': json.dumps(STATIC_MANIFEST, indent=2)},
        ]

    def _placeholder(self, cause: ErrorKind, detail: Optional[str]) -> StepResult:
        return StepResult(
            value=DeploymentResult(public_url=mock_public_url(self.clock), succeeded=False, degraded=True),
            degraded=True,
            cause=cause,
            detail=detail,
        )
