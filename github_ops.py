import os
import logging
import base64
import re
import time
from typing import Callable, Optional

import requests

from models import Artifact, ErrorKind, RepositoryRef

logger = logging.getLogger('github-ops')

API_URL = 'https://api.github.com'
REPO_PREFIX = 'ai-website-'
PLACEHOLDER_OWNER = 'ai-website-factory'
# GitHub account names: alphanumerics and single hyphens
LOGIN_RE = re.compile(r'^[A-Za-z0-9](?:[A-Za-z0-9-]{0,38})$')


class PublishError(Exception):
    """Publishing failed; ``kind`` tells a missing token apart from a remote rejection."""

    def __init__(self, kind: ErrorKind, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.kind = kind
        self.status = status


def _error_kind(status: int) -> ErrorKind:
    if status == 401:
        return ErrorKind.AUTH_REJECTED
    if status == 422:
        return ErrorKind.NAME_CONFLICT_OR_INVALID
    return ErrorKind.UNKNOWN


def repo_name_for(clock: Callable[[], float] = time.time) -> str:
    return f'{REPO_PREFIX}{int(clock() * 1000)}'


class GitHubOps:
    """Publishes an Artifact as a new public repository through the GitHub REST API.

    Environment variables expected:
    - GITHUB_TOKEN (required; without it publish() raises PublishError)

    Files are written one contents-API call each. Only the first write is
    mandatory since it creates the initial commit; the rest are best-effort.
    """

    def __init__(self, token: str = None, token_env: str = 'GITHUB_TOKEN', clock: Callable[[], float] = time.time):
        self.token = token if token is not None else os.environ.get(token_env)
        if not self.token:
            logger.warning('GITHUB_TOKEN not set; repositories will not be created')
        self.clock = clock

    @property
    def headers(self) -> dict:
        return {'Authorization': f'token {self.token}', 'Accept': 'application/vnd.github+json'}

    def resolve_owner(self, owner_hint: Optional[str] = None) -> str:
        """Login of the token's account, else a login-shaped ``owner_hint``, else a fixed placeholder."""
        try:
            r = requests.get(f'{API_URL}/user', headers=self.headers, timeout=10)
            if r.status_code == 200:
                body = r.json()
                login = body.get('login') if isinstance(body, dict) else None
                if isinstance(login, str) and LOGIN_RE.match(login):
                    return login
            logger.warning('Identity lookup returned %s: %s', r.status_code, (r.text or '')[:500])
        except (requests.RequestException, ValueError):
            logger.exception('Identity lookup failed')
        if owner_hint and LOGIN_RE.match(owner_hint):
            return owner_hint
        return PLACEHOLDER_OWNER

    def publish(self, artifact: Artifact, owner_hint: Optional[str] = None) -> RepositoryRef:
        if not self.token:
            raise PublishError(ErrorKind.CONFIGURATION_MISSING, 'GITHUB_TOKEN is not configured')

        owner = self.resolve_owner(owner_hint)
        repo_name = repo_name_for(self.clock)
        payload = {
            'name': repo_name,
            'description': f'AI generated website ({owner_hint or owner})',
            'private': False,
            'auto_init': False,
        }
        try:
            pr = requests.post(f'{API_URL}/user/repos', headers=self.headers, json=payload, timeout=10)
        except requests.RequestException as e:
            logger.exception('Create repo request failed')
            raise PublishError(ErrorKind.UNKNOWN, f'create repository failed: {e}') from e

        if pr.status_code != 201:
            logger.warning('Create repo returned %s: %s', pr.status_code, (pr.text or '')[:500])
            raise PublishError(_error_kind(pr.status_code), f'create repository returned {pr.status_code}', pr.status_code)

        try:
            data = pr.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            logger.warning('Create repo returned a non-object body: %s', (pr.text or '')[:500])
            data = {}
        full_name = data.get('full_name')
        if not (isinstance(full_name, str) and full_name.count('/') == 1):
            full_name = f'{owner}/{repo_name}'
        logger.info('Created GitHub repo %s', full_name)

        files = [
            ('index.html', artifact.markup, 'Add HTML'),
            ('style.css', artifact.styles, 'Add CSS'),
            ('script.js', artifact.script, 'Add JS'),
            ('README.md', self._readme(repo_name, artifact), 'Add README'),
        ]
        for i, (path, content, message) in enumerate(files):
            ok, status = self._put_file(full_name, path, content, message)
            if ok:
                continue
            if i == 0:
                kind = _error_kind(status) if status else ErrorKind.UNKNOWN
                raise PublishError(kind, f'initial commit of {path} failed', status)
            logger.warning('Skipping %s after failed upload; repository left as is', path)

        web_url = data.get('html_url')
        clone_url = data.get('clone_url')
        return RepositoryRef(
            web_url=web_url if isinstance(web_url, str) and web_url else f'https://github.com/{full_name}',
            full_name=full_name,
            clone_url=clone_url if isinstance(clone_url, str) and clone_url else f'https://github.com/{full_name}.git',
        )

    def _put_file(self, full_name: str, path: str, content: str, message: str):
        put_url = f'{API_URL}/repos/{full_name}/contents/{path}'
        body = {
            'message': message,
            'content': base64.b64encode(content.encode('utf-8')).decode('ascii'),
        }
        try:
            upr = requests.put(put_url, headers=self.headers, json=body, timeout=30)
        except requests.RequestException:
            logger.exception('Uploading %s failed', path)
            return False, None
        if upr.status_code not in (200, 201):
            logger.warning('Uploading %s returned %s: %s', path, upr.status_code, (upr.text or '')[:500])
            return False, upr.status_code
        return True, upr.status_code

    @staticmethod
    def _readme(repo_name: str, artifact: Artifact) -> str:
        return (
            f'# {repo_name}\n\n'
            f'{artifact.summary_message}\n\n'
            'This website was generated automatically by AI Website Factory.\n\n'
            '## How to run\n\n'
            'Open `index.html` in a modern browser or serve the folder with any static server.\n\n'
            '## Files\n'
            '- `index.html`\n'
            '- `style.css`\n'
            '- `script.js`\n'
        )
