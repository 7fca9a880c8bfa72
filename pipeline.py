import logging
import time
from typing import Callable, List, Optional

from ai_client import AIClient
from config import CHAT_MIN_LENGTH, MIN_DESCRIPTION_LENGTH, Settings
from github_ops import GitHubOps, PLACEHOLDER_OWNER, PublishError, repo_name_for
from models import Artifact, ChatResult, ErrorKind, ProvisionResult, RepositoryRef, StepResult
from vercel_ops import VercelOps, mock_public_url

logger = logging.getLogger('pipeline')

CLARIFY_MESSAGE = 'Please describe your website in more detail. What kind of website do you want?'
WEBSITE_HINTS = ('create', 'build', 'make', 'website', 'site')


def placeholder_repository(owner: Optional[str] = None, clock: Callable[[], float] = time.time) -> RepositoryRef:
    full_name = f'{owner or PLACEHOLDER_OWNER}/{repo_name_for(clock)}'
    return RepositoryRef(
        web_url=f'https://github.com/{full_name}',
        full_name=full_name,
        placeholder=True,
    )


class ProvisioningPipeline:
    """generate -> publish -> deploy, run strictly in that order.

    Only ``provision`` turns a real failure into ``success=False``; every
    step below it already returns a usable value.
    """

    def __init__(self, generator: AIClient, publisher: GitHubOps, trigger: VercelOps,
                 min_length: int = MIN_DESCRIPTION_LENGTH, clock: Callable[[], float] = time.time):
        self.generator = generator
        self.publisher = publisher
        self.trigger = trigger
        self.min_length = min_length
        self.clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> 'ProvisioningPipeline':
        return cls(
            generator=AIClient(token=settings.deepseek_api_key or '', url=settings.deepseek_api_url, model=settings.deepseek_model),
            publisher=GitHubOps(token=settings.github_token or ''),
            trigger=VercelOps(token=settings.vercel_token or '', project_id=settings.vercel_project_id or ''),
        )

    def publish_step(self, artifact: Artifact, user_id: str) -> StepResult:
        try:
            repo = self.publisher.publish(artifact, user_id)
        except PublishError as e:
            if e.kind is not ErrorKind.CONFIGURATION_MISSING:
                raise
            logger.info('Publisher not configured; using placeholder repository')
            return StepResult(value=placeholder_repository(clock=self.clock), degraded=True, cause=e.kind, detail=str(e))
        return StepResult(value=repo)

    def provision(self, description: str, user_id: str) -> ProvisionResult:
        description = (description or '').strip()
        if len(description) < self.min_length:
            return ProvisionResult(success=False, clarification=True, message=CLARIFY_MESSAGE)

        logger.info('Step 1: generating website for %s', user_id)
        generated = self.generator.generate_step(description)
        steps = {'generate': generated.summary()}

        try:
            logger.info('Step 2: publishing repository')
            published = self.publish_step(generated.value, user_id)
        except PublishError as e:
            logger.error('Publishing failed (%s, status=%s): %s', e.kind.value, e.status, e)
            return self._mocked(steps, e.kind, str(e))
        except Exception as e:
            logger.exception('Publishing failed unexpectedly')
            return self._mocked(steps, ErrorKind.UNKNOWN, str(e))
        steps['publish'] = published.summary()

        logger.info('Step 3: deploying %s', published.value.full_name)
        deployed = self.trigger.deploy_step(published.value, generated.value)
        steps['deploy'] = deployed.summary()

        result = deployed.value
        if result.succeeded:
            message = 'Website created and deployed!'
        else:
            message = 'Website generated in demo mode. Configure GITHUB_TOKEN and VERCEL_TOKEN for a live deployment.'
        return ProvisionResult(
            success=result.succeeded,
            public_url=result.public_url,
            repository_url=published.value.web_url,
            message=message,
            steps=steps,
        )

    def _mocked(self, steps: dict, cause: ErrorKind, detail: str) -> ProvisionResult:
        steps['publish'] = {'degraded': True, 'cause': cause.value, 'detail': detail}
        repo = placeholder_repository(clock=self.clock)
        return ProvisionResult(
            success=False,
            public_url=mock_public_url(self.clock),
            repository_url=repo.web_url,
            message='Website generated, but publishing to GitHub failed. Showing a demo link instead.',
            steps=steps,
        )

    def chat(self, message: str, prior_artifact: Optional[Artifact] = None,
             history: Optional[List[dict]] = None) -> ChatResult:
        if len((message or '').strip()) < CHAT_MIN_LENGTH:
            raise ValueError(f'chat message must be at least {CHAT_MIN_LENGTH} characters')
        generated = self.generator.generate_step(message, prior_artifact, history)
        artifact = generated.value
        reply = artifact.summary_message
        lowered = message.lower()
        if any(h in lowered for h in WEBSITE_HINTS) and len(message.strip()) >= self.min_length:
            reply += ' Ready to publish it? Send the same description to /api/generate-website.'
        return ChatResult(assistant_message=reply, artifact=artifact, degraded=generated.degraded)
