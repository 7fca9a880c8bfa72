import re

import pytest

from ai_client import AIClient
from conftest import FakeResponse
from github_ops import GitHubOps
from models import Artifact
from pipeline import CLARIFY_MESSAGE, ProvisioningPipeline
from vercel_ops import VercelOps

DESCRIPTION = "A bakery landing page with a contact form and gallery"
MOCK_URL = re.compile(r"^https://ai-website-\d+\.vercel\.app$")
MOCK_REPO = re.compile(r"^https://github\.com/ai-website-factory/ai-website-\d+$")
OWNER_NAME = re.compile(r"^[\w.-]+/[\w.-]+$")


def make_pipeline(generator_token="", github_token="", vercel_token="", project_id=""):
    return ProvisioningPipeline(
        generator=AIClient(token=generator_token),
        publisher=GitHubOps(token=github_token),
        trigger=VercelOps(token=vercel_token, project_id=project_id, sleep=lambda s: None),
    )


@pytest.mark.parametrize("description", ["", "   ", "a site", "x" * 19])
def test_short_description_asks_for_clarification(http, description):
    result = make_pipeline("k", "g", "v").provision(description, "user42")

    assert result.clarification
    assert not result.success
    assert result.message == CLARIFY_MESSAGE
    assert result.public_url is None
    assert http.calls == []


def test_no_credentials_returns_mocked_urls(http):
    result = make_pipeline().provision(DESCRIPTION, "user42")

    assert result.success is False
    assert MOCK_URL.match(result.public_url)
    assert MOCK_REPO.match(result.repository_url)
    assert result.message
    assert result.steps["publish"]["cause"] == "configuration_missing"
    assert result.steps["deploy"]["degraded"] is True
    assert http.calls == []


def test_missing_publisher_credential_uses_placeholder_repository(http):
    http.queue("post", FakeResponse(200, {"id": "dpl_1", "url": "bakery.vercel.app"}))

    pipeline = make_pipeline(vercel_token="v", project_id="prj")
    step = pipeline.publish_step(Artifact(markup="a", styles="b", script="c"), "user42")
    assert step.value.placeholder
    assert OWNER_NAME.match(step.value.full_name)

    result = pipeline.provision(DESCRIPTION, "user42")
    assert result.success is True
    assert result.public_url == "https://bakery.vercel.app"
    # placeholder repository is deployed from files, not from git
    assert "files" in http.calls[0][2]["json"]


def test_publish_failure_with_credential_is_fully_mocked(http):
    http.queue("get", FakeResponse(200, {"login": "octo"}))
    http.queue("post", FakeResponse(401, text="bad credentials"))

    result = make_pipeline(github_token="g", vercel_token="v").provision(DESCRIPTION, "user42")

    assert result.success is False
    assert MOCK_URL.match(result.public_url)
    assert MOCK_REPO.match(result.repository_url)
    assert result.steps["publish"]["cause"] == "auth_rejected"
    assert "deploy" not in result.steps
    # no deployment call after the failed publish
    assert http.methods() == ["get", "post"]


def test_full_run_is_sequential(http):
    http.queue("get", FakeResponse(200, {"login": "octo"}))
    http.queue("post", FakeResponse(201, {"owner": {"login": "octo"}, "full_name": "octo/ai-website-1", "html_url": "https://github.com/octo/ai-website-1"}))
    http.queue("put", *[FakeResponse(201, {}) for _ in range(4)])
    http.queue("post", FakeResponse(200, {"id": "dpl_9", "url": "ai-website-1.vercel.app"}))

    result = make_pipeline(github_token="g", vercel_token="v", project_id="prj").provision(DESCRIPTION, "user42")

    assert result.success is True
    assert result.repository_url == "https://github.com/octo/ai-website-1"
    assert result.public_url == "https://ai-website-1.vercel.app"
    assert result.steps["generate"]["cause"] == "configuration_missing"
    assert http.methods() == ["get", "post", "put", "put", "put", "put", "post"]
    assert http.calls[-1][2]["json"]["gitSource"]["repo"] == "octo/ai-website-1"


def test_chat_uses_only_the_generator(http):
    result = make_pipeline(github_token="g", vercel_token="v").chat("hello there")

    assert http.calls == []
    assert result.degraded
    assert result.artifact.markup
    assert result.assistant_message == result.artifact.summary_message


def test_chat_hints_at_generate_for_detailed_requests(http):
    result = make_pipeline().chat("build me a website for my flower shop")
    assert "/api/generate-website" in result.assistant_message


class ExplodingPublisher(GitHubOps):
    def publish(self, artifact, owner_hint=None):
        raise AttributeError("'list' object has no attribute 'get'")


def test_unexpected_publish_error_is_fully_mocked(http):
    pipeline = make_pipeline(vercel_token="v")
    pipeline.publisher = ExplodingPublisher(token="g")

    result = pipeline.provision(DESCRIPTION, "user42")

    assert result.success is False
    assert MOCK_URL.match(result.public_url)
    assert MOCK_REPO.match(result.repository_url)
    assert result.steps["publish"]["cause"] == "unknown"
    assert http.calls == []


def test_real_publish_with_failed_deploy_keeps_repository_url(http):
    http.queue("get", FakeResponse(200, {"login": "octo"}))
    http.queue("post", FakeResponse(201, {"full_name": "octo/ai-website-1", "html_url": "https://github.com/octo/ai-website-1"}))
    http.queue("put", *[FakeResponse(201, {}) for _ in range(4)])
    http.queue("post", FakeResponse(500, text="vercel down"))

    result = make_pipeline(github_token="g", vercel_token="v", project_id="prj").provision(DESCRIPTION, "user42")

    assert result.success is False
    assert result.repository_url == "https://github.com/octo/ai-website-1"
    assert MOCK_URL.match(result.public_url)
    assert result.steps["publish"]["degraded"] is False
    assert result.steps["deploy"]["cause"] == "remote_rejected"


@pytest.mark.parametrize("message", ["", "hi", "  a "])
def test_chat_rejects_messages_below_minimum(http, message):
    with pytest.raises(ValueError):
        make_pipeline().chat(message)
    assert http.calls == []


def test_chat_forwards_history_to_the_model(http):
    http.queue("post", FakeResponse(200, {"choices": [{"message": {"content": '{"html": "a", "css": "b", "js": "c"}'}}]}))
    history = [{"role": "user", "content": "I sell flowers"}, {"role": "assistant", "content": "Nice!"}]

    make_pipeline(generator_token="k").chat("add a gallery", history=history)

    messages = http.calls[0][2]["json"]["messages"]
    assert messages[-3:-1] == history
