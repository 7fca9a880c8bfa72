import os
import logging
import json
import re
import time
import html
from typing import Callable, List, Optional
import requests

from models import Artifact, ErrorKind, StepResult

logger = logging.getLogger("ai-client")

DEFAULT_API_URL = "https://api.deepseek.com/v1/chat/completions"
DEFAULT_MODEL = "deepseek-coder"
GENERATION_TIMEOUT = 30
# characters of each prior file sent back to the model as refinement context
PRIOR_EXCERPT_CHARS = 500
# chat turns replayed to the model
HISTORY_TURNS = 5

SYSTEM_PROMPT = """
You are a senior frontend engineer building a complete single-page website from a short description.

QUALITY BAR:
- Modern, professional design; fully responsive and mobile-first.
- Semantic HTML5 (header/nav/main/section/footer), meta tags for SEO, keyboard navigation, ARIA where relevant.
- Fast loading: no frameworks, no external build step. CSS variables for the palette, a dark/light theme toggle.
- index.html must link style.css and script.js by those exact filenames.

OUTPUT:
Return ONLY a JSON object with exactly these string keys, no markdown fences, no extra text:
{"html": "<full index.html>", "css": "<full style.css>", "js": "<full script.js>", "message": "<one or two sentences for the user describing the site>"}
"""


class AIClient:
  """Website generator backed by a chat-completion endpoint.

  One POST per request and no retries. Anything unusable coming back from
  the model is replaced with the built-in fallback site, field by field, so
  callers always receive a complete Artifact.
  """

  def __init__(self, token: str = None, url: str = None, model: str = None, timeout: float = GENERATION_TIMEOUT, clock: Callable[[], float] = time.time):
    self.token = token if token is not None else os.environ.get("DEEPSEEK_API_KEY")
    if not self.token:
      logger.warning("DEEPSEEK_API_KEY not set. Website generation will use the fallback template.")
    self.url = url or DEFAULT_API_URL
    self.model = model or DEFAULT_MODEL
    self.timeout = timeout
    self.clock = clock

  def generate(self, description: str, prior_artifact: Optional[Artifact] = None, history: Optional[List[dict]] = None) -> Artifact:
    return self.generate_step(description, prior_artifact, history).value

  def generate_step(self, description: str, prior_artifact: Optional[Artifact] = None, history: Optional[List[dict]] = None) -> StepResult:
    token = str(int(self.clock() * 1000))
    fallback = fallback_artifact(description, token)

    if not self.token:
      return StepResult(value=fallback, degraded=True, cause=ErrorKind.CONFIGURATION_MISSING, detail="generator credential not configured")

    payload = {
      "model": self.model,
      "messages": self._build_messages(description, prior_artifact, history),
      "temperature": 0.7,
      "max_tokens": 4000,
      "response_format": {"type": "json_object"},
    }
    headers = {"Authorization": f"Bearer {self.token}", "Content-Type": "application/json"}

    try:
      resp = requests.post(self.url, headers=headers, json=payload, timeout=self.timeout)
    except requests.Timeout:
      logger.warning("LLM request timed out after %ss; using fallback site", self.timeout)
      return StepResult(value=fallback, degraded=True, cause=ErrorKind.REMOTE_UNAVAILABLE, detail="timeout")
    except requests.RequestException as e:
      logger.warning("LLM request failed: %s; using fallback site", e)
      return StepResult(value=fallback, degraded=True, cause=ErrorKind.REMOTE_UNAVAILABLE, detail=str(e))

    if not 200 <= resp.status_code < 300:
      logger.error("LLM request failed: status=%s body=%s", resp.status_code, (resp.text or "")[:500])
      return StepResult(value=fallback, degraded=True, cause=ErrorKind.REMOTE_REJECTED, detail=f"status {resp.status_code}")

    project = self._parse_completion(resp)
    if project is None:
      return StepResult(value=fallback, degraded=True, cause=ErrorKind.MALFORMED_RESPONSE, detail="completion is not a JSON object")

    return merge_with_fallback(project, fallback)

  def _build_messages(self, description: str, prior_artifact: Optional[Artifact], history: Optional[List[dict]] = None) -> list:
    messages = [{"role": "system", "content": SYSTEM_PROMPT}]
    if prior_artifact is not None:
      excerpt = {
        "html": prior_artifact.markup[:PRIOR_EXCERPT_CHARS],
        "css": prior_artifact.styles[:PRIOR_EXCERPT_CHARS],
        "js": prior_artifact.script[:PRIOR_EXCERPT_CHARS],
      }
      messages.append({
        "role": "system",
        "content": "PREVIOUS_VERSION (truncated excerpts; keep its palette and structure unless asked otherwise):\n" + json.dumps(excerpt),
      })
    # recent chat turns, oldest first
    for turn in (history or [])[-HISTORY_TURNS:]:
      messages.append({"role": turn["role"], "content": turn["content"]})
    messages.append({"role": "user", "content": f"Create a website: {description}"})
    return messages

  def _parse_completion(self, resp) -> Optional[dict]:
    try:
      data = resp.json()
      text = data.get("choices", [{}])[0].get("message", {}).get("content", "") or ""
    except (ValueError, AttributeError, IndexError, KeyError, TypeError):
      logger.warning("LLM response body was not a chat completion: %s", (resp.text or "")[:500])
      return None
    if not isinstance(text, str):
      logger.warning("LLM content was %s, expected a string", type(text).__name__)
      return None

    try:
      project = json.loads(text)
    except json.JSONDecodeError:
      # models sometimes wrap the object in prose or fences
      m = re.search(r"(\{.*\})", text, flags=re.S)
      if not m:
        logger.warning("LLM did not return JSON; raw output: %s", text[:500])
        return None
      try:
        project = json.loads(m.group(1))
      except json.JSONDecodeError:
        logger.warning("Found JSON-like substring but could not parse it")
        return None

    if not isinstance(project, dict):
      logger.warning("LLM returned JSON %s instead of an object", type(project).__name__)
      return None
    return project


def merge_with_fallback(project: dict, fallback: Artifact) -> StepResult:
  """Keep every usable field the model returned and fill the rest from ``fallback``."""
  fields = {"markup": "html", "styles": "css", "script": "js"}
  merged = {}
  missing = []
  for attr, key in fields.items():
    value = project.get(key)
    if isinstance(value, str) and value.strip():
      merged[attr] = value
    else:
      merged[attr] = getattr(fallback, attr)
      missing.append(key)

  message = project.get("message")
  if not (isinstance(message, str) and message.strip()):
    message = fallback.summary_message
  artifact = Artifact(summary_message=message, **merged)

  if missing:
    logger.info("LLM output missing %s; filled from fallback template", ", ".join(missing))
    return StepResult(value=artifact, degraded=True, cause=ErrorKind.MALFORMED_RESPONSE, detail="missing fields: " + ", ".join(missing))
  return StepResult(value=artifact)


def fallback_artifact(description: str, token: str) -> Artifact:
  return Artifact(
    markup=fallback_markup(description, token),
    styles=fallback_styles(),
    script=fallback_script(),
    summary_message=f"Here is a starter website for: {description}",
  )


def fallback_markup(description: str, token: str) -> str:
  desc = html.escape((description or "").strip())
  title = desc[:50] or "Your Website"
  features = [
    ("Fast", "Lightweight static pages that load instantly on any device."),
    ("Responsive", "Layouts that adapt from phones to large desktop screens."),
    ("Accessible", "Semantic structure and keyboard friendly navigation."),
  ]
  cards = "\n".join(
    f'        <article class="feature-card" id="feature-{i}-{token}">\n'
    f"          <h3>{name}</h3>\n"
    f"          <p>{text}</p>\n"
    f"        </article>"
    for i, (name, text) in enumerate(features, start=1)
  )
  return f"""<!DOCTYPE html>
<html lang="en" data-theme="dark">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <meta name="description" content="{title}">
  <meta name="generator" content="ai-website-factory {token}">
  <title>{title}</title>
  <link rel="stylesheet" href="style.css">
</head>
<body>
  <header class="site-header">
    <nav class="nav" id="nav-{token}" aria-label="Main navigation">
      <a class="brand" href="#hero-{token}">Home</a>
      <button class="nav-toggle" aria-expanded="false" aria-controls="nav-links-{token}">Menu</button>
      <ul class="nav-links" id="nav-links-{token}">
        <li><a href="#features-{token}">Features</a></li>
        <li><a href="#contact-{token}">Contact</a></li>
        <li><button class="theme-toggle" type="button" aria-label="Toggle theme">Theme</button></li>
      </ul>
    </nav>
  </header>
  <main>
    <section class="hero" id="hero-{token}">
      <h1>Welcome</h1>
      <p class="hero-text">{desc}</p>
      <a class="button" href="#contact-{token}">Get in touch</a>
    </section>
    <section class="features" id="features-{token}">
      <h2>Features</h2>
      <div class="feature-grid">
{cards}
      </div>
    </section>
    <section class="contact" id="contact-{token}">
      <h2>Contact</h2>
      <form class="contact-form">
        <label>Name <input name="name" required></label>
        <label>Email <input name="email" type="email" required></label>
        <label>Message <textarea name="message" rows="4" required></textarea></label>
        <button class="button" type="submit">Send</button>
        <p class="form-status" aria-live="polite"></p>
      </form>
    </section>
  </main>
  <footer class="site-footer">
    <p>Created with AI Website Factory</p>
  </footer>
  <script src="script.js"></script>
</body>
</html>
"""


def fallback_styles() -> str:
  return """* { margin: 0; padding: 0; box-sizing: border-box; }
:root { --bg: #0f172a; --fg: #f8fafc; --muted: #94a3b8; --accent: #38bdf8; --card: #1e293b; }
[data-theme="light"] { --bg: #f8fafc; --fg: #0f172a; --muted: #475569; --accent: #0284c7; --card: #e2e8f0; }
body { font-family: system-ui, -apple-system, "Segoe UI", sans-serif; background: var(--bg); color: var(--fg); line-height: 1.6; }
a { color: var(--accent); }
.site-header { position: sticky; top: 0; background: var(--bg); border-bottom: 1px solid var(--card); z-index: 10; }
.nav { max-width: 1100px; margin: 0 auto; padding: 1rem; display: flex; align-items: center; justify-content: space-between; flex-wrap: wrap; }
.brand { font-weight: 700; text-decoration: none; }
.nav-links { list-style: none; display: flex; gap: 1rem; align-items: center; }
.nav-toggle { display: none; }
.hero { max-width: 1100px; margin: 0 auto; padding: 5rem 1rem; text-align: center; }
.hero h1 { font-size: clamp(2rem, 6vw, 3.5rem); }
.hero-text { color: var(--muted); margin: 1rem auto 2rem; max-width: 40rem; }
.button { display: inline-block; background: var(--accent); color: var(--bg); border: 0; border-radius: 6px; padding: 0.75rem 1.5rem; text-decoration: none; cursor: pointer; }
.features, .contact { max-width: 1100px; margin: 0 auto; padding: 3rem 1rem; }
.feature-grid { display: grid; grid-template-columns: repeat(auto-fit, minmax(220px, 1fr)); gap: 1.5rem; margin-top: 1.5rem; }
.feature-card { background: var(--card); border-radius: 8px; padding: 1.5rem; }
.contact-form { display: grid; gap: 1rem; max-width: 32rem; margin-top: 1.5rem; }
.contact-form input, .contact-form textarea { width: 100%; padding: 0.5rem; border-radius: 4px; border: 1px solid var(--muted); background: transparent; color: var(--fg); }
.site-footer { text-align: center; padding: 2rem 1rem; color: var(--muted); border-top: 1px solid var(--card); }
.theme-toggle { background: none; border: 1px solid var(--muted); color: var(--fg); border-radius: 4px; padding: 0.25rem 0.75rem; cursor: pointer; }
@media (max-width: 640px) {
  .nav-toggle { display: block; background: none; border: 1px solid var(--muted); color: var(--fg); padding: 0.25rem 0.75rem; }
  .nav-links { display: none; width: 100%; flex-direction: column; padding-top: 1rem; }
  .nav-links.open { display: flex; }
}
"""


def fallback_script() -> str:
  return """'use strict';
(function () {
  const root = document.documentElement;
  const saved = localStorage.getItem('theme');
  if (saved) root.setAttribute('data-theme', saved);

  document.querySelectorAll('.theme-toggle').forEach(function (btn) {
    btn.addEventListener('click', function () {
      const next = root.getAttribute('data-theme') === 'light' ? 'dark' : 'light';
      root.setAttribute('data-theme', next);
      localStorage.setItem('theme', next);
    });
  });

  const toggle = document.querySelector('.nav-toggle');
  const links = document.querySelector('.nav-links');
  if (toggle && links) {
    toggle.addEventListener('click', function () {
      const open = links.classList.toggle('open');
      toggle.setAttribute('aria-expanded', String(open));
    });
  }

  document.querySelectorAll('a[href^="#"]').forEach(function (a) {
    a.addEventListener('click', function (e) {
      const target = document.querySelector(a.getAttribute('href'));
      if (target) {
        e.preventDefault();
        target.scrollIntoView({ behavior: 'smooth' });
      }
    });
  });

  const form = document.querySelector('.contact-form');
  if (form) {
    form.addEventListener('submit', function (e) {
      e.preventDefault();
      const status = form.querySelector('.form-status');
      if (status) status.textContent = 'Thanks! We will be in touch soon.';
      form.reset();
    });
  }

  console.log('Website loaded');
})();
"""
