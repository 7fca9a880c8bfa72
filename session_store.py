import itertools
import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from models import Artifact, ConversationTurn, DeployedWebsite, SavedProject, UserSession

logger = logging.getLogger('session-store')

MAX_PROJECTS = 20
PREVIEW_CHARS = 200
RECENT_TURNS = 5


def preview_of(markup: str) -> str:
    if len(markup) <= PREVIEW_CHARS:
        return markup
    return markup[:PREVIEW_CHARS] + '...'


class SessionStore(ABC):
    """Per-user record of saved projects, chat turns and deployed sites."""

    @abstractmethod
    def get(self, user_id: str) -> Optional[UserSession]: ...

    @abstractmethod
    def get_or_create(self, user_id: str) -> UserSession: ...

    @abstractmethod
    def record_project(self, user_id: str, artifact: Artifact, name: str) -> str: ...

    @abstractmethod
    def history(self, user_id: Optional[str], limit: int = 10) -> List[SavedProject]: ...

    @abstractmethod
    def record_turn(self, user_id: str, role: str, content: str) -> None: ...

    @abstractmethod
    def recent_turns(self, user_id: Optional[str], limit: int = RECENT_TURNS) -> List[dict]: ...

    @abstractmethod
    def record_website(self, user_id: str, website: DeployedWebsite) -> None: ...

    @abstractmethod
    def __len__(self) -> int: ...


class InMemorySessionStore(SessionStore):
    """Process-lifetime store. Each user has its own lock; writers to the same user are last-write-wins."""

    def __init__(self, max_projects: int = MAX_PROJECTS):
        self.max_projects = max_projects
        self._sessions: Dict[str, UserSession] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()
        self._seq = itertools.count()

    def _lock_for(self, user_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = self._locks[user_id] = threading.Lock()
            return lock

    def _new_project_id(self) -> str:
        return f'{int(time.time() * 1000)}-{next(self._seq)}'

    def get(self, user_id: str) -> Optional[UserSession]:
        return self._sessions.get(user_id)

    def get_or_create(self, user_id: str) -> UserSession:
        with self._lock_for(user_id):
            session = self._sessions.get(user_id)
            if session is None:
                session = self._sessions[user_id] = UserSession(user_id=user_id)
                logger.info('Created session for %s', user_id)
            return session

    def record_project(self, user_id: str, artifact: Artifact, name: str) -> str:
        session = self.get_or_create(user_id)
        project = SavedProject(
            id=self._new_project_id(),
            name=name,
            preview_text=preview_of(artifact.markup),
            artifact=artifact,
        )
        with self._lock_for(user_id):
            session.projects = [project] + session.projects[: self.max_projects - 1]
        return project.id

    def history(self, user_id: Optional[str], limit: int = 10) -> List[SavedProject]:
        if not user_id:
            return []
        session = self._sessions.get(user_id)
        if session is None:
            return []
        return list(session.projects[: max(limit, 0)])

    def record_turn(self, user_id: str, role: str, content: str) -> None:
        session = self.get_or_create(user_id)
        with self._lock_for(user_id):
            session.conversation.append(ConversationTurn(role=role, content=content))

    def recent_turns(self, user_id: Optional[str], limit: int = RECENT_TURNS) -> List[dict]:
        """Last ``limit`` chat turns, oldest first, as model messages."""
        session = self._sessions.get(user_id) if user_id else None
        if session is None or limit <= 0:
            return []
        return [{'role': t.role, 'content': t.content} for t in session.conversation[-limit:]]

    def record_website(self, user_id: str, website: DeployedWebsite) -> None:
        session = self.get_or_create(user_id)
        with self._lock_for(user_id):
            session.websites.append(website)

    def __len__(self) -> int:
        return len(self._sessions)
