"""Per-user pipelines for the presentation shell."""
import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Optional

from config import (
    CHAT_MAX_ATTEMPTS,
    CHAT_RETRY_BASE_DELAY_MS,
    SEARCH_DEBOUNCE_MS,
    SEARCH_MAX_ATTEMPTS,
)
from services.auth import UserSession
from services.conversation_pipeline import ConversationPipeline
from services.llm_client import TextGenerator
from services.query_pipeline import RecordQueryPipeline, RecordSource
from services.retry import RetryPolicy

logger = logging.getLogger(__name__)


@dataclass
class Workspace:
    """Both pipelines of one signed-in user."""
    session: UserSession
    conversation: ConversationPipeline
    diseases: RecordQueryPipeline

    def close(self) -> None:
        self.conversation.close()
        self.diseases.close()


class WorkspaceRegistry:
    """Creates workspaces on first access and tears them down on sign-out."""

    def __init__(
        self,
        llm_client: TextGenerator,
        disease_store: RecordSource,
        chat_retry_policy: Optional[RetryPolicy] = None,
        search_retry_policy: Optional[RetryPolicy] = None,
        debounce_delay: float = SEARCH_DEBOUNCE_MS / 1000,
        sleep=asyncio.sleep,
    ):
        self.llm_client = llm_client
        self.disease_store = disease_store
        self.chat_retry_policy = chat_retry_policy or RetryPolicy(
            max_attempts=CHAT_MAX_ATTEMPTS, base_delay_ms=CHAT_RETRY_BASE_DELAY_MS,
        )
        self.search_retry_policy = search_retry_policy or RetryPolicy(
            max_attempts=SEARCH_MAX_ATTEMPTS,
        )
        self.debounce_delay = debounce_delay
        self._sleep = sleep
        self._workspaces: Dict[str, Workspace] = {}

    def __len__(self) -> int:
        return len(self._workspaces)

    def get(self, user_id: str) -> Optional[Workspace]:
        return self._workspaces.get(user_id)

    def get_or_create(self, session: UserSession) -> Workspace:
        """
        Get the user's workspace, creating it on first access.

        Args:
            session: Authenticated session

        Returns:
            Workspace with a fresh transcript and default search criteria
        """
        workspace = self._workspaces.get(session.user_id)
        if workspace is not None:
            return workspace

        workspace = Workspace(
            session=session,
            conversation=ConversationPipeline(
                self.llm_client, retry_policy=self.chat_retry_policy, sleep=self._sleep,
            ),
            diseases=RecordQueryPipeline(
                self.disease_store,
                debounce_delay=self.debounce_delay,
                retry_policy=self.search_retry_policy,
            ),
        )
        self._workspaces[session.user_id] = workspace
        logger.info(f"Created workspace for user {session.user_id}")
        return workspace

    def discard(self, user_id: str) -> bool:
        """Close and forget a user's workspace. Returns False if there was none."""
        workspace = self._workspaces.pop(user_id, None)
        if workspace is None:
            return False
        workspace.close()
        logger.info(f"Discarded workspace for user {user_id}")
        return True

    def close_all(self) -> None:
        for user_id in list(self._workspaces):
            self.discard(user_id)
