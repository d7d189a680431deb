"""Services for the MedFit backend."""
from .retry import RetryPolicy, RetryExhaustedError, retry_async
from .debounce import Debouncer
from .llm_client import (
    LLMClient,
    LLMResponse,
    LLMError,
    LLMClientError,
    GenerationConfig,
    SafetySetting,
    HarmCategory,
    BlockThreshold,
)
from .llm_provider import create_llm_client
from .conversation_pipeline import ConversationPipeline, ConversationState, diagnose_failure
from .disease_store import DiseaseStore, DiseaseStoreError, create_supabase_client
from .query_pipeline import RecordQueryPipeline, QueryStatus, QuerySnapshot
from .auth import AuthService, UserSession
from .workspace import Workspace, WorkspaceRegistry

__all__ = ['RetryPolicy', 'RetryExhaustedError', 'retry_async', 'Debouncer', 'LLMClient', 'LLMResponse', 'LLMError', 'LLMClientError', 'GenerationConfig', 'SafetySetting', 'HarmCategory', 'BlockThreshold', 'create_llm_client', 'ConversationPipeline', 'ConversationState', 'diagnose_failure', 'DiseaseStore', 'DiseaseStoreError', 'create_supabase_client', 'RecordQueryPipeline', 'QueryStatus', 'QuerySnapshot', 'AuthService', 'UserSession', 'Workspace', 'WorkspaceRegistry']
