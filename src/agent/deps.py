"""Assistant dependency definitions.

Defines the handles a chat pipeline is built from. They are created once per
process by src.utils.clients.open_dependencies and passed explicitly to the
pipeline; nothing here is a module-level singleton.
"""

from dataclasses import dataclass

from openai import AsyncOpenAI
from pydantic_ai import Agent
from supabase import Client


@dataclass
class AssistantAgents:
    """Language-model agents used by the pipeline stages.

    Attributes:
        classifier: Single-shot agent labelling question intent.
        rewriter: Single-shot agent expanding the question into a search query.
        answer: Streaming agent producing the grounded answer with video tags.
        short_circuit: Streaming agent replying to non-woodworking messages.
    """

    classifier: Agent
    rewriter: Agent
    answer: Agent
    short_circuit: Agent


@dataclass
class AssistantDeps:
    """Runtime dependencies for the chat pipeline.

    Attributes:
        supabase: Supabase client for vector search and the product catalog.
        embedding_client: AsyncOpenAI client for generating embeddings.
        agents: Language-model agents for each model-backed stage.
    """

    supabase: Client
    embedding_client: AsyncOpenAI
    agents: AssistantAgents
