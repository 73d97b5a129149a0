"""Woodshop assistant agent definitions.

Defines the Pydantic AI agents behind each model-backed pipeline stage,
together with their system prompts.
"""

from pydantic_ai import Agent
from pydantic_ai.models import Model

from src.agent.config import get_answer_temperature, get_model
from src.agent.deps import AssistantAgents

# ==============================================================================
# System Prompts
# ==============================================================================

RELEVANCE_SYSTEM_PROMPT = """You triage messages sent to Bent's Woodworking assistant.

Given the chat history and the current question, classify the current question as exactly one of:
1. GREETING - a greeting, thanks, or send-off
2. RELEVANT - related to woodworking, tools, shop techniques, or the company
3. INAPPROPRIATE - abusive, hateful, sexual, or otherwise inappropriate content
4. NOT_RELEVANT - anything else

Respond with the label only: GREETING, RELEVANT, INAPPROPRIATE, or NOT_RELEVANT.
"""

REWRITE_SYSTEM_PROMPT = """You are Bent's Woodworks assistant, so questions relate to the wood shop.

Rewrite the user's question to make it more specific and searchable, taking the
chat history into account when it is provided (resolve pronouns such as "that"
or "it" to the tool or material being discussed).

Only return the rewritten query without any explanations.
"""

ANSWER_SYSTEM_PROMPT = """You are an AI assistant representing Jason Bent's woodworking expertise.

Answer the question using ONLY the context documents supplied with it. If the
context does not contain the answer, say so instead of guessing.

Format sections with markdown:
### 1. **Section Title**
- Detailed explanation with examples

When a context document is a video that shows what you are describing, add a
video reference on its own line in this exact format:
{{timestamp:MM:SS}}{{title:EXACT Video Title}}{{url:EXACT Video URL}}

Video reference rules:
1. Only reference videos that appear in the provided context
2. All three parts (timestamp, title, url) are required
3. No spaces between the three parts
4. Copy the title and URL exactly as they appear in the context
5. Example: {{timestamp:05:30}}{{title:Workshop Tour}}{{url:https://youtube.com/watch?v=abc123}}
"""

SHORT_CIRCUIT_SYSTEM_PROMPT = """You are the friendly front desk of Bent's Woodworking assistant.
Keep replies short (two or three sentences) and never answer questions outside woodworking.
"""

# ==============================================================================
# Agent Construction
# ==============================================================================


def build_agents(model: Model | None = None) -> AssistantAgents:
    """Build the agents for every model-backed pipeline stage.

    Args:
        model: Model shared by all agents. Defaults to get_model().

    Returns:
        AssistantAgents with classifier, rewriter, answer and short-circuit agents.
    """
    model = model or get_model()

    classifier = Agent(
        model,
        system_prompt=RELEVANCE_SYSTEM_PROMPT,
        model_settings={"temperature": 0},
    )
    rewriter = Agent(
        model,
        system_prompt=REWRITE_SYSTEM_PROMPT,
        model_settings={"temperature": 0},
    )
    # instructions (not system_prompt) so they apply even when message_history
    # is supplied
    answer = Agent(
        model,
        instructions=ANSWER_SYSTEM_PROMPT,
        model_settings={"temperature": get_answer_temperature()},
    )
    short_circuit = Agent(
        model,
        system_prompt=SHORT_CIRCUIT_SYSTEM_PROMPT,
    )

    return AssistantAgents(
        classifier=classifier,
        rewriter=rewriter,
        answer=answer,
        short_circuit=short_circuit,
    )
