"""Command-line interface for asking the woodshop assistant a question."""

import argparse
import asyncio
import json
from pathlib import Path

from src.utils.clients import open_dependencies
from src.utils.logging import get_logger

from .config import get_config
from .errors import ChatRequestFailed
from .pipeline import ChatPipeline
from .schemas import ChatRequest, ChatTurn
from .video_references import format_timestamp_display, timestamp_to_seconds

logger = get_logger(__name__)


def load_history(path: str | None) -> list[ChatTurn]:
    """Load chat history from a JSON file of {"role", "content"} objects."""
    if not path:
        return []
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return [ChatTurn.model_validate(turn) for turn in data]


async def main() -> None:
    """CLI entry point for the chat pipeline.

    Parses arguments, streams the answer to the terminal, then prints the
    extracted video references and related products.
    """
    parser = argparse.ArgumentParser(
        description="Woodshop Assistant - ask a woodworking question",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Ask a single question (using .env config)
  python -m src.rag_pipeline.cli "How do I keep my workpiece steady?"

  # Continue a conversation saved as JSON
  python -m src.rag_pipeline.cli "how do I cut that" --history history.json

  # Retrieve more documents
  python -m src.rag_pipeline.cli "best glue for oak" --top-k 8
        """,
    )

    parser.add_argument("question", type=str, help="Question to ask")
    parser.add_argument(
        "--history",
        type=str,
        help="Path to a JSON file with prior chat turns",
    )
    parser.add_argument(
        "--top-k",
        type=int,
        help="Number of documents to retrieve",
    )

    args = parser.parse_args()

    # Load configuration
    config = get_config()

    # Override config with CLI arguments
    if args.top_k:
        config.top_k = args.top_k

    request = ChatRequest(question=args.question, history=load_history(args.history))

    logger.info("cli_started", top_k=config.top_k, history_turns=len(request.history))

    print("\n" + "=" * 60)
    print("Woodshop Assistant")
    print("=" * 60 + "\n")

    async with open_dependencies(config) as deps:
        pipeline = ChatPipeline.from_deps(deps, config)
        run = pipeline.start(request)

        try:
            async for chunk in run.stream():
                print(chunk, end="", flush=True)
            response = await run.finish()
        except ChatRequestFailed as e:
            logger.exception("cli_request_failed", stage=e.stage, reason=e.reason)
            print(f"\n\n❌ Request failed ({e.reason}). Please ask again.")
            return

    print("\n\n" + "=" * 60)
    print(f"Relevance: {response.relevance.value}")

    if response.video_references:
        print("\nRelated videos:")
        for index, video in response.video_references.items():
            display = format_timestamp_display(timestamp_to_seconds(video.timestamp))
            print(f"  {index}. {display} {video.video_title}")
            print(f"     {video.deep_link_url}")

    if response.related_products:
        print("\nRelated products:")
        for product in response.related_products:
            print(f"  - {product.title}: {product.link}")

    print("=" * 60 + "\n")

    logger.info(
        "cli_completed",
        relevance=response.relevance.value,
        video_references=len(response.video_references),
        related_products=len(response.related_products),
    )


if __name__ == "__main__":
    asyncio.run(main())
