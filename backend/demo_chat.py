"""Demo script for the chat pipeline and disease search against live services."""
import sys
sys.path.insert(0, '.')

import asyncio

from services.conversation_pipeline import ConversationPipeline
from services.disease_store import DiseaseStore, create_supabase_client
from services.llm_provider import create_llm_client
from services.query_pipeline import RecordQueryPipeline


async def run():
    """Demo both pipelines end to end."""
    print("=== MedFit Pipelines Demo ===\n")

    print("1. Initializing LLM client...")
    conversation = ConversationPipeline(create_llm_client())
    print(f"✓ Transcript starts with: {conversation.transcript[0].content[:60]}...\n")

    print("2. Asking a medical question...")
    await conversation.submit("What are common symptoms of type 2 diabetes?")
    print(f"✓ Assistant: {conversation.transcript[-1].content[:200]}...\n")

    print("3. Asking an off-topic question...")
    await conversation.submit("Who won the football world cup in 2010?")
    print(f"✓ Assistant: {conversation.transcript[-1].content[:200]}...")
    print(f"  - Transcript length: {len(conversation.transcript)}\n")

    print("4. Searching diseases...")
    store = DiseaseStore(await create_supabase_client())
    search = RecordQueryPipeline(store)
    search.start()
    search.set_criteria(search_term="dia")
    search.set_criteria(search_term="diab")
    await search.settle()
    print(f"✓ Status: {search.status.value}")
    for record in search.results:
        print(f"  - {record.name}")
    print()

    print("5. Sorting by date added, newest first...")
    search.set_criteria(search_term="", sort_key="created_at", ascending=False)
    await search.settle()
    for record in search.results[:5]:
        print(f"  - {record.name} ({record.created_at})")

    print("\n=== Demo finished ===")


def main():
    try:
        asyncio.run(run())
    except Exception as e:
        print(f"✗ Error: {e}")
        import traceback
        traceback.print_exc()


if __name__ == "__main__":
    main()
