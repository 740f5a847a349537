#!/usr/bin/env python3
"""
Demo script for the Research Network.

Runs one research session end to end without the API server and prints the
phases as the lead researcher reports them, followed by the report.

Usage:
    python demo.py "quantum computing"
    python demo.py --offline "climate change"     # No API keys needed
"""

import os
import asyncio
import argparse
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv

env_file = Path(__file__).parent / ".env"
if env_file.exists():
    load_dotenv(env_file)

PHASE_LABELS = {
    "planning": "📋 Plan created",
    "execution": "🤖 Subagents finished",
    "synthesis": "🧪 Findings synthesized",
    "evaluation": "📚 Citations built",
}


async def run_demo(topic: str, offline: bool, seed: int = None):
    from research_network.agents.factory import create_lead_researcher
    from research_network.api.channel import RecordingChannel
    from research_network.config import Config
    from research_network.core.errors import SessionFailedError

    print("\n" + "=" * 60)
    print("🔬 RESEARCH NETWORK DEMO")
    print("=" * 60)
    print(f"\n📝 Topic: {topic}\n")

    if offline:
        os.environ["CAPABILITY_MODE"] = "demo"
    config = Config.from_env()

    if config.demo_mode:
        print("ℹ️  Offline mode: deterministic fallback content\n")
    else:
        print(f"✅ Completion: {config.llm_provider if config.completion_configured else 'fallback'}")
        print(f"✅ Search: {config.search_provider if config.search_configured else 'fallback'}\n")

    channel = RecordingChannel()
    # No record store: the demo leaves nothing on disk
    lead = create_lead_researcher(config, channel=channel, store=None, seed=seed)

    print(f"🚀 Starting session with {lead.subagent_count} subagents...\n")
    start_time = datetime.now()

    try:
        session_id = await lead.start_session(topic)
    except SessionFailedError as e:
        print(f"❌ Error: {e}")
        return

    elapsed = (datetime.now() - start_time).total_seconds()
    session = lead.get_session(session_id)

    for event, payload in channel.events:
        if event == "perplexity_result":
            print(f"   🔍 Initial search ({len(payload['sources'])} sources)")
        elif event == "phase_completed":
            print(f"   {PHASE_LABELS.get(payload['phase'], payload['phase'])}: {payload['message']}")
        elif event == "agent_analysis":
            print(f"      • {payload['agent']} ({payload['confidence'] * 100:.0f}% confidence)")

    print(f"\n✅ Session {session.status.value} in {elapsed:.1f}s\n")
    print("-" * 60)

    print("\n📊 RESULTS\n")
    if session.synthesis:
        print("📝 Synthesis:")
        text = session.synthesis.text
        print(f"   {text[:500]}...\n" if len(text) > 500 else f"   {text}\n")

        if session.synthesis.key_findings:
            print("🎯 Key Findings:")
            for i, finding in enumerate(session.synthesis.key_findings[:5], 1):
                print(f"   {i}. [{finding.agent_name}] {finding.content[:120]}")
            print()

        if session.synthesis.recommendations:
            print("💡 Recommendations:")
            for recommendation in session.synthesis.recommendations:
                print(f"   • {recommendation}")
            print()

        confidence = session.synthesis.overall_confidence
        conf_bar = "█" * int(confidence * 10) + "░" * (10 - int(confidence * 10))
        print(f"📈 Heuristic confidence: [{conf_bar}] {confidence * 100:.0f}%\n")

    if session.citations:
        print("📚 Sources:")
        for citation in session.citations[:5]:
            print(f"   {citation.citation_text}")
        print()

    clusters = lead.get_concept_clusters()
    print(f"🌌 Embedding space: {len(lead.get_embedding_space())} points, {len(clusters)} concept clusters")

    print("\n" + "=" * 60)
    print("Demo complete!")
    print("=" * 60 + "\n")


def main():
    parser = argparse.ArgumentParser(description="Research Network Demo")
    parser.add_argument("topic", nargs="?", default="artificial intelligence",
                        help="Research topic to investigate")
    parser.add_argument("--offline", action="store_true", help="Use offline fallbacks (no API key needed)")
    parser.add_argument("--seed", type=int, default=None, help="Seed for jitter and heuristic confidence")
    args = parser.parse_args()

    from research_network.config import Config
    from research_network.core.logger import configure_logging

    configure_logging(Config.from_env().log_level, noisy_level="ERROR")
    asyncio.run(run_demo(args.topic, args.offline, args.seed))


if __name__ == "__main__":
    main()
