#!/usr/bin/env python3
"""
Run the Research Network API server.

Usage:
    python run.py                    # Run on the configured port (default 4321)
    python run.py --port 8080        # Run on custom port
    python run.py --reload           # Run with hot reload (dev mode)
    python run.py --demo             # Force offline fallbacks for every provider

Environment Variables (set in .env file or export):
    AZURE_API_KEY=...               # Primary: Azure OpenAI key (with AZURE_ENDPOINT)
    OPENAI_API_KEY=sk-...           # Fallback: OpenAI API key
    ANTHROPIC_API_KEY=sk-ant-...    # Fallback: Anthropic/Claude API key
    PERPLEXITY_API_KEY=pplx-...     # Optional: web search (Tavily with TAVILY_API_KEY)
    CAPABILITY_MODE=demo            # Optional: deterministic offline content only

Quick Start:
    1. Create a .env file with your API keys
    2. Install the package: pip install -e .
    3. Run the server: python run.py
    4. Connect a browser client to ws://localhost:4321/ws
"""

import os
import argparse
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables before the configuration module reads them
env_file = Path(__file__).parent / ".env"
if env_file.exists():
    load_dotenv(env_file)
    print(f"✅ Loaded .env from {env_file}")


def main():
    parser = argparse.ArgumentParser(description="Run the Research Network API")
    parser.add_argument("--host", default=os.getenv("API_HOST", "0.0.0.0"), help="Host to bind to")
    parser.add_argument("--port", type=int, default=int(os.getenv("API_PORT", "4321")), help="Port to bind to")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    parser.add_argument("--demo", action="store_true", help="Use offline fallbacks only")
    args = parser.parse_args()

    if args.demo:
        os.environ["CAPABILITY_MODE"] = "demo"

    from research_network.config import config
    from research_network.core.logger import configure_logging

    configure_logging(config.log_level)

    if config.demo_mode:
        print("ℹ️  Demo mode: completion and search use offline fallback content.")
    elif config.completion_configured:
        print(f"✅ Using {config.llm_provider} as LLM provider ({config.llm_model})")
    else:
        print("⚠️  Warning: No LLM API key found. Completions will use fallback content.")
        print("   Set AZURE_API_KEY + AZURE_ENDPOINT, OPENAI_API_KEY or ANTHROPIC_API_KEY.")

    if not config.demo_mode and not config.search_configured:
        print("ℹ️  Note: PERPLEXITY_API_KEY / TAVILY_API_KEY not set. Search will use fallback data.")

    print(f"""
╔══════════════════════════════════════════════════════════════╗
║                 Multi-Agent Research Network                  ║
╠══════════════════════════════════════════════════════════════╣
║  🧭 Lead Researcher   - Planning, fan-out & synthesis         ║
║  🔍 Explorer          - Background & history                  ║
║  📈 Trend Scout       - Current state & trends                ║
║  🛠️  Analyst           - Technical implementation              ║
║  ⚖️  Evaluator         - Impact & future outlook               ║
╚══════════════════════════════════════════════════════════════╝

🚀 Starting server at http://{args.host}:{args.port}
📖 API docs at http://localhost:{args.port}/docs
🔌 Live channel at ws://localhost:{args.port}/ws
""")

    import uvicorn
    uvicorn.run(
        "research_network.api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload
    )


if __name__ == "__main__":
    main()
