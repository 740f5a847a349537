"""
Research Network

A multi-agent research system that streams its work to the browser:
- Lead Researcher: Plans the session, fans subtasks out, synthesizes the report
- Research Subagents: Specialized personas (background, trends, technical, impact)
- Embedding Space: Heuristic 3-D projection of findings for live visualization
- Live Channel: WebSocket broadcast of session and embedding events

Key Features:
- Parallel fan-out/fan-in of subagents with per-worker graceful degradation
- Deterministic offline fallbacks for every completion and search call
- Concept clustering and novelty/importance scoring across the process lifetime
- Deduplicated citations and a five-part synthesis per session
- Best-effort SQLite record store with a fixed schema
"""

__version__ = "1.0.0"
__author__ = "Research Network Team"
