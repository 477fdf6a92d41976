"""swarm-ai — dependency-driven multi-agent mission orchestrator."""

__version__ = "1.0.0"
