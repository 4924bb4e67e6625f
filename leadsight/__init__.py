"""leadsight: resilient multi-key LLM client and batch insight pipeline."""

__version__ = "0.1.0"
