"""Core Application Layer: Orchestrates use cases and application logic.

Connects the domain layer with the infrastructure layer. Contains the
batch orchestrator, the insight and pitch services and the command handler.
"""
