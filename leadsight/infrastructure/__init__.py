"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the application to the outside world (upstream LLM APIs, config
files, the console) by implementing the interfaces defined in the domain
layer. Also holds the resilience services.
"""
