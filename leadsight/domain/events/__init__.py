"""Domain Event definitions.

Progress events are the public output of a batch run; resilience events
describe what happened inside a single resilient call.
"""
