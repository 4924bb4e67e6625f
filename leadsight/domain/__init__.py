"""Domain Layer: value objects, error variants, events and interfaces.

Has no dependencies on the infrastructure or core layers.
"""
