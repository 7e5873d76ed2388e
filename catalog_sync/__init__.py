"""
Model catalog synchronization for fal.ai

Keeps the local catalog of models, input parameters and pricing in sync
with the provider's model registry.
"""

__version__ = "1.0.0"
