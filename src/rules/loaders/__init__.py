"""
Rule loaders package.

This package contains loaders that seed the rule store from files.
"""

from src.rules.loaders.yaml_loader import YamlRuleLoader

__all__ = [
    "YamlRuleLoader",
]
