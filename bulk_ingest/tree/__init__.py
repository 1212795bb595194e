"""Forest construction, validation, inheritance and ordering."""
from .builder import TreeBuilder, generate_temp_id
from .forest import Forest
from .inheritance import InheritanceResolver, batch_assign
from .ordering import order_for_persistence
from .validator import Validator

__all__ = [
    "TreeBuilder",
    "generate_temp_id",
    "Forest",
    "InheritanceResolver",
    "batch_assign",
    "order_for_persistence",
    "Validator",
]
