"""Per-node field validation over a forest."""
from typing import Dict, Optional
import logging

from ..models import ErrorCode, Node
from .forest import Forest

logger = logging.getLogger(__name__)

VALIDATED_FIELDS = ("name", "link", "parent_temp_id")


class Validator:
    """
    Annotates nodes with field-level error codes.

    ``validate`` recomputes every field of every node; ``validate_field``
    only touches the edited field so other errors stay as they are.
    """

    def __init__(self, forest: Forest):
        self._forest = forest

    def check_field(self, node: Node, field: str) -> Optional[ErrorCode]:
        if field == "name":
            return None if node.name and node.name.strip() else ErrorCode.REQUIRED
        if field == "link":
            if node.is_folder and not (node.link or "").strip():
                return ErrorCode.REQUIRED
            return None
        if field == "parent_temp_id":
            if node.parent_temp_id is None:
                return None
            parent = self._forest.get(node.parent_temp_id)
            if parent is None or not parent.is_folder:
                return ErrorCode.INVALID_PARENT
            return None
        raise ValueError(f"Unknown field: {field}")

    def validate_field(self, node: Node, field: str) -> bool:
        """Raise or clear one field's error. Returns True when the field is valid."""
        error = self.check_field(node, field)
        if error is None:
            node.errors.pop(field, None)
            return True
        node.errors[field] = error
        return False

    def validate_node(self, node: Node) -> bool:
        errors: Dict[str, ErrorCode] = {}
        for field in VALIDATED_FIELDS:
            error = self.check_field(node, field)
            if error is not None:
                errors[field] = error
        node.errors = errors
        return not errors

    def validate(self) -> bool:
        """Validate the whole forest. Returns True when it is submit-ready."""
        invalid = 0
        for node in self._forest:
            if not self.validate_node(node):
                invalid += 1
        if invalid:
            logger.debug(f"Validation found {invalid} node(s) with errors")
        return invalid == 0

    def is_submit_ready(self) -> bool:
        return not any(node.errors for node in self._forest)
