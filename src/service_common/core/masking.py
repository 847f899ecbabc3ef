"""
Key-based masking of structured payloads.

Used to sanitize JSON request and response bodies before they are logged.
Matching is case-insensitive and by substring, so ``user_password`` is caught
by the ``password`` rule.
"""

from typing import Any, Dict, Iterable, Optional, Set

import structlog

from ..config import MaskingSettings
from .safe_logging import mask

logger = structlog.get_logger(__name__)


class SensitiveDataMasker:
    """
    Masks values of sensitive keys in nested dict/list structures.

    Features:
    - Configurable sensitive key list
    - Partial masking (keep trailing characters) per key
    - Deep traversal; the input is never mutated
    """

    def __init__(
        self,
        sensitive_keys: Iterable[str],
        partial_rules: Optional[Dict[str, Dict[str, Any]]] = None,
    ) -> None:
        self.sensitive_keys: Set[str] = {key.lower() for key in sensitive_keys}
        self.partial_rules = {key.lower(): rule for key, rule in (partial_rules or {}).items()}

    @classmethod
    def from_settings(cls, settings: MaskingSettings) -> "SensitiveDataMasker":
        return cls(settings.sensitive_keys, settings.partial_rules)

    def mask_data(self, data: Any) -> Any:
        """Return a masked deep copy of data."""
        return self._deep_copy_and_mask(data)

    def _deep_copy_and_mask(self, obj: Any, path: str = "") -> Any:
        if isinstance(obj, dict):
            masked_dict = {}
            for key, value in obj.items():
                current_path = f"{path}.{key}" if path else str(key)

                if isinstance(key, str) and self.should_mask_key(key):
                    masked_dict[key] = self._mask_value(key, value)
                    logger.debug("Masked sensitive field", path=current_path)
                else:
                    masked_dict[key] = self._deep_copy_and_mask(value, current_path)

            return masked_dict

        if isinstance(obj, list):
            return [self._deep_copy_and_mask(item, f"{path}[{i}]") for i, item in enumerate(obj)]

        return obj

    def should_mask_key(self, key: str) -> bool:
        key_lower = key.lower()
        return any(sensitive in key_lower for sensitive in self.sensitive_keys)

    def _mask_value(self, key: str, value: Any) -> Any:
        if value is None:
            return None

        str_value = value if isinstance(value, str) else str(value)
        key_lower = key.lower()

        # Exact rule first, then substring rule
        rule = self.partial_rules.get(key_lower)
        if rule is None:
            for rule_key, rule_config in self.partial_rules.items():
                if rule_key in key_lower:
                    rule = rule_config
                    break

        show_last = int(rule.get("show_last", 0)) if rule else 0
        return mask(str_value, show_last)
