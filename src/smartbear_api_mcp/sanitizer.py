"""Field redaction for decoded API payloads.

Every resource type a client returns has a FieldPolicy declared up front in one
FieldPolicyRegistry. An allow-list keeps only the named top-level keys of each object;
a deny-list strips the named keys wherever they occur; passthrough returns the payload
untouched, and has to be declared as such. A registry can also hide every string value
that starts with a given prefix, whatever the policy.
"""
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

from .errors import UndeclaredResourceType
from .models import FieldPolicy


def _pick(obj: Dict[str, Any], fields: Tuple[str, ...]) -> Dict[str, Any]:
    return {key: obj[key] for key in fields if key in obj}


def _strip(value: Any, fields: frozenset) -> Any:
    if isinstance(value, dict):
        return {key: _strip(item, fields) for key, item in value.items() if key not in fields}
    if isinstance(value, list):
        return [_strip(item, fields) for item in value]
    return value


def _drop_prefixed(value: Any, prefix: str) -> Any:
    if isinstance(value, dict):
        return {
            key: _drop_prefixed(item, prefix)
            for key, item in value.items()
            if not (isinstance(item, str) and item.startswith(prefix))
        }
    if isinstance(value, list):
        return [
            _drop_prefixed(item, prefix)
            for item in value
            if not (isinstance(item, str) and item.startswith(prefix))
        ]
    return value


def sanitize(value: Any, policy: Optional[FieldPolicy]) -> Any:
    """Returns a new, projected copy of ``value``; the input is never modified."""
    if policy is None or not policy.redacts:
        return value

    if policy.mode == "deny":
        return _strip(value, frozenset(policy.fields))

    if isinstance(value, list):
        return [_pick(item, policy.fields) if isinstance(item, dict) else item for item in value]
    if isinstance(value, dict):
        return _pick(value, policy.fields)
    return value


class FieldPolicyRegistry:
    def __init__(self, policies: Mapping[str, FieldPolicy]):
        self._policies: Dict[str, FieldPolicy] = dict(policies)
        self._hidden_prefix: Optional[str] = None

    def hide_values_starting_with(self, prefix: str) -> None:
        """
        Also drops, from every resource type and at every depth, string values that start
        with ``prefix`` (typically the API's own base URL). Applies on top of each policy,
        passthrough included.
        """
        self._hidden_prefix = prefix

    def policy_for(self, resource_type: str) -> FieldPolicy:
        try:
            return self._policies[resource_type]
        except KeyError:
            raise UndeclaredResourceType(resource_type) from None

    def apply(self, resource_type: str, value: Any) -> Tuple[Any, bool]:
        """Sanitizes ``value`` and reports whether redaction was active."""
        policy = self.policy_for(resource_type)
        value = sanitize(value, policy)
        if self._hidden_prefix:
            return _drop_prefixed(value, self._hidden_prefix), True
        return value, policy.redacts

    def describe(self) -> Dict[str, str]:
        """Human-readable summary of every redaction decision, for review."""
        summary = {}
        for resource_type, policy in sorted(self._policies.items()):
            if policy.mode == "passthrough":
                summary[resource_type] = "passthrough (all fields exposed)"
            else:
                summary[resource_type] = f"{policy.mode}: {', '.join(policy.fields)}"
        if self._hidden_prefix:
            summary["*"] = f"string values starting with {self._hidden_prefix} removed"
        return summary

    def __contains__(self, resource_type: str) -> bool:
        return resource_type in self._policies

    def __iter__(self) -> Iterator[str]:
        return iter(self._policies)
