"""
Label Selector Value Object

Architectural Intent:
- Immutable label-equality predicate identifying a set of workload instances
- Validates keys and values at construction so evaluation stays total
- Supports "k=v,k2=v2" parsing for the CLI
"""

import re
from dataclasses import dataclass
from typing import Mapping

from stagegate.domain.errors import PolicyEvaluationError

# name part: alnum at both ends, [-_.] allowed inside, max 63
_NAME_RE = re.compile(r"^[A-Za-z0-9]([A-Za-z0-9_.-]{0,61}[A-Za-z0-9])?$")

# optional DNS subdomain prefix, e.g. app.kubernetes.io/
_PREFIX_RE = re.compile(
    r"^[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?(\.[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?)*$"
)


def _is_valid_key(key: str) -> bool:
    if not isinstance(key, str) or not key:
        return False
    if "/" in key:
        prefix, name = key.split("/", 1)
        if len(prefix) > 253 or not _PREFIX_RE.match(prefix):
            return False
    else:
        name = key
    return bool(_NAME_RE.match(name))


def _is_valid_value(value: str) -> bool:
    if not isinstance(value, str):
        return False
    return value == "" or bool(_NAME_RE.match(value))


@dataclass(frozen=True)
class LabelSelector:
    """
    Value Object: every (key, value) pair must be present in a label set.
    An empty selector matches every label set.
    """
    match_labels: tuple[tuple[str, str], ...] = ()

    def __post_init__(self) -> None:
        for key, value in self.match_labels:
            if not _is_valid_key(key):
                raise PolicyEvaluationError(f"Invalid label key: {key!r}")
            if not _is_valid_value(value):
                raise PolicyEvaluationError(
                    f"Invalid label value for {key!r}: {value!r}"
                )
        keys = [k for k, _ in self.match_labels]
        if len(keys) != len(set(keys)):
            raise PolicyEvaluationError(f"Duplicate label keys in selector: {keys}")

    @staticmethod
    def of(labels: Mapping[str, str]) -> "LabelSelector":
        if not isinstance(labels, Mapping):
            raise PolicyEvaluationError(
                f"Selector must be a mapping of labels, got {type(labels).__name__}"
            )
        return LabelSelector(tuple(sorted(labels.items())))

    @staticmethod
    def parse(expression: str) -> "LabelSelector":
        """
        Parses 'app=frontend,tier=web' into a selector. Whitespace is ignored.
        """
        pairs: dict[str, str] = {}
        for part in expression.split(","):
            part = part.strip()
            if not part:
                continue
            if "=" not in part:
                raise PolicyEvaluationError(f"Expected key=value, got {part!r}")
            key, value = part.split("=", 1)
            pairs[key.strip()] = value.strip()
        return LabelSelector.of(pairs)

    def matches(self, labels: Mapping[str, str]) -> bool:
        return all(labels.get(key) == value for key, value in self.match_labels)

    def as_dict(self) -> dict[str, str]:
        return dict(self.match_labels)

    def __str__(self) -> str:
        if not self.match_labels:
            return "*"
        return ",".join(f"{k}={v}" for k, v in self.match_labels)
