"""
Constructor argument resolution.

Fills constructor parameters the user did not supply from a small,
ordered table of (type, name pattern) -> default rules. The first rule
that matches a parameter wins. Resolved values are a convenience, not a
validity guarantee: the simulation step is what catches bad values.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Pattern, Sequence, Tuple

from somnia_deployer.constants import (
    DEFAULT_DECIMALS,
    DEFAULT_NUMBER,
    DEFAULT_SUPPLY,
    DEFAULT_UINT8,
    SYMBOL_LENGTH,
)
from somnia_deployer.errors import ArgumentResolutionError

_UINT = re.compile(r"^uint(\d+)?$")
_INT = re.compile(r"^int(\d+)?$")


class ResolutionSource(str, Enum):
    USER_SUPPLIED = "user-supplied"
    AUTO_DEFAULT = "auto-default"
    DEPLOYER_ADDRESS = "deployer-address"
    PROMPTED = "prompted"


@dataclass(frozen=True)
class ConstructorParam:
    """One declared constructor parameter."""

    index: int
    name: str
    type: str

    @classmethod
    def from_abi(cls, index: int, raw: Mapping[str, Any]) -> "ConstructorParam":
        return cls(index=index, name=raw.get("name") or f"arg{index}", type=raw.get("type", ""))


@dataclass(frozen=True)
class ResolvedArgument:
    name: str
    type: str
    value: Any
    source: ResolutionSource


@dataclass(frozen=True)
class RuleContext:
    parameter: ConstructorParam
    artifact_name: str
    deployer_address: str


@dataclass(frozen=True)
class DefaultRule:
    """
    A default applies when the type predicate holds and, if a name pattern
    is set, the lowercase parameter name contains it.
    """

    label: str
    matches_type: Callable[[str], bool]
    produce: Callable[[RuleContext], Any]
    name_pattern: Optional[Pattern[str]] = None
    source: ResolutionSource = ResolutionSource.AUTO_DEFAULT

    def applies_to(self, parameter: ConstructorParam) -> bool:
        if not self.matches_type(parameter.type):
            return False
        if self.name_pattern is None:
            return True
        return bool(self.name_pattern.search(parameter.name.lower()))


def _is_string(abi_type: str) -> bool:
    return abi_type == "string"


def _is_uint(abi_type: str) -> bool:
    return bool(_UINT.match(abi_type))


def _is_uint8(abi_type: str) -> bool:
    return abi_type == "uint8"


def _is_integer(abi_type: str) -> bool:
    return bool(_UINT.match(abi_type) or _INT.match(abi_type))


DEFAULT_RULES: Tuple[DefaultRule, ...] = (
    DefaultRule(
        "string name -> artifact name",
        _is_string,
        lambda ctx: ctx.artifact_name,
        re.compile("name"),
    ),
    DefaultRule(
        "string symbol -> abbreviated artifact name",
        _is_string,
        lambda ctx: ctx.artifact_name[:SYMBOL_LENGTH].upper(),
        re.compile("symbol"),
    ),
    DefaultRule(
        "string -> Default<param>",
        _is_string,
        lambda ctx: f"Default{ctx.parameter.name}",
    ),
    DefaultRule(
        "uint decimals -> 18",
        _is_uint,
        lambda ctx: DEFAULT_DECIMALS,
        re.compile("decimal"),
    ),
    DefaultRule(
        "uint supply -> 1,000,000",
        _is_uint,
        lambda ctx: DEFAULT_SUPPLY,
        re.compile("supply"),
    ),
    DefaultRule(
        "address -> deployer",
        lambda t: t == "address",
        lambda ctx: ctx.deployer_address,
        source=ResolutionSource.DEPLOYER_ADDRESS,
    ),
    DefaultRule(
        "bool -> true",
        lambda t: t == "bool",
        lambda ctx: True,
    ),
    DefaultRule(
        "uint8 -> 1",
        _is_uint8,
        lambda ctx: DEFAULT_UINT8,
    ),
    DefaultRule(
        "integer -> 100",
        _is_integer,
        lambda ctx: DEFAULT_NUMBER,
    ),
)

Prompt = Callable[[ConstructorParam], Any]


class ArgumentResolver:
    """
    Resolves constructor arguments against a rule table.

    Example:
        >>> resolver = ArgumentResolver()
        >>> args = resolver.resolve(artifact.constructor_inputs, [], deployer, "MyToken")
        >>> [a.value for a in args]
        ['MyToken', 'MYTOK', 18, 1000000]
    """

    def __init__(self, rules: Sequence[DefaultRule] = DEFAULT_RULES) -> None:
        self.rules = tuple(rules)

    def rule_for(self, parameter: ConstructorParam) -> Optional[DefaultRule]:
        return next((rule for rule in self.rules if rule.applies_to(parameter)), None)

    def resolve(
        self,
        inputs: Sequence[Mapping[str, Any]],
        user_args: Optional[Sequence[Any]],
        deployer_address: str,
        artifact_name: str,
        prompt: Optional[Prompt] = None,
    ) -> List[ResolvedArgument]:
        """
        Produce one resolved value per declared parameter.

        Args:
            inputs: Constructor ABI inputs (``{"name", "type"}`` mappings)
            user_args: Values the user supplied, positionally; may be partial
            deployer_address: Address of the deploying credential
            artifact_name: Contract name, used by the string rules
            prompt: Called for parameters no rule can default

        Raises:
            ArgumentResolutionError: too many values, or a parameter that
                has neither a user value, a rule, nor a prompt.
        """
        parameters = [ConstructorParam.from_abi(i, raw) for i, raw in enumerate(inputs)]
        supplied = list(user_args or [])

        if len(supplied) > len(parameters):
            raise ArgumentResolutionError(
                f"Expected {len(parameters)} constructor arguments, got {len(supplied)}"
            )

        if len(supplied) == len(parameters):
            return [
                ResolvedArgument(p.name, p.type, value, ResolutionSource.USER_SUPPLIED)
                for p, value in zip(parameters, supplied)
            ]

        resolved: List[ResolvedArgument] = []
        for parameter in parameters:
            if parameter.index < len(supplied):
                resolved.append(
                    ResolvedArgument(
                        parameter.name,
                        parameter.type,
                        supplied[parameter.index],
                        ResolutionSource.USER_SUPPLIED,
                    )
                )
                continue

            rule = self.rule_for(parameter)
            if rule is not None:
                ctx = RuleContext(parameter, artifact_name, deployer_address)
                resolved.append(
                    ResolvedArgument(parameter.name, parameter.type, rule.produce(ctx), rule.source)
                )
            elif prompt is not None:
                resolved.append(
                    ResolvedArgument(
                        parameter.name, parameter.type, prompt(parameter), ResolutionSource.PROMPTED
                    )
                )
            else:
                raise ArgumentResolutionError(
                    f"No default for constructor parameter '{parameter.name}' ({parameter.type})",
                    parameter=parameter.name,
                    param_type=parameter.type,
                )
        return resolved


def resolve(
    inputs: Sequence[Mapping[str, Any]],
    user_args: Optional[Sequence[Any]],
    deployer_address: str,
    artifact_name: str,
    prompt: Optional[Prompt] = None,
) -> List[ResolvedArgument]:
    """Resolve with the default rule table."""
    return ArgumentResolver().resolve(inputs, user_args, deployer_address, artifact_name, prompt)


def summarize(arguments: Sequence[ResolvedArgument]) -> List[Dict[str, Any]]:
    """JSON-friendly view used in logs and deployment records."""
    return [
        {"name": a.name, "type": a.type, "value": a.value, "source": a.source.value}
        for a in arguments
    ]
