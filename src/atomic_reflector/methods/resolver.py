"""Fuzzy method resolution over the catalogued types and modules.

Each dimension of a :class:`MethodFilter` (namespace, type name, method name,
parameter list) is checked independently against an ordinal threshold and the
checks are AND-ed. Name dimensions use :class:`MatchLevel`; the parameter
list uses :class:`ParameterMatch`. A threshold of 0, or an unset filter
field, disables the dimension.
"""
from __future__ import annotations

import inspect
import json
import logging
from enum import IntEnum
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterator, List, Optional, Sequence

from ..core.Exceptions import AmbiguousMethodError, MethodNotFoundError, ParameterMismatchError
from ..core.Scope import MemberScope
from ..typeinfo.introspection import is_assignable
from .descriptor import MethodDescriptor, MethodFilter, ParameterFilter

if TYPE_CHECKING:  # pragma: no cover
    from ..reflector import Reflector

logger = logging.getLogger(__name__)


class MatchLevel(IntEnum):
    """Name match strictness, loosest (1) to exact (6)."""

    DISABLED = 0
    CONTAINS_IGNORE_CASE = 1
    CONTAINS = 2
    STARTS_WITH_IGNORE_CASE = 3
    STARTS_WITH = 4
    EQUALS_IGNORE_CASE = 5
    EXACT = 6


class ParameterMatch(IntEnum):
    DISABLED = 0
    ARITY = 1
    COMPATIBLE = 2
    EXACT = 3


def compare(candidate: Optional[str], wanted: Optional[str]) -> int:
    """Score how well ``candidate`` matches ``wanted`` on the :class:`MatchLevel` scale."""
    if not candidate or not wanted:
        return 0
    if candidate == wanted:
        return MatchLevel.EXACT
    lower_candidate, lower_wanted = candidate.lower(), wanted.lower()
    if lower_candidate == lower_wanted:
        return MatchLevel.EQUALS_IGNORE_CASE
    if candidate.startswith(wanted):
        return MatchLevel.STARTS_WITH
    if lower_candidate.startswith(lower_wanted):
        return MatchLevel.STARTS_WITH_IGNORE_CASE
    if wanted in candidate:
        return MatchLevel.CONTAINS
    if lower_wanted in lower_candidate:
        return MatchLevel.CONTAINS_IGNORE_CASE
    return 0


def name_matches(candidate: Optional[str], wanted: Optional[str], level: int) -> bool:
    if level <= 0 or not wanted:
        return True
    return compare(candidate, wanted) >= level


class MethodResolver:
    def __init__(self, reflector: "Reflector") -> None:
        self._reflector = reflector
        self._cache: Dict[Any, MethodDescriptor] = {}

    # ------------------------------------------------------------------ #
    # Descriptors
    # ------------------------------------------------------------------ #
    def describe(
        self,
        function: Callable[..., Any],
        *,
        owner: Optional[type] = None,
        name: Optional[str] = None,
        is_static: bool = False,
        is_classmethod: bool = False,
    ) -> MethodDescriptor:
        """Descriptor for ``function``, created once per (owner, function)."""
        if isinstance(function, (staticmethod, classmethod)):
            is_classmethod = is_classmethod or isinstance(function, classmethod)
            is_static = True
            function = function.__func__
        elif inspect.ismethod(function):
            owner = owner or (function.__self__ if inspect.isclass(function.__self__) else type(function.__self__))
            is_classmethod = is_classmethod or inspect.isclass(function.__self__)
            function = function.__func__
        if not callable(function):
            raise ParameterMismatchError(f"Expected a method or function, got {type(function).__name__} {function!r}.")
        key = (owner, function)
        descriptor = self._cache.get(key)
        if descriptor is None:
            descriptor = MethodDescriptor(
                function,
                owner=owner,
                name=name,
                is_static=is_static,
                is_classmethod=is_classmethod,
                generator=self._reflector.schema,
            )
            self._cache[key] = descriptor
        return descriptor

    def candidates(self, scope: Optional[MemberScope] = None) -> Iterator[MethodDescriptor]:
        """Every reflectable method of the catalogued types and modules within ``scope``."""
        scope = self._reflector.settings.method_scope if scope is None else scope
        catalog = self._reflector.catalog

        for owner in catalog.types():
            if not inspect.isclass(owner) or owner.__module__ == "builtins":
                continue
            abstract = inspect.isabstract(owner)
            for name, attr in vars(owner).items():
                if name.startswith("__"):
                    continue
                is_classmethod = isinstance(attr, classmethod)
                is_static = is_classmethod or isinstance(attr, staticmethod)
                function = attr.__func__ if is_static else attr
                if not inspect.isfunction(function) or getattr(function, "__reflector_ignore__", False):
                    continue
                if abstract and not is_static:
                    continue
                if not scope.admits(public=not name.startswith("_"), static=is_static):
                    continue
                yield self.describe(
                    function, owner=owner, name=name, is_static=is_static, is_classmethod=is_classmethod
                )

        for module in catalog.modules():
            for name, obj in vars(module).items():
                if name.startswith("__") or not inspect.isfunction(obj) or obj.__module__ != module.__name__:
                    continue
                if getattr(obj, "__reflector_ignore__", False):
                    continue
                if not scope.admits(public=not name.startswith("_"), static=True):
                    continue
                yield self.describe(obj, name=name)

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    def find_method(
        self,
        method_filter: MethodFilter,
        *,
        known_namespace: bool = False,
        namespace_match_level: Optional[int] = None,
        type_name_match_level: Optional[int] = None,
        method_name_match_level: Optional[int] = None,
        parameters_match_level: Optional[int] = None,
        scope: Optional[MemberScope] = None,
    ) -> List[MethodDescriptor]:
        """All candidates that clear every enabled threshold.

        ``known_namespace`` demands exact namespace equality regardless of
        ``namespace_match_level``. Failures while scanning are logged and
        yield an empty result.
        """
        settings = self._reflector.settings
        ns_level = settings.namespace_match_level if namespace_match_level is None else namespace_match_level
        type_level = settings.type_name_match_level if type_name_match_level is None else type_name_match_level
        name_level = settings.method_name_match_level if method_name_match_level is None else method_name_match_level
        param_level = settings.parameters_match_level if parameters_match_level is None else parameters_match_level

        found: List[MethodDescriptor] = []
        try:
            for descriptor in self.candidates(scope):
                if known_namespace and method_filter.namespace:
                    if descriptor.namespace != method_filter.namespace:
                        continue
                elif not name_matches(descriptor.namespace, method_filter.namespace, ns_level):
                    continue
                if not name_matches(descriptor.type_name, method_filter.type_name, type_level):
                    continue
                if not name_matches(descriptor.name, method_filter.method_name, name_level):
                    continue
                if not self.parameters_match(descriptor, method_filter.parameters, param_level):
                    continue
                if descriptor not in found:
                    found.append(descriptor)
        except Exception as e:
            logger.error(f"MethodResolver: scanning for {method_filter} failed: {e}", exc_info=True)
            return []
        logger.debug(f"MethodResolver: {method_filter} matched {len(found)} method(s)")
        return found

    def find_single(
        self,
        method_filter: MethodFilter,
        *,
        argument_names: Optional[Sequence[str]] = None,
        **levels: Any,
    ) -> MethodDescriptor:
        """Exactly one method for ``method_filter``.

        When several match, candidates whose parameters fit ``argument_names``
        are preferred.

        Raises
        ------
        MethodNotFoundError
            Nothing matched.
        AmbiguousMethodError
            More than one method remains.
        """
        found = self.find_method(method_filter, **levels)
        if not found:
            raise MethodNotFoundError(f"Method not found.\n{method_filter}")
        if len(found) > 1 and argument_names is not None:
            narrowed = [d for d in found if d.accepts(argument_names)]
            if narrowed:
                found = narrowed
        if len(found) > 1:
            listing = json.dumps(
                [d.to_dict(include_schemas=False) for d in found],
                indent=self._reflector.settings.json_indent,
            )
            raise AmbiguousMethodError(
                "Found more than one method. Only single method should be targeted. "
                "Please specify the method name more precisely.\n"
                f"Found {len(found)} method(s):\n```json\n{listing}\n```",
                candidates=found,
            )
        return found[0]

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #
    def parameters_match(
        self,
        descriptor: MethodDescriptor,
        wanted: Optional[Sequence[ParameterFilter]],
        level: int,
    ) -> bool:
        if level <= 0 or wanted is None:
            return True
        params = [p for p in descriptor.parameters if not p.is_variadic]
        if len(params) != len(wanted):
            return False
        if level == ParameterMatch.ARITY:
            return True
        for param, spec in zip(params, wanted):
            if spec.name and param.name != spec.name:
                return False
            if not spec.type_name or param.type == spec.type_name:
                continue
            if level >= ParameterMatch.EXACT:
                return False
            source = self._reflector.catalog.resolve(spec.type_name)
            if source is None or not is_assignable(source, param.annotation):
                return False
        return True
