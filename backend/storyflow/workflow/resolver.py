# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Context Resolver

Path queries, conditions and templates over an execution context.

Path syntax (JSONPath style, leading ``$`` optional):
    chapters[0].title      $.outline.output.chapters[-1]
    $['key with space']    characters[*].name      nodeOutputs.*.status

The first segment is looked up in the scope, then in ``variables``, then
among node ids (giving that node's output record). Strings holding JSON are
parsed when a path steps into them, so raw LLM text can be queried.

Conditions are evaluated on the AST with a whitelist, never with eval().
``{{path}}``, ``${path}`` and ``$.path`` references may be embedded, and the
JavaScript spellings ``=== !== && || ! true false null`` are accepted.

Any parse failure or unresolvable reference raises ConfigurationError; there
is no silent default.
"""

import ast
import json
import operator
import re
from typing import Any, Dict, List, Optional, Tuple

from storyflow.core.errors import ConfigurationError
from storyflow.core.logging import get_engine_logger

logger = get_engine_logger("resolver")


# Allowed operators for safe evaluation
SAFE_OPERATORS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Mod: operator.mod,
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.Not: operator.not_,
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
    ast.In: lambda x, y: x in y,
    ast.NotIn: lambda x, y: x not in y,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
}


# Allowed functions for safe evaluation
SAFE_FUNCTIONS = {
    'len': len,
    'str': str,
    'int': int,
    'float': float,
    'bool': bool,
    'abs': abs,
    'min': min,
    'max': max,
}


class _Wildcard:
    def __repr__(self):
        return "*"


WILDCARD = _Wildcard()

_SEGMENT = re.compile(
    r"""\.?(?P<key>[\w][\w\-]*)"""
    r"""|\.?\[(?P<index>-?\d+)\]"""
    r"""|\.?\[(?P<quoted>'[^']*'|"[^"]*")\]"""
    r"""|\.?(?P<star>\*|\[\*\])"""
)

_FENCED_JSON = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)
_STRING_LITERAL = re.compile(r"""('(?:\\.|[^'\\])*'|"(?:\\.|[^"\\])*")""")
_MUSTACHE_REF = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")
_DOLLAR_BRACE_REF = re.compile(r"\$\{\s*([^{}]+?)\s*\}")
_DOLLAR_PATH_REF = re.compile(r"\$(?:\.[\w\-]+|\.\*|\[[^\]'\"]*\])+")
_JS_LITERALS = {"true": "True", "false": "False", "null": "None", "undefined": "None"}


class _Missing(Exception):
    pass


# =============================================================================
# PATHS
# =============================================================================

def parse_path(path: str) -> List[Any]:
    """
    Split a path query into keys, integer indexes and WILDCARD.

    Raises:
        ConfigurationError: If the path is empty or malformed
    """
    text = path.strip()
    if text.startswith("$"):
        text = text[1:]
    if not text:
        raise ConfigurationError(f"Empty path query: '{path}'")

    segments: List[Any] = []
    pos = 0
    while pos < len(text):
        match = _SEGMENT.match(text, pos)
        if match is None or match.end() == pos:
            raise ConfigurationError(f"Invalid path query '{path}' at position {pos}")
        if match.group("key") is not None:
            segments.append(match.group("key"))
        elif match.group("index") is not None:
            segments.append(int(match.group("index")))
        elif match.group("quoted") is not None:
            segments.append(match.group("quoted")[1:-1])
        else:
            segments.append(WILDCARD)
        pos = match.end()
    return segments


def parse_structured(value: Any) -> Any:
    """Return the JSON inside a string (optionally fenced), else the value itself."""
    if not isinstance(value, str):
        return value
    text = value.strip()
    fenced = _FENCED_JSON.search(text)
    if fenced:
        text = fenced.group(1).strip()
    if not text or text[0] not in "[{":
        return value
    try:
        return json.loads(text)
    except ValueError:
        return value


def _step(value: Any, segment: Any) -> Any:
    value = parse_structured(value)
    if isinstance(value, dict):
        if segment in value:
            return value[segment]
        if isinstance(segment, int) and str(segment) in value:
            return value[str(segment)]
        raise _Missing(segment)
    if isinstance(value, (list, tuple)):
        if isinstance(segment, str) and segment.lstrip("-").isdigit():
            segment = int(segment)
        if isinstance(segment, int) and -len(value) <= segment < len(value):
            return value[segment]
        raise _Missing(segment)
    raise _Missing(segment)


def _expand(value: Any) -> List[Any]:
    value = parse_structured(value)
    if isinstance(value, dict):
        return list(value.values())
    if isinstance(value, (list, tuple)):
        return list(value)
    raise _Missing(WILDCARD)


def lookup_root(name: Any, scope: Dict[str, Any]) -> Any:
    """Resolve the first path segment: scope, then variables, then node ids."""
    if name in scope:
        return scope[name]
    variables = scope.get("variables")
    if isinstance(variables, dict) and name in variables:
        return variables[name]
    node_outputs = scope.get("nodeOutputs")
    if isinstance(node_outputs, dict) and name in node_outputs:
        return node_outputs[name]
    raise _Missing(name)


def resolve_path(path: str, scope: Dict[str, Any]) -> Any:
    """
    Resolve a path query against a scope.

    Wildcards turn the result into a list.

    Raises:
        ConfigurationError: If the path is malformed or resolves to nothing
    """
    segments = parse_path(path)
    first, rest = segments[0], segments[1:]
    if first is WILDCARD:
        raise ConfigurationError(f"Path query '{path}' cannot start with a wildcard")

    try:
        current = [lookup_root(first, scope)]
        fanned_out = False
        for segment in rest:
            if segment is WILDCARD:
                current = [item for value in current for item in _expand(value)]
                fanned_out = True
            elif fanned_out:
                # Missing keys under a wildcard are skipped, not fatal
                stepped = []
                for value in current:
                    try:
                        stepped.append(_step(value, segment))
                    except _Missing:
                        continue
                current = stepped
            else:
                current = [_step(current[0], segment)]
    except _Missing as e:
        raise ConfigurationError(f"Path query '{path}' did not resolve (missing '{e.args[0]}')")

    if fanned_out:
        return current
    return current[0]


# =============================================================================
# CONDITIONS
# =============================================================================

class SafeEvaluator(ast.NodeVisitor):
    """
    AST-based safe evaluator for conditions over a resolution scope.

    Restricts evaluation to:
    - Arithmetic and comparison operators
    - Logical operators (and, or, not)
    - Safe built-in functions (len, str, int, etc.)
    - Names, attributes and subscripts resolved against the scope
    """

    def __init__(self, scope: Dict[str, Any], references: Dict[str, Any]):
        self.scope = scope
        self.references = references

    def visit_Expression(self, node):
        return self.visit(node.body)

    def visit_Constant(self, node):
        return node.value

    def visit_Name(self, node):
        if node.id in self.references:
            return self.references[node.id]
        try:
            return lookup_root(node.id, self.scope)
        except _Missing:
            pass
        if node.id in SAFE_FUNCTIONS:
            return SAFE_FUNCTIONS[node.id]
        raise ConfigurationError(f"Undefined variable: {node.id}")

    def visit_Attribute(self, node):
        value = self.visit(node.value)
        try:
            return _step(value, node.attr)
        except _Missing:
            raise ConfigurationError(f"Missing field '{node.attr}'")

    def visit_Subscript(self, node):
        value = self.visit(node.value)
        key = self.visit(node.slice)
        try:
            return _step(value, key)
        except _Missing:
            raise ConfigurationError(f"Missing index or key '{key}'")

    def visit_List(self, node):
        return [self.visit(element) for element in node.elts]

    def visit_Tuple(self, node):
        return tuple(self.visit(element) for element in node.elts)

    def visit_BinOp(self, node):
        left = self.visit(node.left)
        right = self.visit(node.right)
        op_type = type(node.op)

        if op_type not in SAFE_OPERATORS:
            raise ConfigurationError(f"Operator not allowed: {op_type.__name__}")

        return SAFE_OPERATORS[op_type](left, right)

    def visit_UnaryOp(self, node):
        operand = self.visit(node.operand)
        op_type = type(node.op)

        if op_type not in SAFE_OPERATORS:
            raise ConfigurationError(f"Operator not allowed: {op_type.__name__}")

        return SAFE_OPERATORS[op_type](operand)

    def visit_Compare(self, node):
        left = self.visit(node.left)

        for op, comparator in zip(node.ops, node.comparators):
            right = self.visit(comparator)
            op_type = type(op)

            if op_type not in SAFE_OPERATORS:
                raise ConfigurationError(f"Operator not allowed: {op_type.__name__}")

            if not SAFE_OPERATORS[op_type](left, right):
                return False

            left = right

        return True

    def visit_BoolOp(self, node):
        # Short-circuit so guards like "items and items[0]" work
        if isinstance(node.op, ast.And):
            result = True
            for value in node.values:
                result = self.visit(value)
                if not result:
                    return result
            return result
        if isinstance(node.op, ast.Or):
            result = False
            for value in node.values:
                result = self.visit(value)
                if result:
                    return result
            return result
        raise ConfigurationError(f"Boolean operator not allowed: {type(node.op).__name__}")

    def visit_Call(self, node):
        func = self.visit(node.func)

        if func not in SAFE_FUNCTIONS.values():
            raise ConfigurationError(f"Function not allowed: {getattr(node.func, 'id', 'unknown')}")

        args = [self.visit(arg) for arg in node.args]
        kwargs = {kw.arg: self.visit(kw.value) for kw in node.keywords}

        return func(*args, **kwargs)

    def generic_visit(self, node):
        raise ConfigurationError(f"Expression element not allowed: {type(node).__name__}")


def _normalize_expression(expression: str, scope: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
    """Swap embedded references for placeholder names and JS spellings for Python ones."""
    references: Dict[str, Any] = {}

    def bind(path: str) -> str:
        name = f"__ref_{len(references)}"
        references[name] = resolve_path(path, scope)
        return f" {name} "

    parts = _STRING_LITERAL.split(expression)
    for i in range(0, len(parts), 2):
        part = parts[i]
        part = _MUSTACHE_REF.sub(lambda m: bind(m.group(1)), part)
        part = _DOLLAR_BRACE_REF.sub(lambda m: bind(m.group(1)), part)
        part = _DOLLAR_PATH_REF.sub(lambda m: bind(m.group(0)), part)
        part = part.replace("===", "==").replace("!==", "!=")
        part = part.replace("&&", " and ").replace("||", " or ")
        part = re.sub(r"!(?!=)", " not ", part)
        part = re.sub(
            r"\b(true|false|null|undefined)\b", lambda m: _JS_LITERALS[m.group(1)], part
        )
        parts[i] = part
    return "".join(parts).strip(), references


def evaluate_expression(expression: str, scope: Dict[str, Any]) -> Any:
    """
    Evaluate an expression against a scope and return its value.

    Raises:
        ConfigurationError: If the expression is malformed, uses a disallowed
            construct or references something that does not resolve

    Examples:
        >>> evaluate_expression("score >= 80", {"score": 85})
        True
        >>> evaluate_expression("len($.chapters) === 3", {"chapters": [1, 2, 3]})
        True
    """
    if not expression or not expression.strip():
        raise ConfigurationError("Empty expression")

    normalized, references = _normalize_expression(expression, scope)
    try:
        tree = ast.parse(normalized, mode="eval")
    except SyntaxError as e:
        raise ConfigurationError(f"Invalid expression syntax '{expression}': {e.msg}")

    try:
        return SafeEvaluator(scope, references).visit(tree)
    except ConfigurationError as e:
        raise ConfigurationError(f"Cannot evaluate '{expression}': {e.message}")
    except Exception as e:
        raise ConfigurationError(f"Cannot evaluate '{expression}': {e}")


def evaluate_condition(condition: str, scope: Dict[str, Any]) -> bool:
    """Evaluate a condition and coerce the result to bool."""
    return bool(evaluate_expression(condition, scope))


# =============================================================================
# TEMPLATES
# =============================================================================

def _format_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, default=str)


def substitute(template: str, scope: Dict[str, Any]) -> str:
    """
    Replace ``{{path}}`` placeholders. Unknown placeholders stay as written.
    """
    def replace(match):
        try:
            return _format_value(resolve_path(match.group(1), scope))
        except ConfigurationError:
            logger.warning(f"Template placeholder not found: {match.group(0)}")
            return match.group(0)

    return _MUSTACHE_REF.sub(replace, template)


# =============================================================================
# CONTEXT BINDING
# =============================================================================

_UNSET = object()


class ContextResolver:
    """
    Resolution scope bound to one execution context.

    ``output`` adds the node's own result: it is reachable as ``output`` and,
    when it is a JSON object, its keys are visible at the root unless they
    clash with a context key (so a gate can say ``score >= 80``).
    """

    def __init__(self, context, output: Any = _UNSET):
        self.context = context
        self.output = output

    def scope(self) -> Dict[str, Any]:
        scope = self.context.view()
        if self.output is not _UNSET:
            structured = parse_structured(self.output)
            if isinstance(structured, dict):
                for key, value in structured.items():
                    scope.setdefault(key, value)
            scope["output"] = structured
        return scope

    def resolve(self, path: str) -> Any:
        return resolve_path(path, self.scope())

    def evaluate(self, condition: str) -> bool:
        return evaluate_condition(condition, self.scope())

    def substitute(self, template: str) -> str:
        return substitute(template, self.scope())


def get_available_variables(context) -> List[Dict[str, Any]]:
    """
    Variables and node output paths for a variable browser.

    Returns:
        List of {"path", "source", "type"} entries
    """
    entries: List[Dict[str, Any]] = []
    for name, value in context.variables.items():
        entries.append({"path": name, "source": "variable", "type": type(value).__name__})

    for node_id, record in context.node_outputs.items():
        structured = parse_structured(record.output)
        entries.append({
            "path": f"{node_id}.output",
            "source": "node",
            "nodeName": record.node_name,
            "type": type(structured).__name__,
        })
        if isinstance(structured, dict):
            for key, value in structured.items():
                entries.append({
                    "path": f"{node_id}.output.{key}",
                    "source": "node",
                    "nodeName": record.node_name,
                    "type": type(value).__name__,
                })
    return entries
