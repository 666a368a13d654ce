"""Tree-sitter powered declaration scanner for Python sources."""

from __future__ import annotations

import ast
import threading
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import tree_sitter_python
from tree_sitter import Language, Node, Parser

from ..config import MarkerConfig
from ..models import (
    DeclarationFacts,
    MarkerKind,
    MarkerUse,
    MethodFacts,
    ModuleFacts,
    NotApplicable,
    ParamFacts,
    SourceFile,
)
from .base import DeclarationScanner

PY_LANGUAGE = Language(tree_sitter_python.language())

_PROPERTY_DECORATORS = {"property", "cached_property", "setter", "getter", "deleter"}
_SPLAT_ARGUMENTS = {"list_splat", "dictionary_splat"}


class TreeSitterScanner(DeclarationScanner):
    """Extracts marked module-level classes and their methods using tree-sitter."""

    def __init__(self, markers: MarkerConfig | None = None) -> None:
        markers = markers or MarkerConfig()
        self._marker_names: Dict[str, MarkerKind] = {
            markers.encodable: MarkerKind.ENCODABLE,
            markers.serializer: MarkerKind.SERIALIZER,
            markers.deserializer: MarkerKind.DESERIALIZER,
        }
        # Parsers are not safe to share between threads.
        self._local = threading.local()

    def supports(self, source: SourceFile) -> bool:
        return source.path.suffix == ".py" and source.module is not None

    def scan(self, source: SourceFile) -> Union[ModuleFacts, NotApplicable]:
        if source.path.suffix != ".py":
            return NotApplicable(f"{source.rel_path}: not a Python source file")
        if source.module is None:
            return NotApplicable(f"{source.rel_path}: not importable from the source root")

        source_bytes = source.path.read_bytes()
        try:
            source_bytes.decode("utf-8")
        except UnicodeDecodeError:
            return NotApplicable(f"{source.rel_path}: not valid UTF-8")

        tree = self._get_parser().parse(source_bytes)
        if tree.root_node.has_error:
            return NotApplicable(f"{source.rel_path}: contains syntax errors")

        collector = _ClassCollector(source_bytes, source.module, self._marker_names)
        return ModuleFacts(source=source, declarations=tuple(collector.collect(tree.root_node)))

    def _get_parser(self) -> Parser:
        parser = getattr(self._local, "parser", None)
        if parser is None:
            parser = Parser(PY_LANGUAGE)
            self._local.parser = parser
        return parser


class _ClassCollector:
    def __init__(self, source_bytes: bytes, module: str, marker_names: Dict[str, MarkerKind]) -> None:
        self._source = source_bytes
        self._module = module
        self._marker_names = marker_names

    def collect(self, root: Node) -> Iterable[DeclarationFacts]:
        for child in root.named_children:
            definition, decorators = _unwrap_decorated(child)
            if definition is None or definition.type != "class_definition":
                continue
            name_node = definition.child_by_field_name("name")
            name = self._text(name_node) if name_node else ""
            if not name:
                continue
            yield DeclarationFacts(
                name=name,
                module=self._module,
                line=definition.start_point[0] + 1,
                markers=tuple(self._markers(decorators)),
                methods=tuple(self._methods(definition)),
            )

    def _markers(self, decorators: Sequence[Node]) -> Iterable[MarkerUse]:
        for decorator in decorators:
            expression = _decorator_expression(decorator)
            if expression is None:
                continue
            name = self._terminal_name(expression)
            kind = self._marker_names.get(name or "")
            if kind is None:
                continue
            argument: Optional[str] = None
            literal = True
            if kind is MarkerKind.ENCODABLE:
                argument, literal = self._marker_argument(expression)
            yield MarkerUse(kind=kind, name=name or "", argument=argument, literal=literal)

    def _marker_argument(self, expression: Node) -> Tuple[Optional[str], bool]:
        if expression.type != "call":
            return None, True
        arguments = expression.child_by_field_name("arguments")
        if arguments is None or arguments.type != "argument_list":
            return None, True

        positional: Optional[Node] = None
        keyword: Optional[Node] = None
        for argument in arguments.named_children:
            if argument.type == "comment" or argument.type in _SPLAT_ARGUMENTS:
                continue
            if argument.type == "keyword_argument":
                key = argument.child_by_field_name("name")
                if key is not None and self._text(key) == "name":
                    keyword = argument.child_by_field_name("value")
            elif positional is None:
                positional = argument

        value_node = keyword or positional
        if value_node is None:
            return None, True
        try:
            value = ast.literal_eval(self._text(value_node))
        except (ValueError, SyntaxError):
            return None, False
        if value is None:
            return None, True
        if isinstance(value, str):
            return value, True
        return None, False

    def _methods(self, class_node: Node) -> Iterable[MethodFacts]:
        body = class_node.child_by_field_name("body")
        if body is None:
            return
        for statement in body.named_children:
            definition, decorators = _unwrap_decorated(statement)
            if definition is None or definition.type != "function_definition":
                continue
            name_node = definition.child_by_field_name("name")
            if name_node is None:
                continue
            decorator_names = set()
            for decorator in decorators:
                expression = _decorator_expression(decorator)
                if expression is not None:
                    decorator_names.add(self._terminal_name(expression))
            kind = _method_kind(decorator_names)

            params = self._params(definition.child_by_field_name("parameters"))
            if kind != "static" and params and params[0].kind == "plain":
                params = params[1:]

            return_node = definition.child_by_field_name("return_type")
            yield MethodFacts(
                name=self._text(name_node),
                kind=kind,
                params=tuple(params),
                return_type=self._text(return_node) if return_node else None,
                line=definition.start_point[0] + 1,
            )

    def _params(self, parameters: Optional[Node]) -> List[ParamFacts]:
        if parameters is None:
            return []
        params: List[ParamFacts] = []
        for node in parameters.named_children:
            if node.type == "identifier":
                params.append(ParamFacts(name=self._text(node), annotation=None))
            elif node.type == "typed_parameter":
                inner = node.named_children[0] if node.named_children else None
                type_node = node.child_by_field_name("type")
                name, kind = self._splat(inner)
                params.append(
                    ParamFacts(
                        name=name,
                        annotation=self._text(type_node) if type_node else None,
                        kind=kind,
                    )
                )
            elif node.type in {"default_parameter", "typed_default_parameter"}:
                name_node = node.child_by_field_name("name")
                type_node = node.child_by_field_name("type")
                params.append(
                    ParamFacts(
                        name=self._text(name_node) if name_node else "",
                        annotation=self._text(type_node) if type_node else None,
                    )
                )
            elif node.type in {"list_splat_pattern", "dictionary_splat_pattern"}:
                name, kind = self._splat(node)
                params.append(ParamFacts(name=name, annotation=None, kind=kind))
        return params

    def _splat(self, node: Optional[Node]) -> Tuple[str, str]:
        if node is None:
            return "", "plain"
        text = self._text(node)
        if node.type == "list_splat_pattern":
            return text.lstrip("*"), "var_positional"
        if node.type == "dictionary_splat_pattern":
            return text.lstrip("*"), "var_keyword"
        return text, "plain"

    def _terminal_name(self, expression: Node) -> Optional[str]:
        if expression.type == "call":
            function = expression.child_by_field_name("function")
            if function is None:
                return None
            expression = function
        if expression.type == "identifier":
            return self._text(expression)
        if expression.type == "attribute":
            attribute = expression.child_by_field_name("attribute")
            return self._text(attribute) if attribute else None
        return None

    def _text(self, node: Node) -> str:
        return self._source[node.start_byte : node.end_byte].decode("utf-8", errors="ignore")


def _unwrap_decorated(node: Node) -> Tuple[Optional[Node], List[Node]]:
    if node.type != "decorated_definition":
        return node, []
    decorators = [child for child in node.named_children if child.type == "decorator"]
    return node.child_by_field_name("definition"), decorators


def _decorator_expression(decorator: Node) -> Optional[Node]:
    for child in decorator.named_children:
        if child.type != "comment":
            return child
    return None


def _method_kind(decorator_names: set) -> str:
    if "staticmethod" in decorator_names:
        return "static"
    if "classmethod" in decorator_names:
        return "class"
    if decorator_names & _PROPERTY_DECORATORS:
        return "property"
    return "instance"


__all__ = ["PY_LANGUAGE", "TreeSitterScanner"]
