"""Function, `__all__` and import extraction from parsed syntax trees."""
from dataclasses import dataclass, field
from typing import Iterator, List, Optional

from tree_sitter import Node, Tree


# Decorators that wrap a function without registering it anywhere. A function
# carrying any other decorator is assumed to be invoked by whatever it was
# registered with (routes, CLI commands, fixtures, signal handlers, ...).
TRANSPARENT_DECORATORS = frozenset({
    'wraps',
    'lru_cache',
    'cache',
    'cached_property',
    'staticmethod',
    'classmethod',
    'overload',
    'contextmanager',
    'asynccontextmanager',
    'singledispatch',
    'deprecated',
})

# Parameter node types that bind exactly one named parameter
NAMED_PARAMETER_TYPES = frozenset({
    'identifier',
    'default_parameter',
    'typed_default_parameter',
})


@dataclass
class FunctionDef:
    """A module-level function definition."""
    name: str
    arity: int
    line: int
    decorators: List[str] = field(default_factory=list)

    @property
    def is_public(self) -> bool:
        if self.name.startswith('__') and self.name.endswith('__'):
            return True
        return not self.name.startswith('_')

    @property
    def is_registered(self) -> bool:
        """True when a non-transparent decorator registers the function."""
        return any(
            decorator.rsplit('.', 1)[-1] not in TRANSPARENT_DECORATORS
            for decorator in self.decorators
        )


@dataclass
class ImportBinding:
    """A local name bound by an import statement.

    `kind` is 'module' when the name refers to module `target`, or 'symbol'
    when it refers to attribute `name` of module `target`.
    """
    local_name: str
    kind: str
    target: str
    name: Optional[str] = None
    line: int = 0


@dataclass
class ModuleSymbols:
    functions: List[FunctionDef] = field(default_factory=list)
    all_names: Optional[List[str]] = None
    bindings: List[ImportBinding] = field(default_factory=list)
    star_imports: List[str] = field(default_factory=list)


class SymbolExtractor:
    """Extract module-level functions, `__all__` and imports of one unit."""

    def __init__(self, unit_id: str, is_package: bool = False):
        """Initialize extractor for one unit.

        Args:
            unit_id: Dotted module name of the unit
            is_package: True when the unit is a package `__init__` module
        """
        self.unit_id = unit_id
        self.package = unit_id if is_package else unit_id.rpartition('.')[0]

    def extract(self, tree: Tree) -> ModuleSymbols:
        symbols = ModuleSymbols()
        all_names: Optional[List[str]] = None
        all_is_literal = True

        for node in tree.root_node.named_children:
            if node.type == 'function_definition':
                symbols.functions.append(self._function(node, []))
            elif node.type == 'decorated_definition':
                inner = node.child_by_field_name('definition')
                if inner is not None and inner.type == 'function_definition':
                    decorators = [
                        _decorator_name(child) for child in node.named_children
                        if child.type == 'decorator'
                    ]
                    symbols.functions.append(self._function(inner, decorators, node))
            elif node.type == 'expression_statement':
                names = _all_assignment(node)
                if names is _NOT_ALL:
                    continue
                if names is None:
                    all_is_literal = False
                elif names[0] == '=':
                    all_names = list(names[1])
                else:
                    all_names = (all_names or []) + list(names[1])

        if all_is_literal:
            symbols.all_names = all_names

        for node in self.import_nodes(tree):
            self._collect_import(node, symbols)

        return symbols

    def _function(self, node: Node, decorators: List[str], outer: Node = None) -> FunctionDef:
        name = _text(node.child_by_field_name('name'))
        parameters = node.child_by_field_name('parameters')
        return FunctionDef(
            name=name,
            arity=_arity(parameters),
            line=(outer or node).start_point[0] + 1,
            decorators=decorators,
        )

    @staticmethod
    def import_nodes(tree: Tree) -> Iterator[Node]:
        """Yield every import statement, including ones nested in functions."""
        stack = [tree.root_node]
        while stack:
            current = stack.pop()
            if current.type in ('import_statement', 'import_from_statement'):
                yield current
                continue
            stack.extend(reversed(current.named_children))

    def resolve_relative(self, module_text: str) -> Optional[str]:
        """Resolve a possibly relative module reference against this unit.

        Returns None when the reference climbs above the top-level package.
        """
        level = len(module_text) - len(module_text.lstrip('.'))
        if level == 0:
            return module_text

        remainder = module_text[level:]
        base = self.package.split('.') if self.package else []
        if level - 1 > len(base):
            return None
        if level > 1:
            base = base[:len(base) - (level - 1)]
        parts = base + ([remainder] if remainder else [])
        return '.'.join(parts) or None

    def _collect_import(self, node: Node, symbols: ModuleSymbols):
        line = node.start_point[0] + 1

        if node.type == 'import_statement':
            for child in node.children_by_field_name('name'):
                if child.type == 'aliased_import':
                    module = _text(child.child_by_field_name('name'))
                    alias = _text(child.child_by_field_name('alias'))
                    symbols.bindings.append(ImportBinding(alias, 'module', module, line=line))
                else:
                    # `import a.b.c` binds `a`; attribute chains resolve the rest
                    module = _text(child)
                    head = module.split('.')[0]
                    symbols.bindings.append(ImportBinding(head, 'module', head, line=line))
            return

        module_node = node.child_by_field_name('module_name')
        if module_node is None:
            return
        module = self.resolve_relative(_text(module_node))
        if module is None:
            return

        if any(child.type == 'wildcard_import' for child in node.children):
            symbols.star_imports.append(module)
            return

        for child in node.children_by_field_name('name'):
            if child.type == 'aliased_import':
                name = _text(child.child_by_field_name('name'))
                alias = _text(child.child_by_field_name('alias'))
            else:
                name = alias = _text(child)
            symbols.bindings.append(ImportBinding(alias, 'symbol', module, name, line=line))


_NOT_ALL = object()


def _all_assignment(node: Node):
    """Inspect a statement for `__all__ = [...]` or `__all__ += [...]`.

    Returns _NOT_ALL for unrelated statements, None for a non-literal
    `__all__`, or a tuple (operator, names).
    """
    expression = node.named_children[0] if node.named_children else None
    if expression is None or expression.type not in ('assignment', 'augmented_assignment'):
        return _NOT_ALL

    left = expression.child_by_field_name('left')
    if left is None or left.type != 'identifier' or _text(left) != '__all__':
        return _NOT_ALL

    operator = '=' if expression.type == 'assignment' else '+='
    right = expression.child_by_field_name('right')
    if right is None or right.type not in ('list', 'tuple'):
        return None

    names = []
    for element in right.named_children:
        if element.type != 'string':
            return None
        names.append(_text(element).strip('\'"'))
    return operator, names


def _arity(parameters: Optional[Node]) -> int:
    if parameters is None:
        return 0

    arity = 0
    for child in parameters.named_children:
        if child.type in NAMED_PARAMETER_TYPES:
            arity += 1
        elif child.type == 'typed_parameter':
            # `*args: int` and `**kwargs: str` are typed parameters too
            first = child.named_children[0] if child.named_children else None
            if first is not None and first.type == 'identifier':
                arity += 1
    return arity


def _decorator_name(node: Node) -> str:
    """Dotted callee of a decorator: `@app.route("/")` -> `app.route`."""
    text = _text(node).lstrip('@').strip()
    return text.split('(', 1)[0].strip()


def _text(node: Optional[Node]) -> str:
    if node is None:
        return ''
    return node.text.decode('utf-8', errors='ignore')
