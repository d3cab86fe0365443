"""Reference tracer: the compilation pass that feeds the call collector.

Each unit is parsed and walked; every identifier or dotted attribute chain
that resolves to an exported function is recorded against the unit. Units
are traced concurrently by a pool of worker threads.

Calls made through fully dynamic dispatch (`getattr(module, name)()`,
`importlib.import_module(...)`) are invisible here; ignore rules cover them.
"""
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional, Set, Tuple

from tree_sitter import Node

from .collector import CallCollector
from .discovery import SourceUnit
from .extractor import ImportBinding, ModuleSymbols, SymbolExtractor
from .parser import PythonParser, syntax_error_line
from .provider import ExportIndex, is_package_unit
from .symbols import SymbolIdentity


# Nodes whose `name` field declares a name rather than referencing one
DEFINITION_TYPES = ('function_definition', 'class_definition')

PARAMETER_LIST_TYPES = ('parameters', 'lambda_parameters')


class ReferenceTracer:
    """Resolve the references of one unit against the export index."""

    def __init__(self, unit_id: str, symbols: ModuleSymbols, index: ExportIndex):
        self.unit_id = unit_id
        self.index = index
        self.star_imports = symbols.star_imports
        self.bindings: Dict[str, List[ImportBinding]] = {}
        for binding in symbols.bindings:
            self.bindings.setdefault(binding.local_name, []).append(binding)
        self._imported = symbols.bindings

    def references(self, root: Node) -> Set[SymbolIdentity]:
        """Every exported identity this unit references."""
        candidates: Set[Tuple[str, str]] = set()

        # Importing a function by name counts as using it
        for binding in self._imported:
            if binding.kind == 'symbol':
                candidates.add((binding.target, binding.name))

        stack = [root]
        while stack:
            node = stack.pop()
            node_type = node.type

            if node_type in ('import_statement', 'import_from_statement'):
                continue
            if node_type == 'identifier':
                candidates.update(self._resolve_name(node.text.decode('utf-8', errors='ignore')))
                continue
            if node_type == 'attribute':
                parts = _attribute_chain(node)
                if parts:
                    candidates.update(self._resolve_chain(parts))
                # The member name is not a variable; only the object is walked
                obj = node.child_by_field_name('object')
                if obj is not None:
                    stack.append(obj)
                continue
            if node_type == 'keyword_argument':
                value = node.child_by_field_name('value')
                if value is not None:
                    stack.append(value)
                continue
            if node_type in PARAMETER_LIST_TYPES:
                stack.extend(reversed(_parameter_expressions(node)))
                continue

            children = node.named_children
            if node_type in DEFINITION_TYPES:
                name = node.child_by_field_name('name')
                if name is not None:
                    children = [child for child in children if child.start_byte != name.start_byte]
            stack.extend(reversed(children))

        identities = set()
        for owner, name in candidates:
            for arity in self.index.get((owner, name), ()):
                identities.add(SymbolIdentity(owner, name, arity))
        return identities

    def _resolve_name(self, name: str) -> Iterable[Tuple[str, str]]:
        yield self.unit_id, name
        for binding in self.bindings.get(name, ()):
            if binding.kind == 'symbol':
                yield binding.target, binding.name
        for module in self.star_imports:
            yield module, name

    def _resolve_chain(self, parts: List[str]) -> Iterable[Tuple[str, str]]:
        head, middle, last = parts[0], parts[1:-1], parts[-1]
        for binding in self.bindings.get(head, ()):
            if binding.kind == 'module':
                base = [binding.target]
            else:
                # `from pkg import mod` may bind a submodule
                base = [binding.target, binding.name]
            yield '.'.join(base + middle), last


def _parameter_expressions(parameters: Node) -> List[Node]:
    """Default values and annotations of a parameter list.

    Parameter names bind new locals, so they are never references.
    """
    expressions = []
    for parameter in parameters.named_children:
        if parameter.type not in ('default_parameter', 'typed_parameter', 'typed_default_parameter'):
            continue
        for field_name in ('type', 'value'):
            child = parameter.child_by_field_name(field_name)
            if child is not None:
                expressions.append(child)
    return expressions


def _attribute_chain(node: Node) -> Optional[List[str]]:
    """Split `a.b.c` into ['a', 'b', 'c']; None unless it is a pure name chain."""
    parts = []
    current = node
    while current.type == 'attribute':
        member = current.child_by_field_name('attribute')
        if member is None:
            return None
        parts.append(member.text.decode('utf-8', errors='ignore'))
        current = current.child_by_field_name('object')
        if current is None:
            return None
    if current.type != 'identifier':
        return None
    parts.append(current.text.decode('utf-8', errors='ignore'))
    parts.reverse()
    return parts


def trace_unit(unit: SourceUnit, collector: CallCollector, index: ExportIndex) -> bool:
    """Compile one unit into the collector.

    A unit that cannot be read or parsed is not entered into the collector,
    so its previous manifest entry is kept instead of being emptied.

    Returns:
        True if the unit was traced
    """
    parser = PythonParser()
    try:
        tree, _ = parser.parse_file(unit.path)
    except OSError:
        return False
    if syntax_error_line(tree) is not None:
        return False

    extractor = SymbolExtractor(unit.unit_id, is_package=is_package_unit(unit))
    tracer = ReferenceTracer(unit.unit_id, extractor.extract(tree), index)

    collector.enter_unit(unit.unit_id)
    for identity in tracer.references(tree.root_node):
        collector.record(unit.unit_id, identity)
    return True


def trace_units(units: Iterable[SourceUnit], collector: CallCollector,
                index: ExportIndex, jobs: int = 1) -> Set[str]:
    """Trace units on `jobs` worker threads.

    Returns once every worker has finished; exceptions raised by a worker
    propagate to the caller.

    Returns:
        Ids of the units that were traced
    """
    units = list(units)
    if not units:
        return set()

    with ThreadPoolExecutor(max_workers=max(1, jobs), thread_name_prefix="unused-trace") as pool:
        results = list(pool.map(lambda unit: trace_unit(unit, collector, index), units))

    return {unit.unit_id for unit, traced in zip(units, results) if traced}
