"""Enclosing-form resolution used by event grouping.

The grouper never touches a DOM. It asks a FormResolver which form (if any)
encloses a selector. Resolvers are best-effort: failures surface as ``None``.
"""

from typing import Optional, Protocol

import structlog

logger = structlog.get_logger()


class FormResolver(Protocol):
    """Maps an element selector to the selector of its enclosing form."""

    def resolve_enclosing_form(self, selector: str) -> Optional[str]: ...


class NullFormResolver:
    """Resolver for hosts without DOM access. Nothing is ever grouped."""

    def resolve_enclosing_form(self, selector: str) -> Optional[str]:
        return None


class MappingFormResolver:
    """Resolver backed by a precomputed selector -> form selector map."""

    def __init__(self, mapping: Optional[dict[str, str]] = None):
        self.mapping = dict(mapping or {})

    def register(self, selector: str, form_selector: str) -> None:
        self.mapping[selector] = form_selector

    def resolve_enclosing_form(self, selector: str) -> Optional[str]:
        return self.mapping.get(selector)


class ChainedFormResolver:
    """Asks each resolver in turn; the first form found wins."""

    def __init__(self, *resolvers: FormResolver):
        self.resolvers = list(resolvers)

    def resolve_enclosing_form(self, selector: str) -> Optional[str]:
        for resolver in self.resolvers:
            form = safe_resolve(resolver, selector)
            if form:
                return form
        return None


def form_selector(attributes: dict) -> str:
    """Selector naming a form element in group descriptions."""
    return f"#{attributes['id']}" if attributes.get("id") else "form"


class SnapshotFormResolver:
    """Resolver built from a serialized DOM snapshot.

    Walks an rrweb-style node tree (``tagName``/``attributes``/``childNodes``)
    once and records, for every element selector, the nearest enclosing
    ``<form>``. Forms are named ``#id`` when they have an id, else ``form``.

    Example:
        resolver = SnapshotFormResolver.from_snapshot(full_snapshot["node"], build_selector)
        resolver.resolve_enclosing_form("#email")  # "#login-form"
    """

    def __init__(self):
        self._forms: dict[str, str] = {}

    @classmethod
    def from_snapshot(cls, node: dict, selector_builder) -> "SnapshotFormResolver":
        """Build a resolver from a snapshot root node.

        Args:
            node: Root node of the snapshot tree
            selector_builder: Callable ``(tag_name, attributes) -> selector``
        """
        resolver = cls()
        resolver.add_tree(node, selector_builder)
        return resolver

    def add_tree(self, node: dict, selector_builder, form: Optional[str] = None) -> None:
        """Index a (sub)tree, e.g. nodes added by a DOM mutation."""
        tag_name = (node.get("tagName") or "").lower()
        attributes = node.get("attributes") or {}

        if tag_name == "form":
            form = form_selector(attributes)
        elif tag_name and form:
            selector = selector_builder(tag_name, attributes)
            # First form wins if two elements share a selector
            self._forms.setdefault(selector, form)

        for child in node.get("childNodes") or []:
            self.add_tree(child, selector_builder, form)

    def resolve_enclosing_form(self, selector: str) -> Optional[str]:
        return self._forms.get(selector)


def safe_resolve(resolver: FormResolver, selector: str) -> Optional[str]:
    """Resolve a form, treating resolver errors as 'no form'."""
    if not selector:
        return None
    try:
        return resolver.resolve_enclosing_form(selector)
    except Exception as e:
        logger.debug("Form resolution failed", selector=selector, error=str(e))
        return None
