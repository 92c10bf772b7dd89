"""Depth-first structural walk that collects classified references."""
from typing import List

from .child_spans import ChildSpanIndexer
from .classifiers import Classifier
from .forms import (
    Form,
    MatchResult,
    Path,
    PathEntry,
    Span,
    Symbol,
    Vector,
    is_compound,
    is_proper_list,
    operator_of,
)


def _children(form: Form):
    if isinstance(form, Vector):
        return form.items
    if is_proper_list(form):
        return form.items
    return None


def walk(form: Form, span: Span, target: Symbol, classifier: Classifier,
         indexer: ChildSpanIndexer, path: Path = ()) -> List[MatchResult]:
    """Find every form under `form` that `classifier` accepts for `target`.

    A match ends descent into that subtree, so the matches returned from one
    call never overlap. Dotted lists are not descended into, and children
    that are atoms other than `target` are skipped without indexing.

    Args:
        form: Form to search
        span: Absolute span of `form` in the indexer's text
        target: Symbol being searched for
        classifier: Predicate deciding whether a form is a reference
        indexer: Child-span indexer over the same text
        path: Ancestor frames, innermost first

    Returns:
        Matches in source order
    """
    if classifier(target, form, path):
        return [MatchResult(span, form)]

    children = _children(form)
    if not children:
        return []

    wanted = [
        index for index, child in enumerate(children)
        if is_compound(child) or child == target
    ]
    if not wanted:
        return []

    child_spans = indexer.child_spans(span)
    operator = operator_of(form)
    matches: List[MatchResult] = []
    for index in wanted:
        if index >= len(child_spans):
            break
        child_path = (PathEntry(operator, index),) + path
        matches.extend(walk(children[index], child_spans[index], target,
                            classifier, indexer, child_path))
    return matches
