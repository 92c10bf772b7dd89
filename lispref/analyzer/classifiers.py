"""Reference classifiers.

Each classifier answers one question for a form found while walking a file:
is this, in its ancestor context, a genuine reference to the target of the
requested kind? Only the innermost two or three path frames are consulted,
so shadowing by bindings further out is not modelled.
"""
from enum import Enum
from typing import Callable, Dict, FrozenSet

from .forms import FUNCTION, Form, Path, PathEntry, SList, Symbol, operator_of, quoted

Classifier = Callable[[Symbol, Form, Path], bool]

# (defun NAME ARGS ...): index 2 is the parameter list.
DEFINITION_ARGLIST_SLOTS: FrozenSet[PathEntry] = frozenset(
    PathEntry(Symbol(name), 2) for name in ("defun", "defsubst", "defmacro")
)

# (let BINDINGS ...): index 1 is the binding list.
LET_BINDING_SLOTS: FrozenSet[PathEntry] = frozenset(
    PathEntry(Symbol(name), 1) for name in ("let", "let*")
)

_FUNCALL = Symbol("funcall")
_APPLY = Symbol("apply")


class SearchKind(str, Enum):
    """What kind of reference to look for."""
    FUNCTION = "function"
    MACRO = "macro"
    SPECIAL = "special"
    VARIABLE = "variable"
    SYMBOL = "symbol"


def _frame(path: Path, depth: int):
    return path[depth] if len(path) > depth else None


def _in_binding_position(path: Path) -> bool:
    """True where a list would be a parameter list or let binding, not a call."""
    if _frame(path, 0) in DEFINITION_ARGLIST_SLOTS:
        return True
    return _frame(path, 0) in LET_BINDING_SLOTS or _frame(path, 1) in LET_BINDING_SLOTS


def _is_quoted(form: Form, target: Symbol) -> bool:
    return form == quoted(target)


def is_function_reference(target: Symbol, form: Form, path: Path) -> bool:
    """(target ...), (funcall 'target ...), (apply 'target ...) or #'target."""
    if not isinstance(form, SList) or not form.items:
        return False
    if _in_binding_position(path):
        return False

    head = form.items[0]
    if head == target:
        return True
    if head in (_FUNCALL, _APPLY) and len(form.items) > 1:
        return _is_quoted(form.items[1], target)
    if head == FUNCTION and form.tail is None and form.items[1:] == (target,):
        return True
    return False


def is_macro_reference(target: Symbol, form: Form, path: Path) -> bool:
    """A literal (target ...) call outside binding positions."""
    if operator_of(form) != target:
        return False
    return not _in_binding_position(path)


# Special forms are called exactly like macros.
is_special_form_reference = is_macro_reference


def is_variable_reference(target: Symbol, form: Form, path: Path) -> bool:
    """The bare symbol `target`, unless it is the head of a call.

    Let binding names count as variables: (let (target ...) ...) and
    (let ((target value)) ...) both report `target`.
    """
    if form != target:
        return False
    if _frame(path, 0) != PathEntry(target, 0):
        return True
    return _frame(path, 1) in LET_BINDING_SLOTS or _frame(path, 2) in LET_BINDING_SLOTS


CLASSIFIERS: Dict[SearchKind, Classifier] = {
    SearchKind.FUNCTION: is_function_reference,
    SearchKind.MACRO: is_macro_reference,
    SearchKind.SPECIAL: is_special_form_reference,
    SearchKind.VARIABLE: is_variable_reference,
}


def classifier_for(kind: SearchKind) -> Classifier:
    """Classifier for a structural search kind.

    Raises:
        ValueError: For SearchKind.SYMBOL, which reads the occurrence table
            directly instead of walking forms
    """
    kind = SearchKind(kind)
    try:
        return CLASSIFIERS[kind]
    except KeyError:
        raise ValueError(f"{kind.value} search does not use a classifier") from None
