"""
Identifier sanitizers and property-key casing for each output format.
"""
import keyword
import re
from typing import Callable, Dict, Iterable, List, Sequence

_INVALID_CHARS_RE = re.compile(r"[^A-Za-z0-9_]")
_PARTS_RE = re.compile(r"[A-Za-z0-9]+")
_CAMEL_BOUNDARY_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")

_TS_RESERVED = {
    "break", "case", "catch", "class", "const", "continue", "debugger", "default",
    "delete", "do", "else", "enum", "export", "extends", "false", "finally", "for",
    "function", "if", "import", "in", "instanceof", "new", "null", "return", "super",
    "switch", "this", "throw", "true", "try", "typeof", "var", "void", "while", "with",
    "as", "implements", "interface", "let", "package", "private", "protected", "public",
    "static", "yield", "await", "any", "boolean", "number", "string", "symbol",
    "pulumi",
}

_PY_RESERVED = {"pulumi"}


def _parts(name: str) -> List[str]:
    """Split on non-alphanumerics and camelCase boundaries."""
    return _PARTS_RE.findall(_CAMEL_BOUNDARY_RE.sub("_", name))


def hcl_identifier(name: str) -> str:
    ident = _INVALID_CHARS_RE.sub("_", name)
    if not ident or ident[0].isdigit():
        ident = f"resource_{ident}"
    return ident


def python_identifier(name: str) -> str:
    ident = hcl_identifier(name)
    if keyword.iskeyword(ident) or ident in _PY_RESERVED:
        ident += "_"
    return ident


def logical_id(name: str) -> str:
    """CloudFormation logical ID: alphanumeric PascalCase."""
    ident = "".join(p[:1].upper() + p[1:] for p in _PARTS_RE.findall(name))
    if not ident or ident[0].isdigit():
        ident = f"Resource{ident}"
    return ident


def ts_identifier(name: str) -> str:
    parts = _PARTS_RE.findall(name)
    if not parts:
        return "resource"
    ident = parts[0][:1].lower() + parts[0][1:] + "".join(
        p[:1].upper() + p[1:] for p in parts[1:]
    )
    if ident[0].isdigit():
        ident = f"resource{ident[:1].upper()}{ident[1:]}"
    if ident in _TS_RESERVED:
        ident += "_"
    return ident


def snake_case(key: str) -> str:
    parts = _parts(key)
    if not parts:
        return "_"
    ident = "_".join(p.lower() for p in parts)
    if ident[0].isdigit():
        ident = f"_{ident}"
    return ident


def pascal_case(key: str) -> str:
    parts = _parts(key)
    return "".join(p[:1].upper() + p[1:].lower() for p in parts) or "Property"


def camel_case(key: str) -> str:
    pascal = pascal_case(key)
    return pascal[:1].lower() + pascal[1:]


def unique_identifiers(
    names: Sequence[str],
    sanitize: Callable[[str], str],
    separator: str = "_",
    reserved: Iterable[str] = (),
) -> Dict[str, str]:
    """
    Map each name to a sanitized identifier, suffixing a counter when two
    names collapse to the same identifier. Earlier names keep the bare form.
    Identifiers in `reserved` (module aliases the program binds itself) get
    a trailing underscore first.
    """
    reserved = set(reserved)
    result: Dict[str, str] = {}
    taken = set(reserved)
    for name in names:
        base = sanitize(name)
        if base in reserved:
            base += "_"
        ident = base
        n = 2
        while ident in taken:
            ident = f"{base}{separator}{n}"
            n += 1
        taken.add(ident)
        result[name] = ident
    return result
