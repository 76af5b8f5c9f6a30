"""
Identifier helpers used when lowering XSD names into target-language names.
"""
import re


# Keywords and alternative tokens that can never be used as C++ identifiers.
RESERVED_IDENTIFIERS = frozenset({
    "alignas", "alignof", "and", "and_eq", "asm", "auto", "bitand", "bitor",
    "bool", "break", "case", "catch", "char", "char8_t", "char16_t", "char32_t",
    "class", "compl", "concept", "const", "consteval", "constexpr", "constinit",
    "const_cast", "continue", "co_await", "co_return", "co_yield", "decltype",
    "default", "delete", "do", "double", "dynamic_cast", "else", "enum",
    "explicit", "export", "extern", "false", "float", "for", "friend", "goto",
    "if", "inline", "int", "long", "mutable", "namespace", "new", "noexcept",
    "not", "not_eq", "nullptr", "operator", "or", "or_eq", "private",
    "protected", "public", "register", "reinterpret_cast", "requires", "return",
    "short", "signed", "sizeof", "static", "static_assert", "static_cast",
    "struct", "switch", "template", "this", "thread_local", "throw", "true",
    "try", "typedef", "typeid", "typename", "union", "unsigned", "using",
    "virtual", "void", "volatile", "wchar_t", "while", "xor", "xor_eq",
})

_TYPE_SUFFIX = "Type"
_NON_IDENTIFIER = re.compile(r"[^0-9A-Za-z_]")


def strip_prefix(qname: str) -> str:
    """Returns the part of a qualified name after the first ':'."""
    _, sep, local = qname.partition(":")
    return local if sep else qname


def ensure_identifier(name: str) -> str:
    """Prefixes a leading digit and suffixes reserved words."""
    if name and name[0].isdigit():
        name = "_" + name
    if name in RESERVED_IDENTIFIERS:
        name += "_"
    return name


def sanitize(name: str) -> str:
    """
    Converts an XSD name into an identifier.

    '-', '.' and ':' become '_', a trailing 'Type' is dropped, a leading digit
    gets an '_' prefix and reserved words get an '_' suffix. The suffix is
    removed before the keyword check so that e.g. 'intType' cannot turn into
    'int'.
    """
    for char in "-.:":
        name = name.replace(char, "_")
    if name.endswith(_TYPE_SUFFIX) and len(name) > len(_TYPE_SUFFIX):
        name = name[:-len(_TYPE_SUFFIX)]
    return ensure_identifier(name)


def to_camel_case(value: str) -> str:
    """Converts 'my-tag_name' to 'MyTagName'; other characters are kept as is."""
    result = []
    make_upper = True
    for char in value:
        if char in "-_":
            make_upper = True
        elif make_upper:
            result.append(char.upper())
            make_upper = False
        else:
            result.append(char)
    return "".join(result)


def to_upper_case(value: str) -> str:
    """ASCII-only upper casing; non-ASCII characters pass through."""
    return "".join(chr(ord(c) - 32) if "a" <= c <= "z" else c for c in value)


def normalize_enum_value(value: str) -> str:
    """Turns an enumeration literal like 'red-hot' or 'C+' into 'red_hot' / 'CPlus'."""
    result = value.replace("-", "_").replace(" ", "_")
    if result.endswith("+"):
        result = result[:-1] + "Plus"
    if result.endswith("*"):
        result = result[:-1] + "Star"
    return result


def enum_member_ident(value: str) -> str:
    """Normalizes an enumeration literal and makes it a valid identifier."""
    ident = _NON_IDENTIFIER.sub("_", normalize_enum_value(value))
    return ensure_identifier(ident) or "_"


def display_name(ident: str) -> str:
    """Camel-cased form of an identifier, still a valid identifier ("_1abc" stays "_1abc")."""
    return ensure_identifier(to_camel_case(ident))


def attribute_ident(name: str) -> str:
    """Field identifier for an attribute: the camel-cased sanitized name."""
    return display_name(sanitize(name))
