"""
Generates C++ enums and structs from a lowered schema catalog.
"""
from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from catalog import Catalog, EnumDef, Field, FieldKind, RecordDef
import type_registry


TEMPLATE_DIR = Path(__file__).parent / "templates"
DEFAULT_NAMESPACE = "Generated"

ENUMS_HEADER = "Enums.h"
ENUMS_SOURCE = "Enums.cpp"
TYPES_HEADER = "Types.h"
TYPES_SOURCE = "Types.cpp"
BUILD_FILE = "CMakeLists.txt"

CPP_TYPES = {
    type_registry.STRING: "std::string",
    type_registry.INT32: "int32_t",
    type_registry.INT64: "int64_t",
    type_registry.INT16: "int16_t",
    type_registry.UINT32: "uint32_t",
    type_registry.UINT64: "uint64_t",
    type_registry.UINT16: "uint16_t",
    type_registry.DOUBLE: "double",
    type_registry.FLOAT: "float",
    type_registry.BOOL: "bool",
    type_registry.BYTES: "std::vector<unsigned char>",
}


def cpp_string(value: str) -> str:
    """Escapes a value for use inside a C++ string literal."""
    return (value.replace("\\", "\\\\").replace('"', '\\"')
            .replace("\n", "\\n").replace("\r", "\\r").replace("\t", "\\t"))


def cpp_comment(text: str) -> str:
    """Keeps documentation text from closing a block comment early."""
    return text.replace("*/", "* /")


def comment_lines(text: str, prefix: str) -> str:
    """Prefixes every line of a (multi-line) documentation string."""
    return "\n".join(prefix + line for line in cpp_comment(text).splitlines())


def class_names(catalog: Catalog) -> dict:
    """
    Assigns every enum and record a C++ type name, keyed by id() of the definition.

    Display names need not be unique across definitions (a root element
    'drawing' and a complexType 'Drawing' both display as 'Drawing'), so a
    clashing name gets '_' appended until it is free.
    """
    names = {}
    taken = set()
    for definition in (*catalog.enums, *catalog.records):
        name = definition.display_name
        while name in taken:
            name += "_"
        taken.add(name)
        names[id(definition)] = name
    return names


def cpp_type_name(catalog: Catalog, type_name: str, names: dict = None) -> str:
    """Maps a projected primitive or a user type reference to its C++ spelling."""
    if type_name in CPP_TYPES:
        return CPP_TYPES[type_name]
    definition = catalog.find_definition(type_name)
    if definition is not None:
        if names is None:
            names = class_names(catalog)
        return names[id(definition)]
    return type_name


def field_type_expr(catalog: Catalog, field: Field, names: dict = None) -> str:
    """
    Composes the member type: vectors for repeated fields, optionals for
    optional single fields, variants for collapsed choices.
    """
    if field.kind is FieldKind.CHOICE:
        cpp_type = f"std::variant<{', '.join(cpp_type_name(catalog, t, names) for t in field.choices)}>"
    else:
        cpp_type = cpp_type_name(catalog, field.type, names)
    if field.is_repeated:
        return f"std::vector<{cpp_type}>"
    if field.is_optional:
        return f"std::optional<{cpp_type}>"
    return cpp_type


def order_records(catalog: Catalog) -> list:
    """
    Orders records so that base types and by-value members come first.

    Catalog order is kept wherever dependencies allow it; cycles fall back to
    catalog order. Repeated members do not count as dependencies, a vector of
    an incomplete type is fine.
    """
    ordered = []
    done = set()
    visiting = set()

    def dependencies(record: RecordDef):
        names = [record.base_type] if record.base_type else []
        for field in record.fields:
            if not field.is_repeated:
                names.extend(field.choices or (field.type,))
        for name in names:
            dependency = catalog.find_definition(name)
            if isinstance(dependency, RecordDef) and dependency is not record:
                yield dependency

    def visit(record: RecordDef):
        if id(record) in done or id(record) in visiting:
            return
        visiting.add(id(record))
        for dependency in dependencies(record):
            visit(dependency)
        visiting.discard(id(record))
        done.add(id(record))
        ordered.append(record)

    for record in catalog.records:
        visit(record)
    return ordered


def enum_definition(enum_def: EnumDef, names: dict) -> dict:
    return {
        "name": names[id(enum_def)],
        "orig_name": enum_def.orig_name,
        "base_type": enum_def.base_type,
        "documentation": enum_def.documentation,
        "members": [
            {"value": value, "ident": ident, "renamed": ident != value}
            for value, ident in enum_def.members
        ],
    }


def record_definition(catalog: Catalog, record: RecordDef, names: dict) -> dict:
    base = catalog.find_definition(record.base_type) if record.base_type else None
    members = []
    for field in record.fields:
        # Nested records serialise themselves, everything else goes through toText()
        definition = catalog.find_definition(field.type)
        if field.kind is FieldKind.CHOICE:
            category = "choice"
        elif isinstance(definition, RecordDef):
            category = "record"
        elif isinstance(definition, EnumDef):
            category = "enum"
        else:
            category = "value"
        members.append({
            "name": field.ident,
            # Anonymous elements have no schema name, the identifier stands in
            "xml_name": field.xml_name or field.ident,
            "choice_names": list(field.choice_names),
            "cpp_type": field_type_expr(catalog, field, names),
            "documentation": field.documentation,
            "is_attribute": field.kind is FieldKind.ATTRIBUTE,
            "is_text": field.is_text,
            "is_repeated": field.is_repeated,
            "is_optional": field.is_optional and not field.is_repeated,
            "category": category,
        })
    return {
        "class_name": names[id(record)],
        "orig_name": record.orig_name,
        "documentation": record.documentation,
        "is_abstract": record.is_abstract,
        "is_root": record.is_root,
        # Only known records can be inherited from; anything else stays a note
        "base": names[id(base)] if isinstance(base, RecordDef) else "",
        "unresolved_base": record.base_type if not isinstance(base, RecordDef) else "",
        "members": members,
    }


def create_environment(template_dir=TEMPLATE_DIR) -> Environment:
    env = Environment(loader=FileSystemLoader(str(template_dir)), trim_blocks=True, lstrip_blocks=True,
                      keep_trailing_newline=True)
    env.filters["cpp_string"] = cpp_string
    env.filters["cpp_comment"] = cpp_comment
    env.filters["comment_lines"] = comment_lines
    return env


def render_files(catalog: Catalog, namespace: str = DEFAULT_NAMESPACE, with_sources: bool = False,
                 template_dir=TEMPLATE_DIR) -> dict:
    """
    Renders every output file in memory.

    :param catalog: The lowered schema.
    :param namespace: C++ namespace wrapped around the generated code; empty for none.
    :param with_sources: Also render Types.cpp with the XML serialisers.
    :param template_dir: Directory holding the Jinja2 templates.
    :return: Mapping of file name to file content, in writing order.
    """
    env = create_environment(template_dir)
    names = class_names(catalog)
    context = {
        "namespace": namespace,
        "target_namespace": catalog.target_namespace,
        "with_sources": with_sources,
        "enums": [enum_definition(enum_def, names) for enum_def in catalog.enums],
        "records": [record_definition(catalog, record, names) for record in order_records(catalog)],
    }

    file_names = [ENUMS_HEADER, ENUMS_SOURCE, TYPES_HEADER]
    if with_sources:
        file_names.append(TYPES_SOURCE)
    file_names.append(BUILD_FILE)
    return {name: env.get_template(f"{name}.j2").render(context) for name in file_names}


def generate_cpp_code(catalog: Catalog, output_dir, namespace: str = DEFAULT_NAMESPACE,
                      with_sources: bool = False, template_dir=TEMPLATE_DIR) -> list:
    """
    Writes the generated C++ files, creating the output directory if needed.

    :return: Paths of the written files.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    written = []
    for name, content in render_files(catalog, namespace, with_sources, template_dir).items():
        path = output_dir / name
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
        written.append(path)

    print(f"Code generated in directory '{output_dir}'.")
    return written
