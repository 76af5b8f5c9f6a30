"""
Lowers an XSD document into the flat intermediate model of catalog.py.

The schema is read with lxml and walked once, top to bottom. Every construct
is dispatched on its XSD name; both the 'xs:'-prefixed and the unprefixed
spelling are accepted. Type references are resolved by name only, so a type
may be used before it is declared.
"""
import itertools
import sys
from pathlib import Path
from typing import Optional

import lxml.etree

import name_util
from catalog import UNBOUNDED, Catalog, ElementBinding, EnumDef, Field, FieldKind, RecordDef
from type_registry import STRING, TypeRegistry


XSD_NAMESPACE = "http://www.w3.org/2001/XMLSchema"
_XS_PREFIX = "xs:"
_ASCII_WHITESPACE = " \t\n\r"


class SchemaError(Exception):
    """Raised when the input cannot be read or is not an XSD schema."""


def warn(message: str):
    print(f"Warning: {message}", file=sys.stderr)


def info(message: str):
    print(f"Info: {message}", file=sys.stderr)


# --- XML tree helpers

def make_parser() -> lxml.etree.XMLParser:
    # Comments are kept, they can carry documentation
    return lxml.etree.XMLParser(resolve_entities=False, no_network=True, remove_comments=False)


def load_schema(filepath):
    """
    Parses an XSD file and returns its root element.

    :param filepath: Path to the XSD document.
    :raises SchemaError: If the file is missing, unreadable or not well-formed XML.
    """
    try:
        tree = lxml.etree.parse(str(filepath), make_parser())
    except lxml.etree.XMLSyntaxError as e:
        raise SchemaError(f"Could not parse XML file '{filepath}': {e}") from e
    except OSError as e:
        raise SchemaError(f"Could not read XML file '{filepath}': {e}") from e
    return tree.getroot()


def raw_name(node) -> str:
    """The element name as spelled in the document, e.g. 'xs:element'."""
    local = lxml.etree.QName(node).localname
    return f"{node.prefix}:{local}" if node.prefix else local


def construct_name(node) -> Optional[str]:
    """
    The XSD construct an element stands for, or None.

    'xs:foo' and 'foo' both mean 'foo'. Elements in the XSD namespace match on
    their local name whatever prefix they use.
    """
    if not isinstance(node.tag, str):
        return None
    qname = lxml.etree.QName(node)
    if qname.namespace == XSD_NAMESPACE:
        return qname.localname
    name = raw_name(node)
    if name.startswith(_XS_PREFIX):
        return name[len(_XS_PREFIX):]
    if ":" in name:
        return None
    return name


def is_construct(node, name: str) -> bool:
    return construct_name(node) == name


def child_elements(node, name: str = None):
    for child in node:
        if not isinstance(child.tag, str):
            continue
        if name is None or is_construct(child, name):
            yield child


def first_child(node, *names):
    """First direct child that is any of the given constructs, in document order."""
    for child in child_elements(node):
        if construct_name(child) in names:
            return child
    return None


def get_documentation(node) -> str:
    """
    Documentation for a construct.

    Uses the first annotation/documentation child; failing that, the comments
    directly preceding the construct, in document order.
    """
    annotation = first_child(node, "annotation")
    if annotation is not None:
        documentation = first_child(annotation, "documentation")
        if documentation is not None:
            text = documentation.xpath("string()").strip(_ASCII_WHITESPACE)
            if text:
                return text

    comments = []
    sibling = node.getprevious()
    while sibling is not None and not isinstance(sibling.tag, str):
        if sibling.tag is lxml.etree.Comment and sibling.text:
            text = sibling.text.strip(_ASCII_WHITESPACE)
            if text:
                comments.append(text)
        sibling = sibling.getprevious()
    return "\n".join(reversed(comments))


def _is_true(value) -> bool:
    return value in ("true", "1")


def _annotate(documentation: str, node) -> str:
    """Appends the default/fixed values of a declaration as tags."""
    lines = [documentation] if documentation else []
    default = node.get("default")
    if default:
        lines.append(f"[default: {default}]")
    fixed = node.get("fixed")
    if fixed:
        lines.append(f"[fixed: {fixed}]")
    return "\n".join(lines)


def _parse_occurs(node, attribute: str, default: int) -> int:
    value = node.get(attribute)
    if value is None:
        return default
    if value == "unbounded":
        return UNBOUNDED
    try:
        occurs = int(value)
    except ValueError:
        warn(f"{attribute}='{value}' on '{node.get('name', raw_name(node))}' is not a number, using {default}")
        return default
    if occurs < 0:
        warn(f"{attribute}='{value}' on '{node.get('name', raw_name(node))}' is negative, using {default}")
        return default
    return occurs


# --- Lowering engine

class SchemaLowering:
    """
    Walks an XSD schema and fills a Catalog with enums, records, elements and groups.

    Usage:
        lowering = SchemaLowering()
        catalog = lowering.parse("schema.xsd")
        for record in catalog.records:
            ...

    Each parse clears the catalog, restarts the anonymous name counters and
    freezes the catalog when done.
    """

    def __init__(self, catalog: Catalog = None):
        self.catalog = catalog if catalog is not None else Catalog()
        self.registry = TypeRegistry(self.catalog)
        self._reset_counters()

    def _reset_counters(self):
        self._anonymous_types = itertools.count()
        self._anonymous_elements = itertools.count()

    def clear(self):
        self.catalog.clear()
        self.registry.clear()
        self._reset_counters()

    # --- Entry points

    def parse(self, filepath) -> Catalog:
        return self.parse_tree(load_schema(Path(filepath)))

    def parse_string(self, text) -> Catalog:
        if isinstance(text, str):
            text = text.encode("utf-8")
        try:
            root = lxml.etree.fromstring(text, make_parser())
        except lxml.etree.XMLSyntaxError as e:
            raise SchemaError(f"Could not parse XML: {e}") from e
        return self.parse_tree(root)

    def parse_tree(self, root) -> Catalog:
        if hasattr(root, "getroot"):
            root = root.getroot()
        if root is None or not is_construct(root, "schema"):
            raise SchemaError("No schema root element found")

        self.clear()
        self.catalog.target_namespace = root.get("targetNamespace", "")
        self.lower_schema(root)
        self.catalog.freeze()
        return self.catalog

    def lower_schema(self, schema):
        for child in child_elements(schema):
            match construct_name(child):
                case "simpleType":
                    self.lower_simple_type(child)
                case "complexType":
                    self.lower_complex_type(child)
                case "element":
                    self.lower_element(child)
                case "group":
                    self.lower_group(child)
                case _:
                    warn(f"Unrecognised construct <{raw_name(child)}> ignored")

    # --- simpleType

    def lower_simple_type(self, node) -> Optional[EnumDef]:
        name = node.get("name")
        if not name:
            warn("simpleType without a name skipped")
            return None

        restriction = first_child(node, "restriction")
        if restriction is None:
            if first_child(node, "list", "union") is not None:
                info(f"simpleType '{name}' is a list or union, treated as string")
                self.registry.register_alias(name, STRING)
            else:
                warn(f"simpleType '{name}' has no restriction, skipped")
            return None

        ident = name_util.sanitize(name)
        enum_def = EnumDef(
            orig_name=name,
            ident=ident,
            display_name=name_util.display_name(ident),
            documentation=get_documentation(node),
        )
        base = restriction.get("base")
        if base:
            enum_def.base_type, _ = self.registry.resolve(base)

        for enumeration in child_elements(restriction, "enumeration"):
            value = enumeration.get("value")
            if value:
                enum_def.values.append(value)

        if not enum_def.values:
            # A plain restriction projects onto a string
            self.registry.register_alias(name, STRING)
            return None

        self.catalog.add_enum(enum_def)
        return enum_def

    # --- complexType

    def lower_complex_type(self, node, name: str = None) -> Optional[RecordDef]:
        """
        Lowers a complexType into a record and appends it to the catalog.

        :param node: The complexType element.
        :param name: Name to use instead of the node's own 'name' attribute,
            given when an inline type is hoisted.
        :return: The new record, or None if a record with the same ident
            already exists.
        """
        name = name or node.get("name")
        if name:
            ident = name_util.sanitize(name)
            record = RecordDef(orig_name=name, ident=ident, display_name=name_util.display_name(ident))
        else:
            synthesized = f"AnonymousComplexType_{next(self._anonymous_types)}"
            record = RecordDef(orig_name=synthesized, ident=synthesized, display_name=synthesized)

        record.documentation = get_documentation(node)
        record.is_abstract = _is_true(node.get("abstract"))

        self.lower_type_body(node, record)

        if not self.catalog.add_record(record):
            warn(f"type '{record.ident}' already exists, duplicate skipped")
            return None
        return record

    def lower_type_body(self, node, record: RecordDef):
        complex_content = first_child(node, "complexContent")
        simple_content = first_child(node, "simpleContent")
        if complex_content is not None:
            self.lower_complex_content(complex_content, record)
        elif simple_content is not None:
            self.lower_simple_content(simple_content, record)
        else:
            if _is_true(node.get("mixed")):
                record.fields.insert(0, Field(
                    ident="textContent",
                    type=STRING,
                    min_occurs=0,
                    max_occurs=1,
                    is_optional=True,
                    documentation="mixed content text",
                    is_text=True,
                ))
            self.lower_particle(node, record)
            self.lower_attributes(node, record)

    def lower_particle(self, node, record: RecordDef):
        """Lowers the first content model found, by priority sequence > choice > all > group."""
        for name, handler in (
            ("sequence", self.lower_sequence),
            ("choice", self.lower_choice),
            ("all", self.lower_all),
            ("group", self.inline_group),
        ):
            particle = first_child(node, name)
            if particle is not None:
                handler(particle, record)
                return

    def lower_complex_content(self, node, record: RecordDef):
        derivation = first_child(node, "extension", "restriction")
        if derivation is None:
            return

        if is_construct(derivation, "restriction"):
            warn(f"complexContent/restriction in '{record.orig_name}' is not supported")
            return

        base = derivation.get("base")
        if base:
            record.base_type, _ = self.registry.resolve(base)
        # Base fields stay with the base record, only the name is kept
        self.lower_particle(derivation, record)
        self.lower_attributes(derivation, record)

    def lower_simple_content(self, node, record: RecordDef):
        derivation = first_child(node, "extension", "restriction")
        if derivation is None:
            return

        is_extension = is_construct(derivation, "extension")
        base = derivation.get("base")
        if base:
            value_type, _ = self.registry.resolve(base)
            record.fields.append(Field(
                ident="value",
                type=value_type,
                documentation="text value" if is_extension else "text value with restrictions",
                is_text=True,
            ))
        if is_extension:
            self.lower_attributes(derivation, record)

    # --- Content models

    def lower_sequence(self, node, record: RecordDef):
        for child in child_elements(node):
            match construct_name(child):
                case "element":
                    field = self.lower_field(child)
                    if field.ident:
                        record.fields.append(field)
                case "group":
                    self.inline_group(child, record)
                case "sequence":
                    self.lower_sequence(child, record)
                case "choice":
                    self.lower_choice(child, record)
                case "all":
                    self.lower_all(child, record)
                case "any":
                    warn(f"<any> in '{record.orig_name}' is not supported, skipped")

    def lower_choice(self, node, record: RecordDef):
        """Collapses the element branches of a choice into one optional field."""
        branches = [self.lower_field(child) for child in child_elements(node, "element")]
        branches = [branch for branch in branches if branch.ident]
        if not branches:
            return

        branch_types = tuple(branch.type for branch in branches)
        record.fields.append(Field(
            ident="_".join(branch.ident for branch in branches),
            type=f"variant<{', '.join(branch_types)}>",
            kind=FieldKind.CHOICE,
            min_occurs=0,
            max_occurs=1,
            is_optional=True,
            documentation="\n".join(branch.documentation for branch in branches if branch.documentation),
            choices=branch_types,
            choice_names=tuple(branch.xml_name or branch.ident for branch in branches),
        ))

    def lower_all(self, node, record: RecordDef):
        for child in child_elements(node, "element"):
            field = self.lower_field(child)
            field.max_occurs = 1
            if field.ident:
                record.fields.append(field)

    def inline_group(self, node, record: RecordDef):
        ref = node.get("ref")
        if not ref:
            warn(f"group without a ref in '{record.orig_name}' skipped")
            return

        fields = self.catalog.find_group(ref)
        if fields is None:
            warn(f"group '{ref}' is referenced before it is defined, skipped")
            return

        if node.get("minOccurs") == "0":
            for field in fields:
                field.min_occurs = 0
                field.is_optional = True
        record.fields.extend(fields)

    # --- Attributes

    def lower_attributes(self, node, record: RecordDef):
        for child in child_elements(node):
            match construct_name(child):
                case "attribute":
                    field = self.lower_attribute(child)
                    if field is not None:
                        record.fields.append(field)
                case "attributeGroup":
                    ref = child.get("ref")
                    if ref:
                        info(f"attribute group reference '{ref}' in '{record.orig_name}' is not expanded")

    def lower_attribute(self, node) -> Optional[Field]:
        name = node.get("name")
        if not name:
            return None

        use = node.get("use", "optional")
        if use == "prohibited":
            return None

        type_attr = node.get("type")
        if type_attr:
            type_name, _ = self.registry.resolve(type_attr)
        else:
            type_name = self._inline_simple_base(node, camel_case=False)

        required = use == "required"
        return Field(
            ident=name_util.attribute_ident(name),
            xml_name=name,
            type=type_name,
            kind=FieldKind.ATTRIBUTE,
            min_occurs=1 if required else 0,
            max_occurs=1,
            is_optional=not required,
            documentation=_annotate(get_documentation(node), node),
        )

    def _inline_simple_base(self, node, camel_case: bool) -> str:
        """Type of an inline simpleType: the resolved restriction base, else string."""
        simple_type = first_child(node, "simpleType")
        if simple_type is None:
            return STRING
        restriction = first_child(simple_type, "restriction")
        base = restriction.get("base") if restriction is not None else None
        if not base:
            return STRING
        resolved, is_builtin = self.registry.resolve(base)
        if camel_case and not is_builtin:
            return name_util.display_name(resolved)
        return resolved

    # --- Elements

    def lower_field(self, node) -> Field:
        """
        Builds the field for an element particle.

        A field with an empty ident must be dropped by the caller.
        """
        name = node.get("name")
        if name:
            ident = name_util.sanitize(name)
        else:
            ident = f"anonymousElement_{next(self._anonymous_elements)}"
        field = Field(ident=ident, type=STRING, xml_name=name or "")

        type_attr = node.get("type")
        if type_attr:
            resolved, is_builtin = self.registry.resolve(type_attr)
            field.type = resolved if is_builtin else name_util.display_name(resolved)
        elif first_child(node, "simpleType") is not None:
            field.type = self._inline_simple_base(node, camel_case=True)
        else:
            complex_type = first_child(node, "complexType")
            if complex_type is not None:
                field.type = self.hoist_complex_type(complex_type, ident)

        field.documentation = _annotate(get_documentation(node), node)

        field.min_occurs = _parse_occurs(node, "minOccurs", 1)
        field.is_optional = field.min_occurs == 0
        field.max_occurs = _parse_occurs(node, "maxOccurs", 1)
        if _is_true(node.get("nillable")):
            field.is_optional = True
            field.min_occurs = 0

        if field.max_occurs == 0:
            warn(f"element '{ident}' has maxOccurs=0, skipped")
            field.ident = ""
        return field

    def hoist_complex_type(self, node, field_ident: str) -> str:
        """Lifts an inline complexType to a top-level record named after its field."""
        type_name = name_util.to_camel_case(field_ident)
        self.lower_complex_type(node, name=type_name)
        return name_util.sanitize(type_name)

    def lower_element(self, node) -> Optional[ElementBinding]:
        name = node.get("name")
        if not name:
            warn("top-level element without a name skipped")
            return None

        complex_type = first_child(node, "complexType")
        if complex_type is not None:
            record = self.lower_complex_type(complex_type)
            if record is not None:
                record.is_root = True
                ident = name_util.sanitize(name)
                if not self.catalog.rename_record(record, name, ident, name_util.display_name(ident)):
                    warn(f"type '{ident}' already exists, root element type kept as '{record.ident}'")

        type_attr = node.get("type", "")
        binding = ElementBinding(
            ident=name_util.sanitize(name),
            type=type_attr,
            documentation=get_documentation(node),
            is_complex=":" in type_attr,
        )
        self.catalog.add_element(binding)
        return binding

    # --- Named groups

    def lower_group(self, node) -> Optional[list]:
        name = node.get("name")
        if not name:
            warn("group without a name skipped")
            return None

        ident = name_util.sanitize(name)
        holder = RecordDef(orig_name=name, ident=ident, display_name=name_util.display_name(ident))
        self.lower_particle(node, holder)
        self.lower_attributes(node, holder)

        if not self.catalog.add_group(name, holder.fields):
            warn(f"group '{name}' already exists, duplicate skipped")
            return None
        return holder.fields
