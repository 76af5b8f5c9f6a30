"""
The intermediate model produced by lowering an XSD document.

Definitions reference each other by name only, so forward references and
cyclic type graphs need no special handling here.
"""
import enum
from dataclasses import dataclass, field, replace
from typing import Optional

import name_util


UNBOUNDED = -1


class FieldKind(enum.Enum):
    ATTRIBUTE = "attribute"
    ELEMENT = "element"
    CHOICE = "choice"


@dataclass
class Field:
    """One attribute, element or collapsed choice of a record."""
    ident: str
    type: str
    kind: FieldKind = FieldKind.ELEMENT
    min_occurs: int = 1
    max_occurs: int = 1  # UNBOUNDED for maxOccurs="unbounded"
    is_optional: bool = False
    documentation: str = ""
    # Branch types of a CHOICE field, in source order
    choices: tuple = ()
    # Name of the attribute or element in the schema; for a CHOICE, one per branch
    xml_name: str = ""
    choice_names: tuple = ()
    # Character data of the owning element (simpleContent value, mixed text)
    is_text: bool = False

    @property
    def is_repeated(self) -> bool:
        return self.max_occurs != 1

    def copy(self) -> "Field":
        return replace(self)


@dataclass
class EnumDef:
    orig_name: str
    ident: str
    display_name: str
    base_type: str = "string"
    values: list = field(default_factory=list)
    documentation: str = ""

    @property
    def members(self) -> list:
        """(original spelling, member identifier) pairs in source order."""
        return [(value, name_util.enum_member_ident(value)) for value in self.values]


@dataclass
class RecordDef:
    orig_name: str
    ident: str
    display_name: str
    base_type: str = ""
    is_abstract: bool = False
    is_root: bool = False
    fields: list = field(default_factory=list)
    documentation: str = ""

    def find_field(self, ident: str) -> Optional[Field]:
        for f in self.fields:
            if f.ident == ident:
                return f
        return None


@dataclass
class ElementBinding:
    """A top-level xs:element. `type` is the raw type attribute, kept for display."""
    ident: str
    type: str = ""
    documentation: str = ""
    is_complex: bool = False


class Catalog:
    """
    Ordered containers for everything lowered from one schema.

    Insertion order is kept so that emission is deterministic. Once lowering
    finishes the catalog is frozen and any further mutation raises.
    """

    def __init__(self):
        self.target_namespace = ""
        self._enums = []
        self._records = []
        self._elements = []
        self._groups = {}
        self._frozen = False

    # --- Read-only views

    @property
    def enums(self) -> tuple:
        return tuple(self._enums)

    @property
    def records(self) -> tuple:
        return tuple(self._records)

    @property
    def elements(self) -> tuple:
        return tuple(self._elements)

    @property
    def groups(self) -> dict:
        return dict(self._groups)

    @property
    def frozen(self) -> bool:
        return self._frozen

    # --- Lifecycle

    def clear(self):
        self.target_namespace = ""
        self._enums.clear()
        self._records.clear()
        self._elements.clear()
        self._groups.clear()
        self._frozen = False

    def freeze(self):
        self._frozen = True

    def _check_mutable(self):
        if self._frozen:
            raise RuntimeError("Catalog is frozen; call clear() before lowering another schema")

    # --- Mutation (lowering only)

    def add_enum(self, enum_def: EnumDef):
        self._check_mutable()
        self._enums.append(enum_def)

    def add_record(self, record: RecordDef) -> bool:
        """Appends the record unless one with the same ident exists."""
        self._check_mutable()
        if self.find_record(record.ident) is not None:
            return False
        self._records.append(record)
        return True

    def rename_record(self, record: RecordDef, orig_name: str, ident: str, display_name: str) -> bool:
        """Renames a record in place; refused if another record owns the ident."""
        self._check_mutable()
        existing = self.find_record(ident)
        if existing is not None and existing is not record:
            return False
        record.orig_name = orig_name
        record.ident = ident
        record.display_name = display_name
        return True

    def add_element(self, binding: ElementBinding):
        self._check_mutable()
        self._elements.append(binding)

    def add_group(self, name: str, fields: list) -> bool:
        self._check_mutable()
        if name in self._groups:
            return False
        self._groups[name] = list(fields)
        return True

    # --- Lookups

    def find_enum(self, ident: str) -> Optional[EnumDef]:
        for enum_def in self._enums:
            if enum_def.ident == ident:
                return enum_def
        return None

    def find_record(self, ident: str) -> Optional[RecordDef]:
        for record in self._records:
            if record.ident == ident:
                return record
        return None

    def find_group(self, name: str) -> Optional[list]:
        """Fields of a named group; a 'prefix:' on the reference is ignored."""
        fields = self._groups.get(name)
        if fields is None:
            fields = self._groups.get(name_util.strip_prefix(name))
        if fields is None:
            return None
        return [f.copy() for f in fields]

    def find_definition(self, type_name: str):
        """The enum or record a field type refers to, by ident first, then by display name."""
        definitions = (*self._enums, *self._records)
        for definition in definitions:
            if definition.ident == type_name:
                return definition
        for definition in definitions:
            if definition.display_name == type_name:
                return definition
        return None

    def summary(self) -> str:
        lines = ["=== XSD Schema Summary ===", f"Enums: {len(self._enums)}"]
        for enum_def in self._enums:
            lines.append(f"  - {enum_def.ident} ({len(enum_def.values)} values)")
        lines.append("")
        lines.append(f"Complex Types: {len(self._records)}")
        for record in self._records:
            lines.append(f"  - {record.ident} ({len(record.fields)} fields)")
        lines.append("")
        lines.append(f"Elements: {len(self._elements)}")
        for element in self._elements:
            lines.append(f"  - {element.ident} ({element.type})")
        return "\n".join(lines)
