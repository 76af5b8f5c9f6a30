"""
Maps XSD type names onto the projected primitive names of the intermediate model.
"""
import name_util


STRING = "string"
INT32 = "int32"
INT64 = "int64"
INT16 = "int16"
UINT32 = "uint32"
UINT64 = "uint64"
UINT16 = "uint16"
DOUBLE = "double"
FLOAT = "float"
BOOL = "bool"
BYTES = "bytes"

BUILTIN_TYPES = {
    "xs:string": STRING,
    "xs:date": STRING,
    "xs:dateTime": STRING,
    "xs:time": STRING,
    "xs:anyURI": STRING,
    "xs:QName": STRING,
    "xs:Name": STRING,
    "xs:normalizedString": STRING,
    "xs:token": STRING,
    "xs:int": INT32,
    "xs:integer": INT32,
    "xs:long": INT64,
    "xs:short": INT16,
    "xs:unsignedInt": UINT32,
    "xs:positiveInteger": UINT32,
    "xs:nonNegativeInteger": UINT32,
    "scaledNonNegativeInteger": UINT32,
    "xs:unsignedLong": UINT64,
    "xs:unsignedShort": UINT16,
    "xs:decimal": DOUBLE,
    "xs:double": DOUBLE,
    "xs:float": FLOAT,
    "xs:boolean": BOOL,
    "xs:base64Binary": BYTES,
    "xs:hexBinary": BYTES,
}

PRIMITIVES = frozenset(BUILTIN_TYPES.values())


class TypeRegistry:
    """
    Resolves qualified type names against the built-in table, the aliases
    registered during lowering and the definitions already in the catalog.

    :param catalog: The catalog consulted for user-defined enums and records.
    """

    def __init__(self, catalog):
        self.catalog = catalog
        self._aliases = {}

    def clear(self):
        self._aliases.clear()

    def register_alias(self, name: str, projected: str = STRING):
        """Registers a simple type that projects straight onto a primitive."""
        self._aliases[name] = projected

    def lookup_builtin(self, qname: str):
        if qname in BUILTIN_TYPES:
            return BUILTIN_TYPES[qname]
        if qname in self._aliases:
            return self._aliases[qname]
        return self._aliases.get(name_util.strip_prefix(qname))

    def resolve(self, qname: str) -> tuple:
        """
        Resolves an XSD type reference.

        :param qname: The type name as written in the schema, e.g. 'xs:int' or 'tns:PointType'.
        :return: (projected name, is_builtin). Unknown names are treated as
            forward references and come back sanitized.
        """
        builtin = self.lookup_builtin(qname)
        if builtin is not None:
            return builtin, True

        local = name_util.strip_prefix(qname)
        if self.is_enum(local) or self.is_record(local):
            return local, False
        return name_util.sanitize(local), False

    def is_enum(self, ident: str) -> bool:
        return self.catalog.find_enum(ident) is not None

    def is_record(self, ident: str) -> bool:
        return self.catalog.find_record(ident) is not None
