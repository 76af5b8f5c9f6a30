import sys
from xml.etree.ElementTree import ParseError

import xmlschema

from schema_lower import SchemaError


def verify_schema(filepath_schema):
    """
    Loads a schema with xmlschema to check that it is a consistent XSD document.

    :param filepath_schema: Path to the XSD file.
    :return: The built xmlschema.XMLSchema11 instance.
    :raises SchemaError: If xmlschema rejects the schema.
    """
    try:
        return xmlschema.XMLSchema11(str(filepath_schema))
    except (xmlschema.XMLSchemaException, ParseError, OSError) as e:
        raise SchemaError(f"Schema '{filepath_schema}' is not valid:\n{e}") from e


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) != 1:
        print("Usage: verify_schema.py <xsd_file>", file=sys.stderr)
        return 2

    filepath_schema = argv[0]
    try:
        verify_schema(filepath_schema)
    except SchemaError as e:
        print(e, file=sys.stderr)
        return 1
    print(f"'{filepath_schema}' is a valid schema.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
