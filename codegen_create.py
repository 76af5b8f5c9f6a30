"""
Command line entry point: lowers an XSD schema and writes the C++ projection.

    python codegen_create.py schema.xsd [output_dir] [--namespace NAME] [--with-sources] [--verify]
"""
import argparse
import sys

import cpp_codegen
import verify_schema
from schema_lower import SchemaError, SchemaLowering


DEFAULT_OUTPUT_DIR = "generated"


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generate C++ enums and structs from an XSD schema.")
    parser.add_argument("xsd_file", help="Path to the XSD schema")
    parser.add_argument("output_dir", nargs="?", default=DEFAULT_OUTPUT_DIR,
                        help=f"Directory for the generated files (default: {DEFAULT_OUTPUT_DIR})")
    parser.add_argument("--namespace", default=cpp_codegen.DEFAULT_NAMESPACE,
                        help="C++ namespace of the generated code; empty for none")
    parser.add_argument("--with-sources", action="store_true",
                        help="Also generate Types.cpp with tinyxml2 serialisers")
    parser.add_argument("--verify", action="store_true",
                        help="Check the schema with xmlschema before generating")
    parser.add_argument("--quiet", action="store_true", help="Do not print the schema summary")
    return parser


def main(argv=None) -> int:
    args = build_arg_parser().parse_args(argv)

    try:
        if args.verify:
            verify_schema.verify_schema(args.xsd_file)
            print(f"Schema '{args.xsd_file}' is valid.")

        print(f"Parsing schema '{args.xsd_file}'...")
        catalog = SchemaLowering().parse(args.xsd_file)
        print(f"Found {len(catalog.enums)} enums, {len(catalog.records)} complex types "
              f"and {len(catalog.elements)} elements.")
        if not args.quiet:
            print(catalog.summary())

        written = cpp_codegen.generate_cpp_code(catalog, args.output_dir, namespace=args.namespace,
                                                with_sources=args.with_sources)
    except SchemaError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error: could not write generated code: {e}", file=sys.stderr)
        return 1

    print("Code generation complete. Generated files:")
    for path in written:
        print(f"  - {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
