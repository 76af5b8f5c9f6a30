import pytest

import cpp_codegen
from catalog import Catalog, EnumDef, Field, FieldKind, RecordDef
from schema_lower import SchemaLowering


SHAPES = """
<xs:schema xmlns:xs="http://www.w3.org/2001/XMLSchema" targetNamespace="urn:shapes">
  <xs:simpleType name="ColorType">
    <xs:restriction base="xs:string">
      <xs:enumeration value="red-hot"/>
      <xs:enumeration value="green"/>
    </xs:restriction>
  </xs:simpleType>
  <xs:complexType name="Circle">
    <xs:complexContent>
      <xs:extension base="Shape">
        <xs:sequence>
          <xs:element name="radius" type="xs:double"/>
          <xs:element name="tags" type="xs:string" maxOccurs="unbounded"/>
          <xs:element name="color" type="ColorType" minOccurs="0"/>
        </xs:sequence>
        <xs:attribute name="id" type="xs:int" use="required"/>
      </xs:extension>
    </xs:complexContent>
  </xs:complexType>
  <xs:complexType name="Shape" abstract="true">
    <xs:annotation><xs:documentation>A shape. Ends */ here.</xs:documentation></xs:annotation>
    <xs:sequence><xs:element name="origin" type="Point"/></xs:sequence>
  </xs:complexType>
  <xs:complexType name="Point">
    <xs:sequence>
      <xs:element name="x" type="xs:int"/>
      <xs:element name="created-at" type="xs:string" minOccurs="0"/>
      <xs:choice>
        <xs:element name="a" type="xs:int"/>
        <xs:element name="b" type="xs:string"/>
      </xs:choice>
    </xs:sequence>
  </xs:complexType>
  <xs:element name="drawing">
    <xs:complexType>
      <xs:sequence><xs:element name="shape" type="Circle" maxOccurs="unbounded"/></xs:sequence>
    </xs:complexType>
  </xs:element>
</xs:schema>
"""


@pytest.fixture(scope="module")
def catalog():
    return SchemaLowering().parse_string(SHAPES)


@pytest.fixture(scope="module")
def files(catalog):
    return cpp_codegen.render_files(catalog, with_sources=True)


class TestTypes:
    """
    Mapping of lowered field types onto C++ member types.
    """

    @pytest.mark.parametrize("type_name, expected", [
        ("string", "std::string"),
        ("int32", "int32_t"),
        ("uint64", "uint64_t"),
        ("bool", "bool"),
        ("bytes", "std::vector<unsigned char>"),
        ("Color", "Color"),
        ("Unknown", "Unknown"),
    ])
    def test_cpp_type_name(self, catalog, type_name, expected):
        assert cpp_codegen.cpp_type_name(catalog, type_name) == expected

    def test_field_type_expr(self, catalog):
        circle = catalog.find_record("Circle")
        assert cpp_codegen.field_type_expr(catalog, circle.find_field("radius")) == "double"
        assert cpp_codegen.field_type_expr(catalog, circle.find_field("tags")) == "std::vector<std::string>"
        assert cpp_codegen.field_type_expr(catalog, circle.find_field("color")) == "std::optional<Color>"

    def test_choice_type_expr(self, catalog):
        point = catalog.find_record("Point")
        assert cpp_codegen.field_type_expr(catalog, point.find_field("a_b")) == \
            "std::optional<std::variant<int32_t, std::string>>"

    def test_repeated_choice(self):
        field = Field(ident="a_b", type="", kind=FieldKind.CHOICE, max_occurs=-1, choices=("int32", "bool"))
        assert cpp_codegen.field_type_expr(Catalog(), field) == "std::vector<std::variant<int32_t, bool>>"


class TestOrdering:

    def test_dependencies_come_first(self, catalog):
        ordered = [record.ident for record in cpp_codegen.order_records(catalog)]
        assert [record.ident for record in catalog.records] == ["Circle", "Shape", "Point", "drawing"]
        assert ordered == ["Point", "Shape", "Circle", "drawing"]

    def test_cycles_terminate(self):
        catalog = Catalog()
        catalog.add_record(RecordDef(orig_name="A", ident="A", display_name="A", fields=[Field(ident="b", type="B")]))
        catalog.add_record(RecordDef(orig_name="B", ident="B", display_name="B", fields=[Field(ident="a", type="A")]))

        ordered = cpp_codegen.order_records(catalog)
        assert sorted(record.ident for record in ordered) == ["A", "B"]

    def test_repeated_members_are_not_dependencies(self):
        catalog = Catalog()
        catalog.add_record(RecordDef(orig_name="A", ident="A", display_name="A",
                                     fields=[Field(ident="b", type="B", max_occurs=-1)]))
        catalog.add_record(RecordDef(orig_name="B", ident="B", display_name="B"))

        assert [record.ident for record in cpp_codegen.order_records(catalog)] == ["A", "B"]


class TestRender:

    def test_file_order(self, catalog):
        assert list(cpp_codegen.render_files(catalog)) == ["Enums.h", "Enums.cpp", "Types.h", "CMakeLists.txt"]
        assert list(cpp_codegen.render_files(catalog, with_sources=True)) == \
            ["Enums.h", "Enums.cpp", "Types.h", "Types.cpp", "CMakeLists.txt"]

    def test_enums_header(self, files):
        header = files["Enums.h"]
        assert "// Target namespace: urn:shapes" in header
        assert "namespace Generated {" in header
        assert "enum class Color {" in header
        assert "    red_hot, // red-hot\n" in header
        assert "    green,\n" in header
        assert "Color stringTo<Color>(const std::string& str);" in header
        assert "std::string toString(Color value);" in header

    def test_enums_source(self, files):
        source = files["Enums.cpp"]
        assert '        {"red_hot", Color::red_hot},' in source
        assert '        {"red-hot", Color::red_hot},' in source
        assert '        case Color::red_hot: return "red-hot";' in source
        assert "} // namespace Generated" in source

    def test_types_header(self, files):
        header = files["Types.h"]
        assert "struct Circle;" in header
        assert header.index("struct Point {") < header.index("struct Shape {") < header.index("struct Circle : Shape {")
        assert "// abstract\nstruct Shape {" in header
        assert " * A shape. Ends * / here." in header
        assert "    Point origin;" in header
        assert "    std::vector<std::string> tags;" in header
        assert "    std::optional<Color> color;" in header
        assert "    int32_t Id;" in header
        assert "    std::optional<std::variant<int32_t, std::string>> a_b;" in header
        assert "// document root <drawing>\nstruct Drawing {" in header
        assert "    std::vector<Circle> shape;" in header
        assert 'const char* name = "Circle") const;' in header

    def test_types_header_without_sources(self, catalog):
        header = cpp_codegen.render_files(catalog)["Types.h"]
        assert "toXmlNode" not in header

    def test_types_source(self, files):
        source = files["Types.cpp"]
        assert "void Circle::writeXml(tinyxml2::XMLDocument& doc, tinyxml2::XMLElement* element) const {\n" \
               "    Shape::writeXml(doc, element);" in source
        assert 'element->InsertEndChild(origin.toXmlNode(doc, "origin"));' in source
        assert 'for (const auto& xsdItem : tags) appendText(doc, element, "tags", toText(xsdItem));' in source
        assert 'if (color) appendText(doc, element, "color", toText((*color)));' in source

    def test_serialisers_use_schema_names(self, files):
        """Attributes and elements are written under their schema names, not the member identifiers."""
        source = files["Types.cpp"]
        assert 'element->SetAttribute("id", toText(Id).c_str());' in source
        assert 'if (created_at) appendText(doc, element, "created-at", toText((*created_at)));' in source
        assert 'if (a_b) { static const char* const names[] = {"a", "b"}; ' \
               'appendVariant(doc, element, names, (*a_b)); }' in source
        assert '"Id"' not in source
        assert '"a_b"' not in source

    def test_build_file(self, catalog, files):
        assert "    Types.cpp\n" in files["CMakeLists.txt"]
        assert "project(Generated)" in files["CMakeLists.txt"]
        assert "Types.cpp" not in cpp_codegen.render_files(catalog)["CMakeLists.txt"]

    def test_custom_namespace(self, catalog):
        rendered = cpp_codegen.render_files(catalog, namespace="Shapes")
        assert "namespace Shapes {" in rendered["Types.h"]
        assert "project(Shapes)" in rendered["CMakeLists.txt"]

    def test_no_namespace(self, catalog):
        rendered = cpp_codegen.render_files(catalog, namespace="")
        assert "namespace" not in rendered["Types.h"]
        assert "} // namespace" not in rendered["Enums.cpp"]

    def test_unresolved_base_is_noted(self):
        catalog = SchemaLowering().parse_string("""
            <xs:schema xmlns:xs="http://www.w3.org/2001/XMLSchema">
              <xs:complexType name="Local">
                <xs:complexContent><xs:extension base="ext:ForeignType"/></xs:complexContent>
              </xs:complexType>
            </xs:schema>""")

        header = cpp_codegen.render_files(catalog)["Types.h"]
        assert "// extends Foreign\nstruct Local {" in header


class TestClassNames:

    def test_clashing_display_names_get_unique_structs(self):
        catalog = SchemaLowering().parse_string("""
            <xs:schema xmlns:xs="http://www.w3.org/2001/XMLSchema">
              <xs:complexType name="Drawing">
                <xs:sequence><xs:element name="x" type="xs:int"/></xs:sequence>
              </xs:complexType>
              <xs:element name="drawing">
                <xs:complexType>
                  <xs:sequence><xs:element name="d" type="Drawing"/></xs:sequence>
                </xs:complexType>
              </xs:element>
            </xs:schema>""")
        assert [record.ident for record in catalog.records] == ["Drawing", "drawing"]

        header = cpp_codegen.render_files(catalog, with_sources=True)["Types.h"]
        assert header.count("struct Drawing;") == 1
        assert header.count("struct Drawing {") == 1
        assert "// document root <drawing>\nstruct Drawing_ {" in header
        assert "    Drawing d;" in header
        assert 'const char* name = "drawing") const;' in header

    def test_enum_and_record_names_do_not_clash(self):
        catalog = Catalog()
        catalog.add_enum(EnumDef(orig_name="Mode", ident="Mode", display_name="Mode", values=["on"]))
        catalog.add_record(RecordDef(orig_name="mode", ident="mode", display_name="Mode",
                                     fields=[Field(ident="m", type="Mode")]))
        catalog.add_record(RecordDef(orig_name="Holder", ident="Holder", display_name="Holder",
                                     fields=[Field(ident="r", type="mode")]))

        names = cpp_codegen.class_names(catalog)
        assert sorted(names.values()) == ["Holder", "Mode", "Mode_"]

        header = cpp_codegen.render_files(catalog)["Types.h"]
        assert "struct Mode_ {\n    Mode m;" in header
        assert "    Mode_ r;" in header


class TestGenerate:

    def test_writes_files(self, catalog, tmp_path, capsys):
        output_dir = tmp_path / "nested" / "out"
        written = cpp_codegen.generate_cpp_code(catalog, output_dir, with_sources=True)

        assert [path.name for path in written] == ["Enums.h", "Enums.cpp", "Types.h", "Types.cpp", "CMakeLists.txt"]
        for path in written:
            assert path.parent == output_dir
            assert path.read_text(encoding="utf-8")
        assert f"Code generated in directory '{output_dir}'." in capsys.readouterr().out
