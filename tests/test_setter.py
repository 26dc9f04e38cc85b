"""Tests for name decoding and binding setters."""

from hyperscope import create_setter, kebab_to_camel
from hyperscope.dom import Element
from hyperscope.setter import set_deep


class TestKebabToCamel:
    def test_hyphen_capitalizes(self):
        assert kebab_to_camel("background-color") == "backgroundColor"

    def test_double_hyphen_is_literal(self):
        assert kebab_to_camel("--a") == "-a"
        assert kebab_to_camel("a--b") == "a-b"

    def test_plain_name_unchanged(self):
        assert kebab_to_camel("title") == "title"

    def test_multiple_segments(self):
        assert kebab_to_camel("style.font-size") == "style.fontSize"


class TestAttributeSetter:
    def test_replace(self):
        el = Element("div", {"title": "old"})
        create_setter("title", el)("new")
        assert el.get_attribute("title") == "new"

    def test_append(self):
        el = Element("div", {"class": "a"})
        create_setter("class+", el)(" b")
        assert el.get_attribute("class") == "a b"

    def test_append_to_missing_attribute(self):
        el = Element("div")
        create_setter("data-log+", el)("x")
        assert el.get_attribute("data-log") == "x"

    def test_none_becomes_empty(self):
        el = Element("div")
        create_setter("title", el)(None)
        assert el.get_attribute("title") == ""


class TestPropertySetter:
    def test_text_alias(self):
        el = Element("p")
        create_setter(":text", el)(42)
        assert el.text_content == "42"

    def test_html_alias(self):
        el = Element("ul")
        create_setter(":html", el)("<li>A</li>")
        assert [child.tag for child in el.children] == ["li"]

    def test_html_append(self):
        el = Element("ul")
        el.inner_html = "<li>A</li>"
        create_setter(":html+", el)("<li>B</li>")
        assert el.inner_html == "<li>A</li><li>B</li>"

    def test_nested_path_decoded(self):
        el = Element("div")
        create_setter(":style.background-color", el)("red")
        assert el.style["backgroundColor"] == "red"

    def test_plain_object_attribute(self):
        class Widget:
            value = "a"

        widget = Widget()
        create_setter(":value+", widget)("b")
        assert widget.value == "ab"

    def test_set_deep_dict_path(self):
        target = {"config": {"theme": "light"}}
        set_deep(target, "config.theme", "dark")
        assert target == {"config": {"theme": "dark"}}

    def test_dom_style_content_names(self):
        el = Element("p")
        create_setter(":text-content", el)("hi")
        assert el.text_content == "hi"
        assert "textContent" not in vars(el)
        create_setter(":inner-h-t-m-l", el)("<b>x</b>")
        assert el.inner_html == "<b>x</b>"
        create_setter(":inner-html+", el)("<i>y</i>")
        assert el.inner_html == "<b>x</b><i>y</i>"

    def test_outer_html_name(self):
        parent = Element("div")
        child = parent.append_child(Element("span"))
        create_setter(":outer-h-t-m-l", child)("<em>z</em>")
        assert parent.inner_html == "<em>z</em>"
