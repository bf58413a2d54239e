"""
Tests for the ERB layout engine.
"""

import re

import pytest

import reformaerb
from reformaerb import (
    BadAttributeSyntax, CodeFormatError, Formatter, FormatterConfig, FrontMatterError,
    Observer, UnmatchedCloseTag,
)
from reformaerb.placeholders import counter_markers


LONG_CLASSES = (
    "flex items-center justify-between px-4 py-2 bg-white shadow-md "
    "rounded-lg border border-gray-200 hover:bg-gray-50"
)

TEMPLATES = [
    "<div        > asdf    </div>",
    "<div>\n<p>\nhello\n</p>\n</div>",
    "<div>\n<p>a</p>\n\n<p>b</p>\n</div>",
    "<% if user %>\n<p>Hi</p>\n<% else %>\n<p>Bye</p>\n<% end %>",
    "<ul>\n<% items.each do |item| %>\n<li><%= item.name %></li>\n<% end %>\n</ul>",
    '<div id="main-container" data-controller="navigation" aria-label="Main navigation">\n  x\n</div>',
    f'<div class="{LONG_CLASSES}">\n  x\n</div>',
    "---\ntitle: Home\n---\n<div> x </div>",
    "<div>\n<script>\n  var a = 1;\n</script>\n</div>",
    '<p>\n<a href="<%= url %>">link</a> and <b>bold</b> text\n</p>',
    "<p>\n" + " ".join(f"word{i}" for i in range(60)) + "\n</p>",
    "<% case kind %>\n<% when :a %>\n<span>A</span>\n<% when :b %>\n<span>B</span>\n<% end %>",
    "<%# a comment %>\n<div>\n<%- x = 1 -%>\n<%== raw x %>\n</div>",
    "<p>\n<%= x %>" + " ".join(f"word{i}" for i in range(30)) + "\n</p>",
    "<div>\n<script>\n  i+= 1;\n</script>\n<p title=\"a   b\">x</p>\n</div>",
]


def squash(text: str) -> str:
    return re.sub(r"\s+", "", text)


class TestLayout:
    """Indentation and text reflow."""

    def test_simple_tag(self):
        assert reformaerb.format("<div        > asdf    </div>") == "<div>\n  asdf\n</div>\n"

    def test_hyphenated_tag_name(self):
        assert (reformaerb.format("<custom-div        > asdf    </custom-div>")
                == "<custom-div>\n  asdf\n</custom-div>\n")

    def test_glued_tags_stay_glued(self):
        assert reformaerb.format("<div><p>hello</p></div>") == "<div><p>hello</p></div>\n"

    def test_nested_indentation(self):
        source = "<div>\n<p>\nhello\n</p>\n</div>"
        assert reformaerb.format(source) == "<div>\n  <p>\n    hello\n  </p>\n</div>\n"

    def test_paragraph_break_kept_as_single_blank_line(self):
        source = "<div>\n<p>a</p>\n\n\n\n<p>b</p>\n</div>"
        assert reformaerb.format(source) == "<div>\n  <p>a</p>\n\n  <p>b</p>\n</div>\n"

    def test_void_elements_are_not_pushed(self):
        source = '<div>\n<br>\n<img src="a.png">\n<hr/>\n</div>'
        assert reformaerb.format(source) == '<div>\n  <br>\n  <img src="a.png">\n  <hr/>\n</div>\n'

    def test_explicit_self_closing_tag(self):
        assert reformaerb.format("<p>\n<x-icon />\n</p>") == "<p>\n  <x-icon/>\n</p>\n"

    def test_single_trailing_newline(self):
        assert reformaerb.format("\n\n<p>x</p>\n\n\n") == "<p>x</p>\n"

    def test_long_text_is_wrapped_within_width(self):
        words = [f"word{i}" for i in range(60)]
        out = reformaerb.format("<p>\n" + " ".join(words) + "\n</p>")
        lines = out.splitlines()
        assert len(lines) > 3
        assert max(len(line) for line in lines) <= 80
        assert all(line.startswith("  word") for line in lines[1:-1])
        assert out.split() == ["<p>"] + words + ["</p>"]

    def test_unsplittable_word_gets_its_own_line(self):
        long_word = "x" * 100
        out = reformaerb.format(f"<p>\nshort {long_word} tail\n</p>")
        assert out == f"<p>\n  short\n  {long_word}\n  tail\n</p>\n"

    def test_narrow_width_ignores_indentation_budget(self):
        out = reformaerb.format("<div>\n<p>\none two three four\n</p>\n</div>", line_width=10)
        assert out == "<div>\n  <p>\n    one two\n    three four\n  </p>\n</div>\n"

    def test_text_glued_to_a_tag_starts_part_way_along_the_line(self):
        words = [f"word{i}" for i in range(30)]
        out = reformaerb.format("<p>\n<%= x %>" + " ".join(words) + "\n</p>")
        lines = out.splitlines()
        assert lines[1] == "  <%= x %>" + " ".join(words[:11])
        assert max(len(line) for line in lines) <= 80
        assert out.split() == ["<p>", "<%=", "x", "%>word0"] + words[1:] + ["</p>"]
        assert reformaerb.format(out) == out

    def test_script_content_is_not_checked_for_attributes(self):
        source = "<script>\n  i+= 1;\n  if (a!= b) { go(); }\n</script>"
        assert reformaerb.format(source) == source + "\n"

    def test_raw_text_tags_are_copied(self):
        source = "<div>\n<script>\n  if (a) {   b();   }\n</script>\n</div>"
        assert (reformaerb.format(source)
                == "<div>\n  <script>\n  if (a) {   b();   }\n  </script>\n</div>\n")


class TestAttributes:
    """Attribute-list reflow through the whole engine."""

    def test_short_attributes_keep_order_and_quoting(self):
        source = "<input type=text name='q' disabled>"
        assert reformaerb.format(source) == "<input type=text name='q' disabled>\n"

    def test_long_attribute_list_is_split(self):
        source = '<div id="main-container" data-controller="navigation" aria-label="Main navigation">\n  x\n</div>'
        assert reformaerb.format(source) == (
            "<div\n"
            '  id="main-container"\n'
            '  data-controller="navigation"\n'
            '  aria-label="Main navigation"\n'
            ">\n"
            "  x\n"
            "</div>\n"
        )

    def test_long_class_list_is_packed(self):
        out = reformaerb.format(f'<div class="{LONG_CLASSES}">\n  x\n</div>')
        assert out == (
            "<div\n"
            '  class="\n'
            "    flex items-center justify-between px-4 py-2 bg-white shadow-md rounded-lg\n"
            '    border border-gray-200 hover:bg-gray-50"\n'
            ">\n"
            "  x\n"
            "</div>\n"
        )

    def test_single_class_per_line(self):
        out = reformaerb.format(f'<div class="{LONG_CLASSES}"></div>', single_class_per_line=True)
        lines = out.splitlines()
        assert lines[1] == '  class="'
        assert lines[2:13] == ["    " + c for c in LONG_CLASSES.split()[:-1]] + ['    hover:bg-gray-50"']

    def test_spaces_inside_quoted_values_are_kept(self):
        assert reformaerb.format('<p title="a   b">x</p>') == '<p title="a   b">x</p>\n'

    def test_class_sorter_reorders_only_class_tokens(self):
        order = {"a": 0, "b": 1, "c": 2}
        source = '<div id="x" class="b  c a" title="t">y</div>'
        out = reformaerb.format(source, css_class_sorter=order.get)
        assert out == '<div id="x" class="a b c" title="t">y</div>\n'

    def test_unknown_classes_sort_last(self):
        order = {"a": 0, "b": 1}
        out = reformaerb.format('<i class="z b y a"></i>', css_class_sorter=order.get)
        assert out == '<i class="a b z y"></i>\n'

    def test_class_attribute_normalizes_unquoted_values(self):
        out = reformaerb.format('<input class="a" value=1 disabled>')
        assert out == '<input class="a" value="1" disabled>\n'

    def test_erb_inside_attribute_is_restored(self):
        source = '<a href="<%= url %>" class="<%= css %> x">go</a>'
        assert reformaerb.format(source) == '<a href="<%= url %>" class="<%= css %> x">go</a>\n'

    def test_bad_attribute_spacing_is_fatal(self):
        with pytest.raises(BadAttributeSyntax):
            reformaerb.format('<div class= "foo">x</div>')


class TestErb:
    """Embedded Ruby blocks and the code-formatter hooks."""

    def test_if_else_end(self):
        source = "<% if user %>\n<p>Hi</p>\n<% else %>\n<p>Bye</p>\n<% end %>"
        assert reformaerb.format(source) == "<% if user %>\n  <p>Hi</p>\n<% else %>\n  <p>Bye</p>\n<% end %>\n"

    def test_each_block(self):
        source = "<ul>\n<% items.each do |item| %>\n<li><%= item.name %></li>\n<% end %>\n</ul>"
        assert reformaerb.format(source) == (
            "<ul>\n"
            "  <% items.each do |item| %>\n"
            "    <li><%= item.name %></li>\n"
            "  <% end %>\n"
            "</ul>\n"
        )

    def test_brace_block(self):
        source = "<% items.map { |i| %>\n<b><%= i %></b>\n<% } %>"
        assert reformaerb.format(source) == "<% items.map { |i| %>\n  <b><%= i %></b>\n<% } %>\n"

    def test_tag_spacing_is_normalized(self):
        source = "<p><%=x%> <%-   y   -%> <%#note%></p>"
        assert reformaerb.format(source) == "<p><%= x %>\n  <%- y -%>\n  <%#note %></p>\n"

    def test_standalone_keyword_does_not_open_a_block(self):
        source = "<div>\n<% yield %>\n</div>"
        assert reformaerb.format(source) == "<div>\n  <% yield %>\n</div>\n"

    def test_long_expression_is_reformatted_and_reindented(self):
        def format_code(code, width):
            if code.startswith("render"):
                return 'render(\n  partial: "x",\n  locals: { a: 1 },\n)\n'
            return code

        source = '<div>\n<%= render partial: "x", locals: { a: 1 } %>\n</div>'
        assert reformaerb.format(source, format_code=format_code) == (
            "<div>\n"
            "  <%= render(\n"
            '    partial: "x",\n'
            "    locals: { a: 1 },\n"
            "  ) %>\n"
            "</div>\n"
        )

    def test_formatter_failure_keeps_code(self):
        def format_code(code, width):
            raise CodeFormatError("syntax error")

        assert reformaerb.format("<p><%= foo   bar %></p>", format_code=format_code) == "<p><%= foo   bar %></p>\n"

    def test_formatter_returning_none_keeps_code(self):
        assert reformaerb.format("<p><%= a  + b %></p>", format_code=lambda c, w: None) == "<p><%= a  + b %></p>\n"

    def test_formatter_receives_line_width(self):
        widths = []

        def format_code(code, width):
            widths.append(width)
            return code

        reformaerb.format("<p><%= a %></p>", format_code=format_code, line_width=100)
        assert widths == [100]

    def test_opener_is_formatted_without_its_terminator(self):
        def squeeze(code, width):
            return re.sub(r" +", " ", code)

        source = "<% if  x %>\n<p>y</p>\n<% end %>"
        assert reformaerb.format(source, format_code=squeeze) == "<% if x %>\n  <p>y</p>\n<% end %>\n"

    def test_opener_keeps_code_when_formatter_rewrites_the_block(self):
        source = "<% items.each do |i| %>\n<p>y</p>\n<% end %>"
        out = reformaerb.format(source, format_code=lambda c, w: "items.each { |i| }")
        assert out == "<% items.each do |i| %>\n  <p>y</p>\n<% end %>\n"

    def test_unformatted_multiline_code_is_stable(self):
        source = "<div>\n<%= link_to(\n        a,\n        b) %>\n</div>"
        once = reformaerb.format(source)
        assert once == "<div>\n  <%= link_to(\n  a,\n  b) %>\n</div>\n"
        assert reformaerb.format(once) == once

    def test_custom_probe(self):
        probe = lambda code: code.startswith("open") and not code.endswith("end")
        source = "<% open_thing %>\n<p>x</p>\n<% end %>"
        assert reformaerb.format(source, is_incomplete=probe) == "<% open_thing %>\n  <p>x</p>\n<% end %>\n"


class TestErrors:
    """Fatal conditions abort the run with location details."""

    def test_mismatched_close_tag(self):
        with pytest.raises(UnmatchedCloseTag) as excinfo:
            reformaerb.format("<div>\n<p>\n</span>", filename="page.html.erb")
        error = excinfo.value
        assert error.line == 3
        assert error.stack_top == "p"
        assert str(error).startswith("page.html.erb:3:in `p'")

    def test_unclosed_tag_at_end_of_document(self):
        with pytest.raises(UnmatchedCloseTag, match="Unclosed"):
            reformaerb.format("<div>\n<p>x</p>")

    def test_stray_erb_end(self):
        with pytest.raises(UnmatchedCloseTag):
            reformaerb.format("<p>x</p>\n<% end %>")

    def test_reopener_inside_tag_is_fatal(self):
        with pytest.raises(UnmatchedCloseTag):
            reformaerb.format("<% if a %><div><% else %></div><% end %>")

    def test_unclosed_erb_block(self):
        with pytest.raises(UnmatchedCloseTag):
            reformaerb.format("<% if a %>\n<p>x</p>")

    def test_error_carries_partial_output(self):
        with pytest.raises(UnmatchedCloseTag) as excinfo:
            reformaerb.format("<div>\n<p>x</p>\n</span>")
        assert "<p>x</p>" in excinfo.value.formatted
        assert "==> ERROR:" in excinfo.value.details()

    def test_invalid_front_matter(self):
        with pytest.raises(FrontMatterError):
            reformaerb.format("---\nkey: [unclosed\n---\n<p>x</p>")

    def test_line_width_must_be_positive(self):
        with pytest.raises(ValueError):
            reformaerb.format("<p>x</p>", line_width=0)


class TestFrontMatterAndPlaceholders:

    def test_front_matter_is_kept_verbatim(self):
        source = "---\ntitle:   Home\n---\n<div> x </div>"
        assert reformaerb.format(source) == "---\ntitle:   Home\n---\n\n<div>\n  x\n</div>\n"

    def test_existing_marker_text_survives(self):
        assert reformaerb.format("<p>erb123tag <%= x %></p>") == "<p>erb123tag\n  <%= x %></p>\n"

    def test_deterministic_markers(self):
        f = Formatter("<p><%= a %> erb9tag</p>", id_factory=counter_markers())
        assert f.html == "<p><%= a %>\n  erb9tag</p>\n"
        assert "erb1tag" in f.pre_placeholders
        assert f.erb_tags["erb2tag"] == "<%= a %>"


class TestEngine:

    def test_observer_sees_pushes_and_pops(self):
        class Recorder(Observer):
            def __init__(self):
                self.events = []

            def on_push(self, entry):
                self.events.append(("push", entry.label))

            def on_pop(self, entry):
                self.events.append(("pop", entry.label))

        recorder = Recorder()
        Formatter("<div><p>x</p><% if a %><% end %></div>", observer=recorder)
        assert recorder.events == [
            ("push", "div"), ("push", "p"), ("pop", "p"),
            ("push", "if a"), ("pop", "if a"), ("pop", "div"),
        ]

    def test_keyword_options_override_config(self):
        config = FormatterConfig(line_width=20, single_class_per_line=True)
        f = Formatter("<p>x</p>", config=config, line_width=40)
        assert f.line_width == 40
        assert f.config == FormatterConfig(line_width=40, single_class_per_line=True)
        assert Formatter("<p>x</p>", config=config).config == config

    def test_config_object(self):
        config = FormatterConfig(line_width=20)
        f = Formatter("<p>\none two three four five six\n</p>", config=config)
        assert f.html == "<p>\n  one two three four\n  five six\n</p>\n"
        assert str(f) == f.html

    @pytest.mark.parametrize("source", TEMPLATES)
    def test_idempotent(self, source):
        once = reformaerb.format(source)
        assert reformaerb.format(once) == once

    @pytest.mark.parametrize("source", TEMPLATES)
    def test_content_preserved_modulo_whitespace(self, source):
        assert squash(reformaerb.format(source)) == squash(source)

    @pytest.mark.parametrize("source", TEMPLATES)
    def test_width_bound(self, source):
        out = reformaerb.format(source)
        for line in out.splitlines():
            assert len(line) <= 80 or " " not in line.strip()
