"""Rendered file contents for the basic search application.

The generated app is a plain Rails scaffold for one resource with
Elasticsearch integration via the `elasticsearch-model` and
`elasticsearch-rails` gems: model callbacks keep the index in sync, and a
search action plus form on the index page query it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_NAME_RE = re.compile(r"^[A-Z][A-Za-z0-9]*$")
_FIELD_RE = re.compile(r"^[a-z_][a-z0-9_]*:[a-z]+$")

DEFAULT_FIELDS = ("title:string", "content:text", "published_on:date")

SEED_CONTENTS = (
    "Lorem ipsum dolor sit amet.",
    "Consectetur adipisicing elit, sed do eiusmod tempor incididunt.",
    "Labore et dolore magna aliqua.",
    "Ut enim ad minim veniam, quis nostrud exercitation ullamco laboris.",
    "Excepteur sint occaecat cupidatat non proident.",
)
SEED_TITLES = ("One", "Two", "Three", "Four", "Five")


def _underscore(name: str) -> str:
    word = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", name)
    return re.sub(r"([a-z\d])([A-Z])", r"\1_\2", word).lower()


def _titleize(word: str) -> str:
    return " ".join(part.capitalize() for part in word.split("_"))


# ActiveSupport's default plural rules, highest precedence first.
_PLURAL_RULES = tuple(
    (re.compile(rx), repl)
    for rx, repl in (
        (r"(quiz)$", r"\1zes"),
        (r"^(oxen)$", r"\1"),
        (r"^(ox)$", r"\1en"),
        (r"^(m|l)ice$", r"\1ice"),
        (r"^(m|l)ouse$", r"\1ice"),
        (r"(matr|vert|ind)(?:ix|ex)$", r"\1ices"),
        (r"(x|ch|ss|sh)$", r"\1es"),
        (r"([^aeiouy]|qu)y$", r"\1ies"),
        (r"(hive)$", r"\1s"),
        (r"(?:([^f])fe|([lr])f)$", r"\1\2ves"),
        (r"sis$", "ses"),
        (r"([ti])a$", r"\1a"),
        (r"([ti])um$", r"\1a"),
        (r"(buffal|tomat)o$", r"\1oes"),
        (r"(bu)s$", r"\1ses"),
        (r"(alias|status)$", r"\1es"),
        (r"(octop|vir)i$", r"\1i"),
        (r"(octop|vir)us$", r"\1i"),
        (r"^(ax|test)is$", r"\1es"),
        (r"s$", "s"),
        (r"$", "s"),
    )
)

# Rails inflects these outside the regular rules; the generated routes and
# fixtures would not match what we compute.
_IRREGULAR_RE = re.compile(r"(person|man|child)$")
_UNCOUNTABLE = frozenset(
    {"equipment", "information", "rice", "money", "species", "series", "fish", "sheep", "jeans", "police"}
)


def _unsupported_inflection(singular: str) -> bool:
    return singular in _UNCOUNTABLE or bool(_IRREGULAR_RE.search(singular))


def _pluralize(word: str) -> str:
    for rx, repl in _PLURAL_RULES:
        if rx.search(word):
            return rx.sub(repl, word, count=1)
    return word


@dataclass(frozen=True)
class SearchAppContext:
    app_name: str
    resource: str
    fields: tuple[str, ...]

    @property
    def singular(self) -> str:
        return _underscore(self.resource)

    @property
    def plural(self) -> str:
        return _pluralize(self.singular)

    @property
    def singular_title(self) -> str:
        return _titleize(self.singular)

    @property
    def plural_title(self) -> str:
        return _titleize(self.plural)

    @property
    def first_string_field(self) -> str | None:
        for f in self.fields:
            name, kind = f.split(":", 1)
            if kind == "string":
                return name
        return None


def build_search_app_context(
    *,
    app_name: str,
    resource: str | None = None,
    fields: tuple[str, ...] | list[str] | None = None,
) -> SearchAppContext:
    name = (app_name or "").strip() or "searchapp"
    res = (resource or "").strip() or "Article"
    if not _NAME_RE.match(res):
        raise ValueError(f"Resource name must be CamelCase: {res!r}")
    if _unsupported_inflection(_underscore(res)):
        raise ValueError(f"Resource name has an irregular or uncountable plural: {res!r}")
    flds = tuple(f.strip() for f in (fields or DEFAULT_FIELDS) if f.strip())
    bad = [f for f in flds if not _FIELD_RE.match(f)]
    if bad:
        raise ValueError(f"Invalid field definitions: {', '.join(bad)}")
    if not flds:
        raise ValueError("At least one field is required")
    return SearchAppContext(app_name=name, resource=res, fields=flds)


def scaffold_generator_args(ctx: SearchAppContext) -> list[str]:
    return [ctx.resource, *ctx.fields]


def render_readme(ctx: SearchAppContext) -> str:
    return (
        "# Ruby on Rails and Elasticsearch: Example application\n"
        "\n"
        "This application is an example of integrating the "
        "[Elasticsearch](https://www.elastic.co) search engine with the "
        "[Ruby on Rails](http://rubyonrails.org) web framework.\n"
        "\n"
        "## [1] Basic\n"
        "\n"
        f"The `basic` version provides a simple integration for a simple Rails model, "
        f"`{ctx.resource}`, showing how to include the search engine support in your "
        "model, automatically index changes to records, and use a form to perform "
        "simple search requests.\n"
    )


def render_model(ctx: SearchAppContext) -> str:
    return (
        f"class {ctx.resource} < ApplicationRecord\n"
        "  include Elasticsearch::Model\n"
        "  include Elasticsearch::Model::Callbacks\n"
        "end\n"
    )


def controller_path(ctx: SearchAppContext) -> str:
    return f"app/controllers/{ctx.plural}_controller.rb"


def index_view_path(ctx: SearchAppContext) -> str:
    return f"app/views/{ctx.plural}/index.html.erb"


def controller_test_path(ctx: SearchAppContext) -> str:
    return f"test/controllers/{ctx.plural}_controller_test.rb"


def render_search_action(ctx: SearchAppContext) -> str:
    return (
        "\n"
        f"  # GET /{ctx.plural}/search\n"
        "  def search\n"
        f"    @{ctx.plural} = {ctx.resource}.search(params[:q]).records\n"
        "\n"
        '    render action: "index"\n'
        "  end\n"
        "\n"
    )


def search_action_anchor(ctx: SearchAppContext) -> str:
    return rf"^\s*# GET /{re.escape(ctx.plural)}/1$"


def render_search_form(ctx: SearchAppContext) -> str:
    return (
        "\n"
        "\n"
        "<hr>\n"
        "\n"
        f"<%= form_tag search_{ctx.plural}_path, method: 'get' do %>\n"
        "  <%= label_tag :query %>\n"
        "  <%= text_field_tag :q, params[:q] %>\n"
        "  <%= submit_tag :search %>\n"
        "<% end %>\n"
        "\n"
        "<hr>\n"
    )


def search_form_anchor(ctx: SearchAppContext) -> str:
    return rf"<h1>.*{re.escape(ctx.plural_title)}</h1>"


def render_all_records_link(ctx: SearchAppContext) -> str:
    return f"\n<%= link_to 'All {ctx.plural_title}', {ctx.plural}_path if params[:q] %>\n"


def all_records_link_anchor(ctx: SearchAppContext) -> str:
    return rf"<%= link_to ['\"]New {re.escape(ctx.singular_title)}['\"], new_{re.escape(ctx.singular)}_path %>"


def routes_pattern(ctx: SearchAppContext) -> str:
    return rf"resources :{re.escape(ctx.plural)}$"


def render_routes(ctx: SearchAppContext) -> str:
    return (
        f"resources :{ctx.plural} do\n"
        "    collection { get :search }\n"
        "  end"
    )


def controller_test_setup_pattern() -> str:
    return r"setup do\n.*?^[ \t]*end$"


def render_controller_test_setup(ctx: SearchAppContext) -> str:
    return (
        "setup do\n"
        f"    @{ctx.singular} = {ctx.plural}(:one)\n"
        "\n"
        f"    {ctx.resource}.__elasticsearch__.import force: true\n"
        f"    {ctx.resource}.__elasticsearch__.refresh_index!\n"
        "  end"
    )


def controller_test_index_anchor() -> str:
    return r'test "should get index" do\n.*?^[ \t]*end$'


def render_search_test(ctx: SearchAppContext) -> str:
    # Scaffold fixtures fill string columns with "MyString"; both fixtures match.
    return (
        "\n"
        "\n"
        '  test "should get search results" do\n'
        f'    get search_{ctx.plural}_url(q: "mystring")\n'
        "    assert_response :success\n"
        f"    assert_not_nil assigns(:{ctx.plural})\n"
        f"    assert_equal 2, assigns(:{ctx.plural}).size\n"
        "  end\n"
    )


def create_index_command(ctx: SearchAppContext) -> list[str]:
    return ["bin/rails", "runner", f"{ctx.resource}.__elasticsearch__.create_index! force: true"]


def render_seeds(ctx: SearchAppContext) -> str:
    title = ctx.first_string_field or "title"
    contents = ",\n".join(f"  {c!r}" for c in SEED_CONTENTS)
    titles = " ".join(SEED_TITLES)
    # Extra attributes (content, published_on) only when the default fields are in use.
    defaults = set(ctx.fields) >= set(DEFAULT_FIELDS)
    extra_fixed = ", content: contents[i], published_on: i.days.ago.utc" if defaults else ""
    extra_bulk = ", content: 'Lorem ipsum dolor', published_on: i.days.ago.utc" if defaults else ""
    return (
        "contents = [\n"
        f"{contents}\n"
        "]\n"
        "\n"
        f'puts "Deleting all {ctx.plural}..."\n'
        f"{ctx.resource}.delete_all\n"
        "\n"
        "unless ENV['COUNT']\n"
        "\n"
        f'  puts "Creating {ctx.plural}..."\n'
        f"  %w[ {titles} ].each_with_index do |title, i|\n"
        f"    {ctx.resource}.create {title}: title{extra_fixed}\n"
        "  end\n"
        "\n"
        "else\n"
        "\n"
        f'  print "Generating {ctx.plural}..."\n'
        "  count = ENV['COUNT'].to_i\n"
        "  step = [count / 10, 1].max\n"
        "  (1..count).each_with_index do |n, i|\n"
        f'    {ctx.resource}.create {title}: "Title #{{n}}"{extra_bulk}\n'
        "    print '.' if (i % step).zero?\n"
        "  end\n"
        '  puts "\\n"\n'
        "\n"
        "end\n"
    )
