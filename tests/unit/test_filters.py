import pytest

from wellcoach.core.errors import QuerySyntaxError
from wellcoach.vector.filters import combine, compile_filter, escape_tag, range_clause, tag_clause
from wellcoach.vector.schema import meals_index

MEAL = {
    "type": "breakfast",
    "dietaryRestrictions": ["vegetarian", "gluten-free"],
    "tags": ["high-protein", "quick"],
    "calories": 350,
    "prepTime": 10,
}


def test_clause_builders():
    assert tag_clause("type", ["breakfast"]) == "@type:{breakfast}"
    assert tag_clause("dietaryRestrictions", ["vegan", "gluten-free"]) == "@dietaryRestrictions:{vegan | gluten\\-free}"
    assert tag_clause("tags", []) is None
    assert tag_clause("tags", ["", "  "]) is None
    assert range_clause("calories", 200, None) == "@calories:[200 +inf]"
    assert range_clause("calories", None, 550.5) == "@calories:[-inf 550.5]"
    assert range_clause("calories") is None
    assert combine([None, None]) == "*"
    assert combine(["@a:{x}", None, "@b:[1 2]"]) == "@a:{x} @b:[1 2]"


def test_escape_tag_escapes_punctuation_and_spaces():
    assert escape_tag("yoga mat") == "yoga\\ mat"
    assert escape_tag("omega-3") == "omega\\-3"


def test_match_all_and_tag_membership_is_case_insensitive():
    assert compile_filter("*")(MEAL)
    assert compile_filter("@type:{Breakfast}")(MEAL)
    assert not compile_filter("@type:{dinner}")(MEAL)
    assert compile_filter("@dietaryRestrictions:{vegan | gluten\\-free}")(MEAL)


def test_comma_joined_tags_are_split():
    doc = {"tags": "quick,high-protein"}
    assert compile_filter("@tags:{high\\-protein}")(doc)


def test_numeric_ranges():
    assert compile_filter("@calories:[0 350]")(MEAL)
    assert not compile_filter("@calories:[0 (350]")(MEAL)
    assert compile_filter("@calories:[-inf +inf]")(MEAL)
    assert not compile_filter("@calories:[400 +inf]")(MEAL)
    assert not compile_filter("@calories:[0 1000]")({"calories": "n/a"})


def test_boolean_structure():
    assert compile_filter("@type:{breakfast} @prepTime:[0 15]")(MEAL)
    assert not compile_filter("@type:{breakfast} @prepTime:[0 5]")(MEAL)
    assert compile_filter("@type:{dinner} | @prepTime:[0 15]")(MEAL)
    assert compile_filter("(@type:{dinner} | @type:{breakfast}) -@tags:{fried}")(MEAL)
    assert not compile_filter("-@type:{breakfast}")(MEAL)


@pytest.mark.parametrize(
    "expression",
    ["", "@type:{breakfast", "@calories:[1]", "@calories:[a b]", "type:{x}", "(@type:{x}", "@type:{}"],
)
def test_malformed_expressions(expression):
    with pytest.raises(QuerySyntaxError):
        compile_filter(expression)


def test_schema_checks_fields_and_kinds():
    spec = meals_index(8)
    compile_filter("@type:{lunch} @calories:[0 500]", spec)
    with pytest.raises(QuerySyntaxError, match="unknown field"):
        compile_filter("@cuisine:{thai}", spec)
    with pytest.raises(QuerySyntaxError, match="not a TAG field"):
        compile_filter("@calories:{500}", spec)
    with pytest.raises(QuerySyntaxError, match="not a NUMERIC field"):
        compile_filter("@type:[0 1]", spec)
