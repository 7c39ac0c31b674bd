from __future__ import annotations

from lorekeeper.extraction.wikilinks import (
    extract_entity_mentions,
    link_known_names,
    parse_wikilinks,
    title_to_slug,
)


def test_longest_name_wins_without_nesting() -> None:
    text = "The Shadow Guild hides in shadow."

    linked = link_known_names(text, ["Shadow", "Shadow Guild"])

    assert linked == "The [[Shadow Guild]] hides in [[Shadow]]."
    assert "[[[[" not in linked


def test_matches_whole_words_case_insensitively_with_known_casing() -> None:
    linked = link_known_names("grok met Groknar and GROK again.", ["Grok"])

    assert linked == "[[Grok]] met Groknar and [[Grok]] again."


def test_existing_links_are_left_alone() -> None:
    text = "See [[Grok the Bold]] and Grok."

    assert link_known_names(text, ["Grok"]) == "See [[Grok the Bold]] and [[Grok]]."


def test_excluded_name_is_not_linked() -> None:
    assert link_known_names("Grok knows Mira.", ["Grok", "Mira"], exclude="grok") == (
        "Grok knows [[Mira]]."
    )


def test_names_with_regex_characters_are_escaped() -> None:
    assert link_known_names("Ask Dr. Who (retired).", ["Dr. Who (retired)"]) == (
        "Ask [[Dr. Who (retired)]]."
    )


def test_no_known_names_returns_text_unchanged() -> None:
    assert link_known_names("Plain text.", []) == "Plain text."
    assert link_known_names("", ["Grok"]) == ""


def test_parse_wikilinks_with_display_text() -> None:
    links = parse_wikilinks("Meet [[Grok|the bouncer]] at [[Rusty Anchor]].")

    assert [(link.target, link.display) for link in links] == [
        ("Grok", "the bouncer"),
        ("Rusty Anchor", "Rusty Anchor"),
    ]
    assert links[0].start == 5


def test_extract_entity_mentions_unique_in_order() -> None:
    content = "[[B]] then [[A]] then [[B|bee]]"

    assert extract_entity_mentions(content) == ["B", "A"]
    assert title_to_slug("Rusty Anchor") == "rusty-anchor"
