import random

from teller.brain.selfcheck import CLOSINGS, OPENINGS, SelfChecker, similarity


def test_similarity_is_token_jaccard() -> None:
    assert similarity("send the usdc now", "send the usdc now") == 1.0
    assert similarity("send the usdc", "") == 0.0
    # "to" and "a" are too short to count.
    assert similarity("send usdc to sam", "send eth to sam") == 0.5
    assert similarity("Send USDC!", "send usdc") == 1.0


def test_fresh_reply_with_marker_is_left_alone() -> None:
    checker = SelfChecker(rng=random.Random(1))
    draft = "Look, fees on Base are tiny."
    assert checker.check(draft, "Sam", []) == draft


def test_reply_without_marker_gets_wrapped() -> None:
    checker = SelfChecker(rng=random.Random(1))
    draft = "Fees on Base are tiny."
    wrapped = checker.check(draft, "Sam", [])
    assert wrapped != draft
    assert draft in wrapped
    assert wrapped.endswith(CLOSINGS)


def test_identical_drafts_produce_different_outputs() -> None:
    checker = SelfChecker(rng=random.Random(7))
    draft = "Your balance check is queued and should finish shortly."

    first = checker.check(draft, "Sam", [])
    second = checker.check(draft, "Sam", [first])

    assert first != second
    assert draft in first and draft in second


def test_repeat_of_latest_reply_is_rewritten_even_with_marker() -> None:
    checker = SelfChecker(rng=random.Random(3))
    previous = "Hey, your transfer draft is ready for confirmation."
    assert checker.needs_rewrite(previous, [previous])
    assert not checker.needs_rewrite(previous, ["Something entirely unrelated about weather."])


def test_empty_draft_is_untouched() -> None:
    assert SelfChecker().check("   ", "Sam", []) == "   "


def test_every_opening_passes_the_marker_check() -> None:
    checker = SelfChecker()
    for opening in OPENINGS:
        wrapped = f"{opening.replace('{name}', 'Sam')} Fees on Base are tiny. {CLOSINGS[0]}"
        assert checker.has_marker(wrapped), wrapped
    assert not checker.has_marker("Goodness, fees on Base are tiny.")
