from teller.brain.nlu import IntentParser, IntentTag
from teller.brain.normalize import contains_phrase, normalize_text, tokenize

ADDRESS = "0x" + "ab" * 20
TX_HASH = "0x" + "cd" * 32


def test_normalize_folds_arabic_variants_and_punctuation() -> None:
    assert normalize_text("  Send 5 USDC, NOW!  ") == "send 5 usdc now"
    assert normalize_text("أهلاً") == "اهلا"
    assert normalize_text("مدرسة") == "مدرسه"
    assert normalize_text("مستشفى") == "مستشفي"


def test_tokenize_drops_short_tokens() -> None:
    assert tokenize("a to be or x") == ["to", "be", "or"]


def test_latin_phrases_match_on_word_boundaries() -> None:
    assert contains_phrase("hi there", "hi")
    assert not contains_phrase("this is it", "hi")
    assert contains_phrase("عايز ابعتله فلوس", "ابعت")


def test_latin_phrases_accept_inflected_forms() -> None:
    assert contains_phrase("sending 5 usdc", "send")
    assert contains_phrase("payment for sam", "pay")
    assert not contains_phrase("his wallet", "hi")
    assert not contains_phrase("resend it", "send")
    parser = IntentParser()
    assert parser.parse("sending 5 USDC to @sam").intent is IntentTag.TRANSFER_INTENT
    assert parser.parse("payment of 3 USDC to @sam").intent is IntentTag.TRANSFER_INTENT


def test_priority_order_first_group_wins() -> None:
    parser = IntentParser()
    assert parser.parse("hello, send 5 USDC to @sam").intent is IntentTag.GREET
    assert parser.parse("send 5 USDC to @sam").intent is IntentTag.TRANSFER_INTENT
    assert parser.parse("confirm").intent is IntentTag.TX_CONFIRM
    assert parser.parse("please cancel it").intent is IntentTag.TX_CANCEL
    assert parser.parse("deep research on rollups").intent is IntentTag.DEEP_RESEARCH
    assert parser.parse("search staking").intent is IntentTag.KB_SEARCH
    assert parser.parse("who am i").intent is IntentTag.WHOAMI
    assert parser.parse("ابعت 10 USDC لـ @sam").intent is IntentTag.TRANSFER_INTENT


def test_unknown_has_low_confidence() -> None:
    parsed = IntentParser().parse("the weather looks nice")
    assert parsed.intent is IntentTag.UNKNOWN
    assert parsed.confidence == 0.5


def test_transfer_entities_and_full_confidence() -> None:
    parsed = IntentParser().parse(f"send 12.5 usdc to {ADDRESS} on base")
    assert parsed.intent is IntentTag.TRANSFER_INTENT
    assert parsed.confidence == 1.0
    e = parsed.entities
    assert e.amount == "12.5"
    assert e.token == "USDC"
    assert e.address == ADDRESS
    assert e.chain == "Base"


def test_default_token_applies_only_with_amount() -> None:
    parser = IntentParser(default_token="usdc")
    assert parser.parse("send 3 to @sam").entities.token == "USDC"
    assert parser.parse("send to @sam").entities.token is None
    assert parser.parse("send 1 ايثيريوم to @sam").entities.token == "ETH"


def test_tx_hash_is_not_an_address_or_amount() -> None:
    e = IntentParser().parse(f"status of {TX_HASH}").entities
    assert e.tx_hash == TX_HASH
    assert e.address is None
    assert e.amount is None


def test_mention_extracted() -> None:
    e = IntentParser().parse("pay @alice_w 4 GEM").entities
    assert e.username == "@alice_w"
    assert e.amount == "4"
    assert e.token == "GEM"
    assert e.as_dict() == {"amount": "4", "token": "GEM", "username": "@alice_w"}
