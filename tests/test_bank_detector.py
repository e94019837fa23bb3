from bank_detector import detect_bank_profile, match_confidence
from bank_profiles import (
    ALL_PROFILES,
    BankProfile,
    ColumnMapping,
    HeaderPattern,
    get_profile_by_id,
    profiles_for_institution,
    supported_banks,
)


def test_exact_chase_headers_detected_with_full_confidence() -> None:
    headers = [
        "Transaction Date",
        "Post Date",
        "Description",
        "Category",
        "Type",
        "Amount",
        "Memo",
    ]
    result = detect_bank_profile(headers)

    assert result is not None
    assert result.profile.id == "chase"
    assert result.confidence == 1.0


def test_detection_normalizes_case_and_whitespace() -> None:
    headers = ["  date", "DESCRIPTION ", "Amount", "running bal."]
    result = detect_bank_profile(headers)

    assert result is not None
    assert result.profile.id == "bofa"


def test_debit_credit_layout_detected() -> None:
    headers = ["Date", "Type", "Check #", "Description", "Withdrawal", "Deposit", "Balance"]
    result = detect_bank_profile(headers)

    assert result is not None
    assert result.profile.id == "schwab-checking"


def test_unrelated_headers_are_not_detected() -> None:
    assert detect_bank_profile(["foo", "bar", "baz"]) is None
    assert detect_bank_profile([]) is None


def test_equal_scores_keep_first_profile_in_registry_order() -> None:
    # fidelity-cash and fidelity-credit share this exact pattern
    result = detect_bank_profile(["Date", "Transaction", "Name", "Memo", "Amount"])

    assert result is not None
    assert result.profile.id == "fidelity-cash"


def test_partial_matches_score_half() -> None:
    score = match_confidence(["transaction date", "amount"], ["date", "amount"])
    assert score == 0.75


def test_empty_headers_never_partially_match() -> None:
    score = match_confidence(["", "amount"], ["date", "amount"])
    assert score == 0.5


def test_threshold_is_inclusive_and_configurable() -> None:
    profile = BankProfile(
        id="two-col",
        name="Two Column",
        patterns=(HeaderPattern(("Date", "Amount")),),
        column_mapping=ColumnMapping(date="Date", description="Date", amount="Amount"),
        date_format="MM/dd/yyyy",
    )
    headers = ["Date", "Something Else"]

    at_threshold = detect_bank_profile(headers, profiles=[profile], threshold=0.5)
    assert at_threshold is not None
    assert at_threshold.confidence == 0.5

    assert detect_bank_profile(headers, profiles=[profile], threshold=0.51) is None


def test_custom_profile_list_is_searched() -> None:
    profile = BankProfile(
        id="test",
        name="Test Bank",
        patterns=(HeaderPattern(("Date", "Description", "Amount")),),
        column_mapping=ColumnMapping(
            date="Date", description="Description", amount="Amount"
        ),
        date_format="MM/dd/yyyy",
    )
    result = detect_bank_profile(["Date", "Description", "Amount"], profiles=[profile])

    assert result is not None
    assert result.profile is profile


def test_registry_helpers() -> None:
    assert get_profile_by_id("chase-checking").name == "Chase Checking"
    assert get_profile_by_id("nope") is None
    assert get_profile_by_id("schwab-brokerage").institution == "schwab"

    fidelity = [p.id for p in profiles_for_institution("fidelity")]
    assert fidelity == ["fidelity-cash", "fidelity-brokerage", "fidelity-credit"]

    banks = supported_banks()
    assert [b["id"] for b in banks] == ["bofa", "chase", "schwab", "fidelity"]
    assert [b["name"] for b in banks] == [
        "Bank of America",
        "Chase",
        "Charles Schwab",
        "Fidelity",
    ]
    assert len({p.id for p in ALL_PROFILES}) == len(ALL_PROFILES)
