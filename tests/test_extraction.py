"""
Tests for the document field extractor and date normalization
"""
import pytest

from kyc_onboarding.schemas.extraction import IdType
from kyc_onboarding.services.extraction_service import FieldExtractor, normalize_dob


@pytest.fixture
def extractor():
    return FieldExtractor(use_sample_fallbacks=True)


@pytest.fixture
def strict_extractor():
    return FieldExtractor(use_sample_fallbacks=False)


class TestBasicProperties:
    """Properties every extraction must satisfy."""

    def test_aadhaar_card_text(self, extractor):
        """A typical Aadhaar front side yields name, DOB and number."""
        text = "Government of India\nRamesh Kumar\nDOB: 15/08/1990\nMale\n2345 6789 0123"
        result = extractor.extract(text)

        assert result.full_name == "Ramesh Kumar"
        assert result.dob == "1990-08-15"
        assert result.id_type == IdType.AADHAAR
        assert result.id_number == "2345 6789 0123"
        assert result.address is None
        assert result.raw_text == text

    def test_empty_text(self, extractor):
        result = extractor.extract("")
        assert result.full_name is None
        assert result.dob is None
        assert result.id_type is None
        assert result.id_number is None
        assert result.address is None
        assert result.raw_text == ""
        assert not result.has_any_field()

    def test_none_is_treated_as_empty(self, extractor):
        result = extractor.extract(None)
        assert result.raw_text == ""
        assert not result.has_any_field()

    def test_extraction_is_deterministic(self, extractor):
        text = "Ramesh Kumar | | DOB: 15/08/1990\nS/O Suresh Kumar, 12 MG Road\nBengaluru\n2345 6789 0123"
        assert extractor.extract(extractor.extract(text).raw_text) == extractor.extract(text)

    def test_result_is_immutable(self, extractor):
        result = extractor.extract("ABCDE1234F")
        with pytest.raises(Exception):
            result.id_number = "changed"

    def test_serializes_with_camel_case_keys(self, extractor):
        data = extractor.extract("Name: Ramesh Kumar").model_dump(by_alias=True)
        assert data["fullName"] == "Ramesh Kumar"
        assert "idType" in data and "idNumber" in data and "rawText" in data

    def test_garbage_input_never_raises(self, extractor):
        text = "|||| \x00 ©® ::: 99/99/9999 ~~ नाम पता ||\r\r\n"
        result = extractor.extract(text)
        assert result.raw_text == text


class TestNameExtraction:
    """Name cascade: card layout, label, line start, before DOB, line scan."""

    def test_card_layout(self, extractor):
        result = extractor.extract("Ramesh Kumar | | DOB: 15/08/1990 | Male")
        assert result.full_name == "Ramesh Kumar"

    def test_labeled_name(self, extractor):
        result = extractor.extract("Name: Ramesh Kumar\nDOB: 15/08/1990")
        assert result.full_name == "Ramesh Kumar"

    def test_labeled_name_with_label_suffix(self, extractor):
        result = extractor.extract("Name of holder: Priya Sharma\n")
        assert result.full_name == "Priya Sharma"

    def test_labeled_name_on_next_line(self, extractor):
        result = extractor.extract("Name\nPriya Sharma\n")
        assert result.full_name == "Priya Sharma"

    def test_hindi_label(self, extractor):
        result = extractor.extract("नाम: Priya Sharma\n")
        assert result.full_name == "Priya Sharma"

    def test_name_before_dob_cell(self, extractor):
        result = extractor.extract("ID 4411 Anita Desai | Female | DOB: 01/01/1980")
        assert result.full_name == "Anita Desai"

    def test_line_scan_with_carriage_returns(self, extractor):
        """Lines separated only by \\r are still scanned one by one."""
        result = extractor.extract("Ramesh Kumar\rDOB: 15/08/1990")
        assert result.full_name == "Ramesh Kumar"

    def test_line_scan_skips_boilerplate(self, extractor):
        result = extractor.extract("Aadhaar Card\rVerify Online\rPriya Sharma\r1234")
        assert result.full_name == "Priya Sharma"

    def test_no_name(self, extractor):
        result = extractor.extract("GOVERNMENT OF INDIA\n2345 6789 0123")
        assert result.full_name is None


class TestDobExtraction:
    """DOB cascade and normalization."""

    def test_labeled_numeric(self, extractor):
        assert extractor.extract("DOB: 15/08/1990").dob == "1990-08-15"

    def test_labeled_without_colon_keeps_full_day(self, extractor):
        assert extractor.extract("DOB 15/08/1990").dob == "1990-08-15"

    def test_labeled_dash_format_is_padded(self, extractor):
        assert extractor.extract("Date of Birth: 5-8-1990").dob == "1990-08-05"

    def test_labeled_textual(self, extractor):
        assert extractor.extract("Date of Birth: 5 March 1985").dob == "1985-03-05"

    def test_hindi_label(self, extractor):
        assert extractor.extract("जन्म तिथि/DOB: 14/05/2006").dob == "2006-05-14"

    def test_bare_numeric(self, extractor):
        assert extractor.extract("Issued 1/2/2003").dob == "2003-02-01"

    def test_bare_textual(self, extractor):
        assert extractor.extract("born 21 Jan 1975 in Pune").dob == "1975-01-21"

    def test_year_first(self, extractor):
        assert extractor.extract("1990-8-5").dob == "1990-08-05"

    def test_two_digit_year_is_left_raw(self, extractor):
        assert extractor.extract("DOB: 15/08/90").dob == "15/08/90"

    def test_impossible_calendar_date_is_left_raw(self, extractor):
        assert extractor.extract("DOB: 31 Feb 1990").dob == "31 Feb 1990"

    def test_no_date(self, extractor):
        assert extractor.extract("Ramesh Kumar").dob is None


class TestNormalizeDob:
    """normalize_dob on its own."""

    @pytest.mark.parametrize("raw,expected", [
        ("15/08/1990", "1990-08-15"),
        ("1/2/2003", "2003-02-01"),
        ("15 August 1990", "1990-08-15"),
        ("5 Sept 1990", "1990-09-05"),
        ("2001/1/9", "2001-01-09"),
    ])
    def test_recognised_formats(self, raw, expected):
        assert normalize_dob(raw) == expected

    @pytest.mark.parametrize("raw", ["15/08-1990", "15 Foo 1990", "yesterday", ""])
    def test_unrecognised_formats_pass_through(self, raw):
        assert normalize_dob(raw) == raw


class TestIdExtraction:
    """ID family priority and keyword sniffing."""

    def test_pan_without_aadhaar(self, extractor):
        result = extractor.extract("INCOME TAX DEPARTMENT\nABCDE1234F")
        assert result.id_type == IdType.PAN
        assert result.id_number == "ABCDE1234F"

    def test_aadhaar_wins_over_pan(self, extractor):
        result = extractor.extract("ABCDE1234F\n2345 6789 0123")
        assert result.id_type == IdType.AADHAAR
        assert result.id_number == "2345 6789 0123"

    def test_aadhaar_spacing_is_normalized(self, extractor):
        result = extractor.extract("Aadhaar No: 2345  6789   0123")
        assert result.id_type == IdType.AADHAAR
        assert result.id_number == "2345 6789 0123"

    def test_aadhaar_ungrouped(self, extractor):
        result = extractor.extract("UID 234567890123")
        assert result.id_number == "234567890123"

    def test_passport(self, extractor):
        result = extractor.extract("REPUBLIC OF INDIA\nPassport No. K1234567")
        assert result.id_type == IdType.PASSPORT
        assert result.id_number == "K1234567"

    def test_driving_licence_maps_to_voter(self, extractor):
        result = extractor.extract("Driving Licence MH12 20110012345")
        assert result.id_type == IdType.VOTER
        assert result.id_number == "MH12 20110012345"

    def test_voter_id(self, extractor):
        result = extractor.extract("ELECTION COMMISSION OF INDIA\nABC1234567")
        assert result.id_type == IdType.VOTER
        assert result.id_number == "ABC1234567"

    @pytest.mark.parametrize("text,expected", [
        ("Unique Identification Authority of India", IdType.AADHAAR),
        ("आधार - आम आदमी का अधिकार", IdType.AADHAAR),
        ("Permanent Account Number Card", IdType.PAN),
        ("भारत गणराज्य", IdType.PASSPORT),
    ])
    def test_keyword_sniffing_sets_type_only(self, extractor, text, expected):
        result = extractor.extract(text)
        assert result.id_type == expected
        assert result.id_number is None

    def test_uid_must_be_a_whole_word(self, extractor):
        result = extractor.extract("fluid dynamics")
        assert result.id_type is None


class TestAddressExtraction:
    """Address cascade and cleanup."""

    def test_relative_line_address(self, strict_extractor):
        text = (
            "Ramesh Kumar\n"
            "S/O Suresh Kumar, 12 MG Road\n"
            "Bengaluru, Karnataka - 560001\n"
            "2345 6789 0123"
        )
        result = strict_extractor.extract(text)
        assert result.address == "12 MG Road, Bengaluru, Karnataka - 560001"

    def test_relative_line_address_runs_to_end(self, strict_extractor):
        result = strict_extractor.extract("S/O Suresh Kumar, 12 MG Road\nPune")
        assert result.address == "12 MG Road, Pune"

    def test_labeled_address(self, strict_extractor):
        text = "Address: 7 Park Street\nKolkata - 700016\n3456 7890 1234"
        assert strict_extractor.extract(text).address == "7 Park Street, Kolkata - 700016"

    def test_sample_relative_block(self, extractor):
        text = (
            "S/O Anoop Kumar Jha | | Address: 22/1, VUAY NAGAR,\n"
            "Hns Nagar S.O\nKanpur Nagar\nUttar Pradesh - 208005 2345 6789 0123"
        )
        result = extractor.extract(text)
        assert result.address == (
            "22/1, VUAY NAGAR, Hns Nagar S.O, Kanpur Nagar, Uttar Pradesh - 208005"
        )
        assert "2345" not in result.address
        assert result.id_number == "2345 6789 0123"

    def test_sample_locality_block(self, extractor):
        text = (
            "Enrolment details\n"
            "22/1, VUAY NAGAR\nHns Nagar S.O\nKanpur Nagar\nUttar Pradesh - 208005\n"
            "3456 7890 1234"
        )
        assert extractor.extract(text).address == (
            "22/1, VUAY NAGAR, Hns Nagar S.O, Kanpur Nagar, Uttar Pradesh - 208005"
        )

    def test_sample_components(self, extractor):
        text = "S/O Anoop Kumar Jha\nKanpur Nagar\nUttar Pradesh 208005"
        assert extractor.extract(text).address == (
            "S/O Anoop Kumar Jha, Kanpur Nagar, Uttar Pradesh 208005"
        )

    def test_sample_line_scan(self, extractor):
        text = "Flat 4, Hns Nagar\nGovernment of India\nKanpur"
        assert extractor.extract(text).address == "Flat 4, Hns Nagar, Kanpur"

    def test_sample_branches_can_be_disabled(self, strict_extractor):
        text = "S/O Anoop Kumar Jha\nKanpur Nagar\nUttar Pradesh 208005"
        assert strict_extractor.extract(text).address is None

    def test_empty_cleaned_address_continues_cascade(self, strict_extractor):
        """A match that cleans down to nothing counts as not found."""
        assert strict_extractor.extract("S/O Ram, Male").address is None

    def test_cleanup_flattens_and_strips_noise(self, extractor):
        cleaned = extractor._clean_address("12 MG Road\nDOB\n,, Bengaluru,")
        assert cleaned == "12 MG Road, Bengaluru"

    def test_cleanup_keeps_words_containing_noise(self, extractor):
        assert extractor._clean_address("Malegaon Road") == "Malegaon Road"
