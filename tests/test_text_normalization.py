"""
Unit tests for text_normalization module.

Contact lines, employer/date lines and bullet handling as they show up in
pasted and extracted resumes.
"""

from resume_engine.core.text_normalization import (
    extract_date_range,
    find_phone,
    is_bullet_line,
    join_contact,
    looks_like_contact,
    looks_like_employer_line,
    normalize_colon_title,
    slugify,
    split_contact,
    split_csv,
    split_employer_line,
    strip_bullet,
)


class TestFindPhone:

    def test_phone_after_email(self):
        assert find_phone("jane@x.com | 555-1111") == "555-1111"

    def test_formatted_phone(self):
        assert find_phone("Call (555) 123-4567") == "(555) 123-4567"

    def test_year_range_is_not_a_phone(self):
        assert find_phone("Acme | 2020-2023") is None
        assert find_phone("2015 - 2019") is None


class TestContact:

    def test_split_contact_any_order(self):
        parts = split_contact("Seattle, WA | (555) 123-4567 | jane@x.com | linkedin.com/in/jane")
        assert parts == {"email": "jane@x.com", "phone": "(555) 123-4567", "location": "Seattle, WA"}

    def test_split_contact_without_location(self):
        assert split_contact("jane@x.com • 555-1111")["location"] == ""

    def test_join_contact_skips_empty(self):
        assert join_contact("", "555-1111", "jane@x.com") == "555-1111 | jane@x.com"

    def test_looks_like_contact(self):
        assert looks_like_contact("github.com/jane")
        assert not looks_like_contact("Engineer who loves distributed systems")


class TestEmployerLine:

    def test_pipe_separated(self):
        assert split_employer_line("Acme Co | 2020-2023") == ("Acme Co", "2020-2023")

    def test_location_kept_with_employer(self):
        assert split_employer_line("Acme Co, Austin TX | Jan 2020 - Present") == (
            "Acme Co, Austin TX",
            "Jan 2020 - Present",
        )

    def test_parenthesized_dates(self):
        assert split_employer_line("Acme Co (2019 - 2021)") == ("Acme Co", "2019 - 2021")

    def test_employer_only(self):
        assert split_employer_line("Acme Co") == ("Acme Co", "")
        assert split_employer_line("") == ("", "")

    def test_one_sided_pipe_line(self):
        assert split_employer_line("Acme Inc. |") == ("Acme Inc.", "")
        assert split_employer_line("| Summer 2019") == ("", "Summer 2019")
        assert split_employer_line("| 2020-2023") == ("", "2020-2023")

    def test_detection(self):
        assert looks_like_employer_line("Acme Co | 2020-2023")
        assert looks_like_employer_line("Globex, March 2018 to June 2020")
        assert not looks_like_employer_line("Managed a team of six engineers.")

    def test_date_range_inside_sentence(self):
        assert extract_date_range("Raised $2M (Jan 2020 - present)") == "Jan 2020 - present"


class TestLines:

    def test_bullets(self):
        assert is_bullet_line("• Led team")
        assert is_bullet_line("- Led team")
        assert not is_bullet_line("-5 degrees")
        assert strip_bullet("•   Led team") == "Led team"

    def test_slugify(self):
        assert slugify("Technical Skills & Tools") == "technical-skills-tools"
        assert slugify("  ") == ""

    def test_colon_title(self):
        assert normalize_colon_title("Directed  R&D: ") == "Directed R&D"
        assert normalize_colon_title("Directed R&D") == "Directed R&D"

    def test_split_csv(self):
        assert split_csv("Python, Go; SQL,") == ["Python", "Go", "SQL"]
