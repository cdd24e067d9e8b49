from datetime import datetime

from agent.extractors import (
    DEFAULT_RESEARCH_TITLE,
    RESEARCH_SOURCE_LABEL,
    SAMPLE_RESEARCH_URLS,
    MythRecord,
    extract_myths,
    extract_research,
    resolve_research_url,
)

LONG_BODY = "Participants showed a measurable improvement in visual acuity over twelve months."


def test_myth_fact_pair_is_extracted():
    assert extract_myths("Myth: X\nFact: Y") == [MythRecord(myth="X", fact="Y", explanation="")]


def test_myth_number_and_explanation_lines():
    text = (
        "Here are some myths.\n"
        "Myth 1: Carrots give you night vision\n"
        "Fact: Carrots do not improve normal eyesight.\n"
        "Vitamin A helps only when you are deficient.\n"
        "\n"
        "A balanced diet is enough.\n"
    )
    records = extract_myths(text)
    assert len(records) == 1
    assert records[0].myth == "Carrots give you night vision"
    assert records[0].fact == "Carrots do not improve normal eyesight."
    assert records[0].explanation == "Vitamin A helps only when you are deficient. A balanced diet is enough. "


def test_myths_are_capped_at_ten_in_order():
    text = "\n".join(f"Myth {i}: claim {i}\nFact: truth {i}" for i in range(1, 16))
    records = extract_myths(text)
    assert len(records) == 10
    assert [r.myth for r in records] == [f"claim {i}" for i in range(1, 11)]
    assert records[-1].fact == "truth 10"


def test_fact_before_any_myth_is_dropped():
    assert extract_myths("Fact: reading in dim light is fine\nMore prose here.") == []


def test_record_without_fact_is_kept_and_last_fact_wins():
    records = extract_myths("Myth: A\nMyth: B\nFact: first\nFact: second")
    assert records == [
        MythRecord(myth="A"),
        MythRecord(myth="B", fact="second"),
    ]


def test_lines_mentioning_tokens_without_colon_are_not_explanation():
    records = extract_myths("Myth: A\nThis myth is common\nThe fact is different\nPlain line")
    assert records[0].explanation == "Plain line "


def test_unstructured_text_yields_no_myths():
    assert extract_myths("Eyes are wonderful.\nLook after them.") == []
    assert extract_myths("") == []


def test_research_title_summary_and_constant_fields():
    now = datetime(2024, 3, 5, 10, 30)
    text = f"1. Gene therapy for inherited retinal disease\n{LONG_BODY}\nSee https://example.org/study for details."
    records = extract_research(text, now=now)
    assert len(records) == 1
    record = records[0]
    assert record.title == "Gene therapy for inherited retinal disease"
    assert record.summary == f"{LONG_BODY} See https://example.org/study for details."
    assert record.date == now.strftime("%x")
    assert record.source == RESEARCH_SOURCE_LABEL
    assert record.url == "https://example.org/study"


def test_research_summary_is_truncated_to_300_chars():
    text = "Myopia control study\n" + "a" * 400
    record = extract_research(text)[0]
    assert record.summary == "a" * 300 + "..."


def test_research_summary_of_exactly_300_chars_is_kept_whole():
    text = "Myopia control study\n" + "b" * 300
    record = extract_research(text)[0]
    assert record.summary == "b" * 300


def test_research_is_capped_at_eight():
    text = "\n\n".join(f"{i}. Finding {i}\n{LONG_BODY}" for i in range(1, 11))
    records = extract_research(text)
    assert len(records) == 8
    assert [r.title for r in records] == [f"Finding {i}" for i in range(1, 9)]


def test_short_and_blank_sections_are_skipped():
    text = f"Short intro.\n\n   \n\nTitle\n{LONG_BODY}\n\n" + "x" * 50
    records = extract_research(text)
    assert [r.title for r in records] == ["Title"]


def test_single_line_section_uses_whole_section_as_summary():
    section = f"2. {LONG_BODY}"
    record = extract_research(section)[0]
    assert record.title == LONG_BODY
    assert record.summary == section


def test_empty_title_falls_back_to_default():
    record = extract_research(f"3. \n{LONG_BODY}")[0]
    assert record.title == DEFAULT_RESEARCH_TITLE


def test_url_takes_precedence_over_doi():
    section = "Study http://journal.example/article and doi: 10.1000/xyz123 reported."
    assert resolve_research_url(section) == "http://journal.example/article"


def test_doi_and_pubmed_links_are_constructed():
    assert resolve_research_url("Published with DOI: 10.1016/j.ophtha.2024.01 today") == (
        "https://doi.org/10.1016/j.ophtha.2024.01"
    )
    assert resolve_research_url("Indexed in PubMed 38111222 last month") == (
        "https://pubmed.ncbi.nlm.nih.gov/38111222/"
    )
    assert resolve_research_url("No links in this one") is None


def test_missing_links_cycle_through_sample_urls():
    text = "\n\n".join(f"Finding {i}\n{LONG_BODY}" for i in range(8))
    records = extract_research(text)
    assert [r.url for r in records] == list(SAMPLE_RESEARCH_URLS)


def test_sample_url_index_counts_all_previous_records():
    text = (
        f"With link\n{LONG_BODY} https://example.org/a\n\n"
        f"Without link\n{LONG_BODY}"
    )
    records = extract_research(text)
    assert records[0].url == "https://example.org/a"
    assert records[1].url == SAMPLE_RESEARCH_URLS[1]


def test_records_serialise_to_dicts():
    record = extract_myths("Myth: A\nFact: B")[0]
    assert record.to_dict() == {"myth": "A", "fact": "B", "explanation": ""}
